from fastapi import APIRouter, Depends

from ....application.progress_tracker import ProgressTracker
from ....domain.entities import CompletionState, Principal
from ....infrastructure.metrics import progress_conflicts_total, progress_toggles_total
from ....infrastructure.repositories import CourseCatalogRepository
from ..authz import get_catalog, get_principal, get_tracker
from ..schemas import ProgressItem, ProgressStatus, ToggleResp

router = APIRouter(prefix="/api/progress", tags=["progress"])


@router.get("/my", response_model=list[ProgressItem])
def my_progress(
    tracker: ProgressTracker = Depends(get_tracker),
):
    return [ProgressItem.model_validate(r) for r in tracker.records()]


@router.get("/{course_id}", response_model=ProgressStatus)
def course_progress(
    course_id: str,
    principal: Principal = Depends(get_principal),
    catalog: CourseCatalogRepository = Depends(get_catalog),
    tracker: ProgressTracker = Depends(get_tracker),
):
    catalog.get_course(course_id)
    record = tracker.record(course_id)
    return ProgressStatus(
        course_id=course_id,
        status=record.state if record else CompletionState.NOT_STARTED,
        record=ProgressItem.model_validate(record) if record else None,
    )


@router.post("/{course_id}/toggle", response_model=ToggleResp)
def toggle_completion(
    course_id: str,
    tracker: ProgressTracker = Depends(get_tracker),
):
    result = tracker.toggle(course_id)
    progress_toggles_total.labels(result=result.state.value).inc()
    if result.recovered_conflict:
        progress_conflicts_total.inc()
    message = ("You've completed this course!" if result.state is CompletionState.COMPLETED
               else "Marked as incomplete")
    return ToggleResp(
        course_id=course_id,
        status=result.state,
        previous_status=result.previous,
        record=ProgressItem.model_validate(result.record),
        message=message,
    )
