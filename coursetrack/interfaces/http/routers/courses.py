from fastapi import APIRouter, Depends

from ....application.progress_tracker import ProgressTracker
from ....domain.entities import CompletionState
from ....infrastructure.cache import COURSES_LIST_KEY, course_key, get_cache, set_cache
from ....infrastructure.metrics import cache_hits_total, cache_misses_total, db_queries_total
from ....infrastructure.repositories import CourseCatalogRepository
from ..authz import get_catalog, get_tracker
from ..schemas import CourseCard, CourseDetail, CourseOut

router = APIRouter(prefix="/api/courses", tags=["courses"])


def _cached(key: str, load) -> dict | list:
    cached = get_cache(key)
    if cached is not None:
        cache_hits_total.inc()
        return cached
    cache_misses_total.inc()
    db_queries_total.inc()
    value = load()
    set_cache(key, value)
    return value


@router.get("", response_model=list[CourseCard])
def list_courses(
    catalog: CourseCatalogRepository = Depends(get_catalog),
    tracker: ProgressTracker = Depends(get_tracker),
):
    # каталог общий для всех, отметки о прохождении не кэшируем
    courses = _cached(
        COURSES_LIST_KEY,
        lambda: [CourseOut.model_validate(c).model_dump(mode="json") for c in catalog.list_courses()],
    )
    done = tracker.completed_course_ids()
    return [CourseCard(**c, completed=c["id"] in done) for c in courses]


@router.get("/{course_id}", response_model=CourseDetail)
def get_course(
    course_id: str,
    catalog: CourseCatalogRepository = Depends(get_catalog),
    tracker: ProgressTracker = Depends(get_tracker),
):
    course = _cached(
        course_key(course_id),
        lambda: CourseOut.model_validate(catalog.get_course(course_id)).model_dump(mode="json"),
    )
    state = tracker.state(course_id)
    return CourseDetail(**course, status=state, completed=state is CompletionState.COMPLETED)
