"""Completion tracking for one principal across the course catalog.

The tracker never keeps completion state between calls: every ``toggle``
re-reads the stored record and decides the new value from it. The unique
(user, course) constraint of the store is the only synchronisation between
sessions of the same user; losing a creation race shows up as ``Conflict``
and is recovered by one update of the record the winner created.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable

import structlog

from ..domain.entities import CompletionState, Principal, ProgressRecord, state_of
from ..domain.errors import Conflict, NotFound, Unauthenticated
from .ports import IPrincipalResolver, IProgressStore

logger = structlog.get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ToggleResult:
    record: ProgressRecord
    previous: CompletionState
    recovered_conflict: bool = False

    @property
    def state(self) -> CompletionState:
        return self.record.state


class ProgressTracker:
    def __init__(self, principals: IPrincipalResolver, store: IProgressStore,
                 now: Callable[[], datetime] = utcnow):
        self.principals = principals
        self.store = store
        self.now = now

    def _require_principal(self) -> Principal:
        principal = self.principals.current_principal()
        if principal is None:
            raise Unauthenticated("Please log in to track your progress")
        return principal

    def record(self, course_id: str) -> ProgressRecord | None:
        principal = self.principals.current_principal()
        if principal is None:
            return None
        return self.store.get_record(principal, course_id)

    def state(self, course_id: str) -> CompletionState:
        return state_of(self.record(course_id))

    def is_completed(self, course_id: str) -> bool:
        return self.state(course_id) is CompletionState.COMPLETED

    def records(self) -> list[ProgressRecord]:
        principal = self._require_principal()
        return self.store.list_records(principal)

    def completed_course_ids(self) -> set[str]:
        principal = self.principals.current_principal()
        if principal is None:
            return set()
        return {r.course_id for r in self.store.list_records(principal) if r.completed}

    def toggle(self, course_id: str) -> ToggleResult:
        principal = self._require_principal()
        current = self.store.get_record(principal, course_id)
        if current is not None:
            record = self._write(current, not current.completed)
            self._log_toggle(principal, current.state, record)
            return ToggleResult(record, previous=current.state)

        try:
            record = self.store.create_record(principal, course_id, True, self.now())
        except Conflict:
            logger.info("progress_create_conflict", principal_id=principal.id, course_id=course_id)
            record = self._converge(principal, course_id)
            self._log_toggle(principal, CompletionState.NOT_STARTED, record, retried=True)
            return ToggleResult(record, previous=CompletionState.NOT_STARTED, recovered_conflict=True)

        self._log_toggle(principal, CompletionState.NOT_STARTED, record)
        return ToggleResult(record, previous=CompletionState.NOT_STARTED)

    def _converge(self, principal: Principal, course_id: str) -> ProgressRecord:
        # Another session created the record first. Apply our completion to it once.
        existing = self.store.get_record(principal, course_id)
        if existing is None:
            raise Conflict()
        try:
            return self._write(existing, True)
        except (Conflict, NotFound) as e:
            raise Conflict() from e

    def _write(self, record: ProgressRecord, completed: bool) -> ProgressRecord:
        completed_at = self.now() if completed else None
        return self.store.update_record(record.id, completed, completed_at)

    def _log_toggle(self, principal: Principal, previous: CompletionState,
                    record: ProgressRecord, retried: bool = False) -> None:
        logger.info(
            "progress_toggled",
            principal_id=principal.id,
            course_id=record.course_id,
            previous=previous.value,
            state=record.state.value,
            retried=retried,
        )


class ProgressView:
    """Local completion badges, fed only with records the store returned."""

    def __init__(self, records: Iterable[ProgressRecord] = ()):
        self._records: dict[str, ProgressRecord] = {}
        self.closed = False
        self.load(records)

    def load(self, records: Iterable[ProgressRecord]) -> None:
        for r in records:
            self.apply(r)

    def apply(self, record: ProgressRecord) -> bool:
        # a toggle may finish after the view was closed; that result is dropped
        if self.closed:
            return False
        self._records[record.course_id] = record
        return True

    def record(self, course_id: str) -> ProgressRecord | None:
        return self._records.get(course_id)

    def state(self, course_id: str) -> CompletionState:
        return state_of(self.record(course_id))

    def is_completed(self, course_id: str) -> bool:
        record = self._records.get(course_id)
        return bool(record and record.completed)

    def close(self) -> None:
        self.closed = True
        self._records.clear()
