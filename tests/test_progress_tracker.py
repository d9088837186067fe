import itertools
from datetime import datetime, timedelta, timezone

import pytest

from coursetrack.application.progress_tracker import ProgressTracker, ProgressView
from coursetrack.domain.entities import CompletionState, Principal, ProgressRecord
from coursetrack.domain.errors import Conflict, Forbidden, NotFound, Unauthenticated

U1 = Principal(id="u1", email="u1@example.com")


class StaticPrincipal:
    def __init__(self, principal):
        self.principal = principal

    def current_principal(self):
        return self.principal


class MemoryStore:
    """Progress store with the same uniqueness and ownership rules as the database."""

    def __init__(self):
        self.rows: dict[str, ProgressRecord] = {}
        self.mutations = 0
        self._ids = itertools.count(1)

    def get_record(self, principal, course_id):
        for r in self.rows.values():
            if r.user_id == principal.id and r.course_id == course_id:
                return r
        return None

    def list_records(self, principal):
        return [r for r in self.rows.values() if r.user_id == principal.id]

    def insert(self, principal, course_id, completed, completed_at):
        if self.get_record(principal, course_id) is not None:
            raise Conflict()
        record = ProgressRecord(
            id=f"r{next(self._ids)}",
            user_id=principal.id,
            course_id=course_id,
            completed=completed,
            completed_at=completed_at,
            created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
        )
        self.rows[record.id] = record
        return record

    def create_record(self, principal, course_id, completed, completed_at):
        record = self.insert(principal, course_id, completed, completed_at)
        self.mutations += 1
        return record

    def update_record(self, record_id, completed, completed_at):
        if record_id not in self.rows:
            raise NotFound()
        old = self.rows[record_id]
        self.rows[record_id] = ProgressRecord(
            id=old.id, user_id=old.user_id, course_id=old.course_id,
            completed=completed, completed_at=completed_at, created_at=old.created_at,
        )
        self.mutations += 1
        return self.rows[record_id]


class LosingRaceStore(MemoryStore):
    """Another session of the same user creates the record right before our insert."""

    def __init__(self, rival_completed=True):
        super().__init__()
        self.rival_completed = rival_completed

    def create_record(self, principal, course_id, completed, completed_at):
        rival_at = datetime(2025, 1, 1, tzinfo=timezone.utc) if self.rival_completed else None
        self.insert(principal, course_id, self.rival_completed, rival_at)
        return super().create_record(principal, course_id, completed, completed_at)


@pytest.fixture
def clock():
    ticks = itertools.count()
    start = datetime(2025, 10, 2, 12, 0, tzinfo=timezone.utc)
    return lambda: start + timedelta(seconds=next(ticks))


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def tracker(store, clock):
    return ProgressTracker(StaticPrincipal(U1), store, now=clock)


def test_toggle_from_not_started_completes(tracker, store):
    assert tracker.state("c1") is CompletionState.NOT_STARTED

    result = tracker.toggle("c1")

    assert result.previous is CompletionState.NOT_STARTED
    assert result.state is CompletionState.COMPLETED
    assert result.record.completed is True
    assert result.record.completed_at is not None
    assert tracker.state("c1") is CompletionState.COMPLETED
    assert len(store.rows) == 1


def test_second_toggle_marks_incomplete(tracker):
    tracker.toggle("c1")
    result = tracker.toggle("c1")

    assert result.previous is CompletionState.COMPLETED
    assert result.state is CompletionState.IN_PROGRESS
    assert result.record.completed is False
    assert result.record.completed_at is None


def test_toggle_from_in_progress_completes_same_record(tracker):
    first = tracker.toggle("c1")
    tracker.toggle("c1")
    third = tracker.toggle("c1")

    assert third.previous is CompletionState.IN_PROGRESS
    assert third.state is CompletionState.COMPLETED
    assert third.record.id == first.record.id


@pytest.mark.parametrize("times", [1, 2, 3, 4, 7, 10])
def test_toggle_parity(tracker, store, times):
    for _ in range(times):
        record = tracker.toggle("c1").record
        assert record.completed == (record.completed_at is not None)

    assert tracker.is_completed("c1") is (times % 2 == 1)
    assert len(store.rows) == 1


def test_each_toggle_is_exactly_one_mutation(tracker, store):
    for expected in range(1, 5):
        tracker.toggle("c1")
        assert store.mutations == expected


def test_anonymous_toggle_is_rejected_without_touching_store(store, clock):
    tracker = ProgressTracker(StaticPrincipal(None), store, now=clock)

    with pytest.raises(Unauthenticated):
        tracker.toggle("c1")

    assert store.rows == {}
    assert store.mutations == 0


def test_anonymous_state_is_not_started(store):
    tracker = ProgressTracker(StaticPrincipal(None), store)
    assert tracker.state("c1") is CompletionState.NOT_STARTED
    assert tracker.completed_course_ids() == set()
    with pytest.raises(Unauthenticated):
        tracker.records()


def test_toggle_reads_store_instead_of_previous_result(tracker, store):
    tracker.toggle("c1")
    # another device marked it incomplete meanwhile
    record = store.get_record(U1, "c1")
    store.update_record(record.id, False, None)

    result = tracker.toggle("c1")

    assert result.previous is CompletionState.IN_PROGRESS
    assert result.state is CompletionState.COMPLETED


def test_lost_creation_race_converges_to_completed(clock):
    store = LosingRaceStore(rival_completed=True)
    tracker = ProgressTracker(StaticPrincipal(U1), store, now=clock)

    result = tracker.toggle("c1")

    assert result.recovered_conflict is True
    assert result.state is CompletionState.COMPLETED
    assert len(store.rows) == 1
    assert store.mutations == 1


def test_lost_race_never_drops_our_completion(clock):
    store = LosingRaceStore(rival_completed=False)
    tracker = ProgressTracker(StaticPrincipal(U1), store, now=clock)

    result = tracker.toggle("c1")

    assert result.state is CompletionState.COMPLETED
    assert store.get_record(U1, "c1").completed is True


def test_conflict_surfaces_when_record_vanishes(clock):
    class VanishingStore(MemoryStore):
        def create_record(self, principal, course_id, completed, completed_at):
            raise Conflict()

    store = VanishingStore()
    tracker = ProgressTracker(StaticPrincipal(U1), store, now=clock)

    with pytest.raises(Conflict):
        tracker.toggle("c1")
    assert store.mutations == 0


def test_conflict_surfaces_when_retry_update_fails(clock):
    class BrokenRetryStore(LosingRaceStore):
        def update_record(self, record_id, completed, completed_at):
            raise NotFound()

    tracker = ProgressTracker(StaticPrincipal(U1), BrokenRetryStore(), now=clock)

    with pytest.raises(Conflict):
        tracker.toggle("c1")


def test_forbidden_is_not_swallowed(clock):
    class ForeignStore(MemoryStore):
        def create_record(self, principal, course_id, completed, completed_at):
            raise Forbidden()

    tracker = ProgressTracker(StaticPrincipal(U1), ForeignStore(), now=clock)

    with pytest.raises(Forbidden):
        tracker.toggle("c1")


def test_completed_course_ids(tracker):
    tracker.toggle("c1")
    tracker.toggle("c2")
    tracker.toggle("c2")
    tracker.toggle("c3")

    assert tracker.completed_course_ids() == {"c1", "c3"}


def test_progress_view_applies_authoritative_records(tracker):
    view = ProgressView(tracker.records())
    assert view.state("c1") is CompletionState.NOT_STARTED

    assert view.apply(tracker.toggle("c1").record) is True
    assert view.is_completed("c1")
    assert view.state("c1") is CompletionState.COMPLETED

    view.apply(tracker.toggle("c1").record)
    assert not view.is_completed("c1")
    assert view.state("c1") is CompletionState.IN_PROGRESS


def test_progress_view_ignores_results_after_close(tracker):
    view = ProgressView()
    view.close()

    assert view.apply(tracker.toggle("c1").record) is False
    assert view.record("c1") is None
