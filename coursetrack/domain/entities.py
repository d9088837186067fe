from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class CompletionState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass(frozen=True)
class Principal:
    id: str
    email: str


@dataclass(frozen=True)
class User:
    id: str | None
    email: str
    is_active: bool = True


@dataclass(frozen=True)
class Course:
    id: str
    title: str
    description: str
    duration: int  # minutes
    created_at: datetime
    thumbnail: str | None = None


@dataclass(frozen=True)
class ProgressRecord:
    id: str
    user_id: str
    course_id: str
    completed: bool
    completed_at: datetime | None
    created_at: datetime

    @property
    def state(self) -> CompletionState:
        return CompletionState.COMPLETED if self.completed else CompletionState.IN_PROGRESS


def state_of(record: ProgressRecord | None) -> CompletionState:
    if record is None:
        return CompletionState.NOT_STARTED
    return record.state
