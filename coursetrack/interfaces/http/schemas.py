from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from ...domain.entities import CompletionState
from ...application.use_cases.register_user import MIN_PASSWORD_LENGTH


class SignUpReq(BaseModel):
    email: EmailStr
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)


class SignInReq(BaseModel):
    email: EmailStr
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)


class UserResp(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    email: EmailStr


class TokenResp(BaseModel):
    access_token: str
    token_type: str = "bearer"


class OkResp(BaseModel):
    ok: bool = True


class CourseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    title: str
    description: str
    thumbnail: str | None = None
    duration: int
    created_at: datetime


class CourseCard(CourseOut):
    completed: bool = False


class CourseDetail(CourseOut):
    status: CompletionState = CompletionState.NOT_STARTED
    completed: bool = False


class ProgressItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    course_id: str
    completed: bool
    completed_at: datetime | None = None
    created_at: datetime


class ProgressStatus(BaseModel):
    course_id: str
    status: CompletionState
    record: ProgressItem | None = None


class ToggleResp(BaseModel):
    course_id: str
    status: CompletionState
    previous_status: CompletionState
    record: ProgressItem
    message: str
