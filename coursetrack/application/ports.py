from datetime import datetime

from ..domain.entities import Course, Principal, ProgressRecord, User


class ICourseCatalog:
    def list_courses(self, order_by: str = "created_at", descending: bool = True) -> list[Course]: ...
    def get_course(self, course_id: str) -> Course: ...


class IProgressStore:
    def get_record(self, principal: Principal, course_id: str) -> ProgressRecord | None: ...
    def list_records(self, principal: Principal) -> list[ProgressRecord]: ...
    def create_record(self, principal: Principal, course_id: str, completed: bool,
                      completed_at: datetime | None) -> ProgressRecord: ...
    def update_record(self, record_id: str, completed: bool,
                      completed_at: datetime | None) -> ProgressRecord: ...


class IIdentityProvider:
    def sign_up(self, email: str, password: str) -> User: ...
    def sign_in(self, email: str, password: str) -> tuple[Principal, str]: ...
    def sign_out(self, access_token: str) -> None: ...
    def resolve(self, access_token: str) -> Principal | None: ...


class IPrincipalResolver:
    def current_principal(self) -> Principal | None: ...
