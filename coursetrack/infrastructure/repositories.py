from contextlib import contextmanager
from datetime import datetime

import structlog
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from .models import CourseORM, UserCourseORM, UserORM
from ..domain.entities import Course, Principal, ProgressRecord, User
from ..domain.errors import Conflict, Forbidden, NotFound, StoreUnavailable, ValidationFailed
from ..application.ports import ICourseCatalog, IProgressStore
from ..application.use_cases.register_user import IUserRepository

logger = structlog.get_logger(__name__)


def to_user(u: UserORM) -> User:
    return User(id=u.id, email=u.email, is_active=u.is_active)


def to_course(c: CourseORM) -> Course:
    return Course(
        id=c.id,
        title=c.title,
        description=c.description,
        thumbnail=c.thumbnail,
        duration=c.duration,
        created_at=c.created_at,
    )


def to_record(r: UserCourseORM) -> ProgressRecord:
    return ProgressRecord(
        id=r.id,
        user_id=r.user_id,
        course_id=r.course_id,
        completed=r.completed,
        completed_at=r.completed_at,
        created_at=r.created_at,
    )


@contextmanager
def store_errors(db: Session):
    """Turns transport failures into StoreUnavailable."""
    try:
        yield
    except OperationalError as e:
        db.rollback()
        logger.warning("store_unavailable", error=str(e.orig))
        raise StoreUnavailable() from e


class UserRepository(IUserRepository):
    def __init__(self, db: Session): self.db = db

    def get_by_email(self, email: str) -> User | None:
        row = self.get_row_by_email(email)
        return to_user(row) if row else None

    def get_row_by_email(self, email: str) -> UserORM | None:
        with store_errors(self.db):
            return self.db.query(UserORM).filter(UserORM.email == email).first()

    def get_by_id(self, user_id: str) -> User | None:
        with store_errors(self.db):
            row = self.db.get(UserORM, user_id)
        return to_user(row) if row else None

    def create(self, email: str, password_hash: str) -> User:
        row = UserORM(email=email, password_hash=password_hash)
        with store_errors(self.db):
            self.db.add(row)
            try:
                self.db.commit()
            except IntegrityError as e:
                self.db.rollback()
                raise ValidationFailed("Email already registered") from e
            self.db.refresh(row)
        return to_user(row)


class CourseCatalogRepository(ICourseCatalog):
    ORDERABLE = {"created_at": CourseORM.created_at, "title": CourseORM.title, "duration": CourseORM.duration}

    def __init__(self, db: Session): self.db = db

    def list_courses(self, order_by: str = "created_at", descending: bool = True) -> list[Course]:
        if order_by not in self.ORDERABLE:
            raise ValueError(f"cannot order courses by {order_by!r}, expected one of {sorted(self.ORDERABLE)}")
        column = self.ORDERABLE[order_by]
        with store_errors(self.db):
            rows = self.db.query(CourseORM).order_by(column.desc() if descending else column.asc()).all()
        return [to_course(r) for r in rows]

    def get_course(self, course_id: str) -> Course:
        with store_errors(self.db):
            row = self.db.get(CourseORM, course_id)
        if row is None:
            raise NotFound("course not found")
        return to_course(row)


class ProgressRepository(IProgressStore):
    """Progress rows visible to and writable by ``acting`` only.

    Reads for any other principal see nothing; writes for any other
    principal are rejected with Forbidden.
    """

    def __init__(self, db: Session, acting: Principal | None):
        self.db = db
        self.acting = acting

    def _owns(self, principal: Principal | None) -> bool:
        return self.acting is not None and principal is not None and principal.id == self.acting.id

    def get_record(self, principal: Principal, course_id: str) -> ProgressRecord | None:
        if not self._owns(principal):
            return None
        with store_errors(self.db):
            row = (self.db.query(UserCourseORM)
                   .filter(UserCourseORM.user_id == principal.id, UserCourseORM.course_id == course_id)
                   .first())
        return to_record(row) if row else None

    def list_records(self, principal: Principal) -> list[ProgressRecord]:
        if not self._owns(principal):
            return []
        with store_errors(self.db):
            rows = (self.db.query(UserCourseORM)
                    .filter(UserCourseORM.user_id == principal.id)
                    .order_by(UserCourseORM.created_at.desc())
                    .all())
        return [to_record(r) for r in rows]

    def create_record(self, principal: Principal, course_id: str, completed: bool,
                      completed_at: datetime | None) -> ProgressRecord:
        if not self._owns(principal):
            raise Forbidden()
        _check_completed_at(completed, completed_at)
        with store_errors(self.db):
            if self.db.get(CourseORM, course_id) is None:
                raise NotFound("course not found")
            row = UserCourseORM(user_id=principal.id, course_id=course_id,
                                completed=completed, completed_at=completed_at)
            self.db.add(row)
            try:
                self.db.commit()
            except IntegrityError as e:
                self.db.rollback()
                raise Conflict("progress record already exists") from e
            self.db.refresh(row)
        return to_record(row)

    def update_record(self, record_id: str, completed: bool,
                      completed_at: datetime | None) -> ProgressRecord:
        _check_completed_at(completed, completed_at)
        owner_id = self.acting.id if self.acting is not None else None
        stmt = (update(UserCourseORM)
                .where(UserCourseORM.id == record_id, UserCourseORM.user_id == owner_id)
                .values(completed=completed, completed_at=completed_at))
        with store_errors(self.db):
            result = self.db.execute(stmt)
            if result.rowcount == 0:
                self.db.rollback()
                if self.db.get(UserCourseORM, record_id) is not None:
                    raise Forbidden()
                raise NotFound("progress record not found")
            self.db.commit()
            row = self.db.get(UserCourseORM, record_id)
        return to_record(row)


def _check_completed_at(completed: bool, completed_at: datetime | None) -> None:
    if completed != (completed_at is not None):
        raise ValueError("completed_at must be set exactly when completed is true")
