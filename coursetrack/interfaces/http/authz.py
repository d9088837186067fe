from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from ...application.auth_session import AuthSession
from ...application.progress_tracker import ProgressTracker
from ...domain.entities import Principal
from ...domain.errors import Unauthenticated
from ...infrastructure.db import get_db
from ...infrastructure.identity import LocalIdentityProvider
from ...infrastructure.repositories import CourseCatalogRepository, ProgressRepository

# без заголовка Authorization запрос считается анонимным
bearer = HTTPBearer(auto_error=False)


def get_identity_provider(db: Session = Depends(get_db)) -> LocalIdentityProvider:
    return LocalIdentityProvider(db)


def get_session(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    provider: LocalIdentityProvider = Depends(get_identity_provider),
) -> AuthSession:
    if creds is None:
        return AuthSession(provider)
    session = AuthSession.from_token(provider, creds.credentials)
    if session.current_principal() is None:
        raise Unauthenticated("Invalid token")
    return session


def require_session(session: AuthSession = Depends(get_session)) -> AuthSession:
    if session.current_principal() is None:
        raise Unauthenticated()
    return session


def get_principal(session: AuthSession = Depends(require_session)) -> Principal:
    return session.require_principal()


def get_catalog(db: Session = Depends(get_db)) -> CourseCatalogRepository:
    return CourseCatalogRepository(db)


def get_tracker(
    session: AuthSession = Depends(get_session),
    db: Session = Depends(get_db),
) -> ProgressTracker:
    return ProgressTracker(principals=session, store=ProgressRepository(db, session.current_principal()))
