from datetime import datetime, timezone

import structlog
from jose import JWTError
from sqlalchemy.orm import Session

from .cache import get_cache, revoked_key, set_cache
from .repositories import UserRepository
from .security import PasswordHasher, create_access_token, decode_token
from ..application.ports import IIdentityProvider
from ..application.use_cases.register_user import RegisterUser
from ..domain.entities import Principal, User
from ..domain.errors import InvalidCredentials

logger = structlog.get_logger(__name__)


class LocalIdentityProvider(IIdentityProvider):
    """Identity provider over the ``users`` table and HS256 access tokens."""

    def __init__(self, db: Session, hasher: PasswordHasher | None = None):
        self.users = UserRepository(db)
        self.hasher = hasher or PasswordHasher()

    def sign_up(self, email: str, password: str) -> User:
        user = RegisterUser(repo=self.users, hasher=self.hasher).execute(email, password)
        logger.info("user_registered", user_id=user.id)
        return user

    def sign_in(self, email: str, password: str) -> tuple[Principal, str]:
        row = self.users.get_row_by_email(email)
        if not row or not row.is_active or not self.hasher.verify(password, row.password_hash):
            logger.info("sign_in_rejected")
            raise InvalidCredentials()
        principal = Principal(id=row.id, email=row.email)
        return principal, create_access_token(sub=row.id, email=row.email)

    def sign_out(self, access_token: str) -> None:
        try:
            claims = decode_token(access_token)
        except JWTError:
            return
        # держим отозванный jti до истечения самого токена
        remaining = int(claims["exp"] - datetime.now(timezone.utc).timestamp())
        if remaining > 0 and claims.get("jti"):
            set_cache(revoked_key(claims["jti"]), True, ttl=remaining)

    def resolve(self, access_token: str) -> Principal | None:
        try:
            claims = decode_token(access_token)
        except JWTError:
            return None
        if claims.get("jti") and get_cache(revoked_key(claims["jti"])):
            return None
        user = self.users.get_by_id(claims["sub"])
        if user is None or not user.is_active:
            return None
        return Principal(id=user.id, email=user.email)
