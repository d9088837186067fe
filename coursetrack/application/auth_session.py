"""Client-side view of the authenticated identity.

An ``AuthSession`` is created explicitly and passed to whatever needs the
current principal. ``sign_in`` initialises it, ``sign_out`` tears it down.
Listeners registered with ``subscribe`` are told about every transition.
"""
from typing import Callable

import structlog

from ..domain.entities import Principal, User
from ..domain.errors import Unauthenticated
from .ports import IIdentityProvider
from .use_cases.register_user import check_credentials

logger = structlog.get_logger(__name__)

Listener = Callable[[Principal | None], None]


class Subscription:
    SUBSCRIBED = "subscribed"
    CANCELLED = "cancelled"

    def __init__(self, session: "AuthSession", listener: Listener):
        self._session = session
        self.listener = listener
        self.state = self.SUBSCRIBED

    @property
    def active(self) -> bool:
        return self.state == self.SUBSCRIBED

    def cancel(self) -> None:
        if not self.active:
            return
        self.state = self.CANCELLED
        self._session._drop(self)


class AuthSession:
    def __init__(self, provider: IIdentityProvider,
                 principal: Principal | None = None,
                 access_token: str | None = None):
        self.provider = provider
        self._principal = principal
        self._access_token = access_token
        self._subscriptions: list[Subscription] = []

    @classmethod
    def from_token(cls, provider: IIdentityProvider, access_token: str) -> "AuthSession":
        principal = provider.resolve(access_token)
        if principal is None:
            return cls(provider)
        return cls(provider, principal=principal, access_token=access_token)

    @property
    def access_token(self) -> str | None:
        return self._access_token

    def current_principal(self) -> Principal | None:
        return self._principal

    def require_principal(self) -> Principal:
        if self._principal is None:
            raise Unauthenticated()
        return self._principal

    def subscribe(self, on_change: Listener) -> Subscription:
        sub = Subscription(self, on_change)
        self._subscriptions.append(sub)
        return sub

    def sign_up(self, email: str, password: str) -> User:
        email = check_credentials(email, password)
        return self.provider.sign_up(email, password)

    def sign_in(self, email: str, password: str) -> Principal:
        email = check_credentials(email, password)
        principal, token = self.provider.sign_in(email, password)
        self._access_token = token
        self._transition(principal)
        return principal

    def sign_out(self) -> None:
        if self._access_token is not None:
            self.provider.sign_out(self._access_token)
        self._access_token = None
        self._transition(None)

    def expire(self) -> None:
        """Drops the principal after the provider stopped accepting the token."""
        logger.info("session_expired", principal_id=getattr(self._principal, "id", None))
        self._access_token = None
        self._transition(None)

    def _transition(self, principal: Principal | None) -> None:
        if principal == self._principal:
            return
        self._principal = principal
        logger.info("principal_changed", principal_id=getattr(principal, "id", None))
        # snapshot: listeners may cancel themselves (or others) while being notified
        for sub in list(self._subscriptions):
            if sub.active:
                sub.listener(principal)

    def _drop(self, sub: Subscription) -> None:
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)
