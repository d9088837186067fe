from fastapi import APIRouter, Depends, Request, status

from ....application.auth_session import AuthSession
from ..authz import get_identity_provider, require_session
from ..rate_limit import SIGN_IN_LIMIT, SIGN_UP_LIMIT, limiter
from ..schemas import OkResp, SignInReq, SignUpReq, TokenResp, UserResp
from ....infrastructure.identity import LocalIdentityProvider

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/signup", response_model=UserResp, status_code=status.HTTP_201_CREATED)
@limiter.limit(SIGN_UP_LIMIT)
def sign_up(
    request: Request,
    payload: SignUpReq,
    provider: LocalIdentityProvider = Depends(get_identity_provider),
):
    user = AuthSession(provider).sign_up(payload.email, payload.password)
    return UserResp(id=user.id, email=user.email)


@router.post("/signin", response_model=TokenResp)
@limiter.limit(SIGN_IN_LIMIT)
def sign_in(
    request: Request,
    payload: SignInReq,
    provider: LocalIdentityProvider = Depends(get_identity_provider),
):
    session = AuthSession(provider)
    session.sign_in(payload.email, payload.password)
    return TokenResp(access_token=session.access_token)


@router.post("/signout", response_model=OkResp)
def sign_out(session: AuthSession = Depends(require_session)):
    session.sign_out()
    return OkResp()


@router.get("/me", response_model=UserResp)
def me(session: AuthSession = Depends(require_session)):
    principal = session.require_principal()
    return UserResp(id=principal.id, email=principal.email)
