from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Request, Response, status

from app.api.deps import (
    get_account_service,
    get_current_identity,
    get_rate_limiter,
    get_recovery_service,
    get_session_issuer,
)
from app.core.config import get_settings
from app.models.user import User
from app.schemas.user import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    ResendVerificationRequest,
    ResetPasswordRequest,
    SignupRequest,
    SignupResponse,
    SuccessResponse,
    UserResponse,
    VerifyEmailRequest,
)
from app.services.accounts import AccountService
from app.services.rate_limit import RateLimiter
from app.services.recovery import RecoveryService
from app.services.sessions import SessionIdentity, SessionIssuer


router = APIRouter(prefix="/auth", tags=["auth"])

settings = get_settings()


def set_session_cookie(response: Response, token: str, issuer: SessionIssuer) -> None:
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=issuer.max_age_seconds,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.SESSION_COOKIE_NAME,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def _auth_response(user: User, token: Optional[str]) -> AuthResponse:
    return AuthResponse(
        id=user.id,
        username=user.username,
        full_name=user.full_name,
        email=user.email,
        profile_image_url=user.profile_image_url,
        is_verified=user.is_verified,
        token=token,
    )


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
def signup_user(
    payload: SignupRequest,
    request: Request,
    accounts: Annotated[AccountService, Depends(get_account_service)],
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
) -> SignupResponse:
    ip = request.client.host if request.client else "unknown"
    limiter.check_signup(ip)

    email = accounts.signup(
        payload.username,
        payload.full_name,
        payload.email,
        payload.password,
    )
    return SignupResponse(email=email)


@router.post("/verify-email", response_model=AuthResponse)
def verify_email(
    payload: VerifyEmailRequest,
    response: Response,
    accounts: Annotated[AccountService, Depends(get_account_service)],
    issuer: Annotated[SessionIssuer, Depends(get_session_issuer)],
) -> AuthResponse:
    user, token = accounts.verify_email(payload.email, payload.code)
    set_session_cookie(response, token, issuer)
    return _auth_response(user, token)


@router.post("/resend-verification", response_model=SuccessResponse)
def resend_verification(
    payload: ResendVerificationRequest,
    accounts: Annotated[AccountService, Depends(get_account_service)],
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
) -> SuccessResponse:
    limiter.check_resend_verification(payload.email)
    accounts.resend_verification(payload.email)
    return SuccessResponse()


@router.post("/login", response_model=AuthResponse)
def login_user(
    payload: LoginRequest,
    response: Response,
    accounts: Annotated[AccountService, Depends(get_account_service)],
    issuer: Annotated[SessionIssuer, Depends(get_session_issuer)],
) -> AuthResponse:
    user, token = accounts.login(payload.username_or_email, payload.password)
    if token:
        set_session_cookie(response, token, issuer)
    return _auth_response(user, token)


@router.post("/logout", response_model=SuccessResponse)
def logout_user(response: Response) -> SuccessResponse:
    clear_session_cookie(response)
    return SuccessResponse()


@router.post("/forgot-password", response_model=SuccessResponse)
def forgot_password(
    payload: ForgotPasswordRequest,
    recovery: Annotated[RecoveryService, Depends(get_recovery_service)],
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
) -> SuccessResponse:
    limiter.check_forgot_password(payload.username_or_email)
    return SuccessResponse(success=recovery.forgot_password(payload.username_or_email))


@router.post("/reset-password", response_model=SuccessResponse)
def reset_password(
    payload: ResetPasswordRequest,
    recovery: Annotated[RecoveryService, Depends(get_recovery_service)],
) -> SuccessResponse:
    return SuccessResponse(
        success=recovery.reset_password(
            payload.token,
            payload.new_password,
            payload.confirm_password,
        )
    )


@router.get("/me", response_model=Optional[UserResponse])
def get_current_user(
    identity: Annotated[Optional[SessionIdentity], Depends(get_current_identity)],
    accounts: Annotated[AccountService, Depends(get_account_service)],
) -> Optional[User]:
    """Current account, or ``null`` for anonymous and stale sessions."""
    if identity is None:
        return None
    return accounts.get_account(identity.account_id)
