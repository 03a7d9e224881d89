from datetime import timedelta
from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.database import get_db
from app.services.accounts import AccountService
from app.services.errors import UnauthenticatedError
from app.services.mailer import Mailer
from app.services.rate_limit import RateLimiter
from app.services.recovery import RecoveryService
from app.services.redis_client import get_redis
from app.services.security import PasswordHasher
from app.services.sessions import SessionIdentity, SessionIssuer


bearer_scheme = HTTPBearer(auto_error=False)


@lru_cache
def get_password_hasher() -> PasswordHasher:
    return PasswordHasher(rounds=get_settings().BCRYPT_ROUNDS)


@lru_cache
def get_session_issuer() -> SessionIssuer:
    settings = get_settings()
    return SessionIssuer(
        settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
        ttl=timedelta(hours=settings.SESSION_TTL_HOURS),
    )


def get_mailer() -> Mailer:
    return Mailer(use_queue=get_settings().EMAIL_ASYNC)


def get_rate_limiter() -> RateLimiter:
    settings = get_settings()
    if not settings.RATE_LIMIT_ENABLED:
        return RateLimiter(None, enabled=False)
    return RateLimiter(get_redis())


def get_session_token(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> Optional[str]:
    """Cookie first, then the bearer header."""
    token = request.cookies.get(get_settings().SESSION_COOKIE_NAME)
    if token:
        return token
    if credentials:
        return credentials.credentials
    return None


def get_current_identity(
    token: Annotated[Optional[str], Depends(get_session_token)],
    issuer: Annotated[SessionIssuer, Depends(get_session_issuer)],
) -> Optional[SessionIdentity]:
    return issuer.resolve(token)


def require_identity(
    identity: Annotated[Optional[SessionIdentity], Depends(get_current_identity)],
) -> SessionIdentity:
    if identity is None:
        raise UnauthenticatedError()
    return identity


def get_account_service(
    db: Annotated[Session, Depends(get_db)],
    hasher: Annotated[PasswordHasher, Depends(get_password_hasher)],
    issuer: Annotated[SessionIssuer, Depends(get_session_issuer)],
    mailer: Annotated[Mailer, Depends(get_mailer)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AccountService:
    return AccountService(
        db,
        hasher,
        issuer,
        mailer,
        verification_ttl_hours=settings.VERIFICATION_TTL_HOURS,
    )


def get_recovery_service(
    db: Annotated[Session, Depends(get_db)],
    hasher: Annotated[PasswordHasher, Depends(get_password_hasher)],
    mailer: Annotated[Mailer, Depends(get_mailer)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> RecoveryService:
    return RecoveryService(
        db,
        hasher,
        mailer,
        frontend_url=settings.FRONTEND_URL,
        reset_ttl_minutes=settings.RESET_TTL_MINUTES,
        mask_account_existence=settings.MASK_ACCOUNT_EXISTENCE,
    )
