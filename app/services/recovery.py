import logging
from datetime import datetime
from typing import Callable

from sqlalchemy.orm import Session

from app.models.user import User
from app.services.accounts import find_by_username_or_email
from app.services.errors import InvalidOrExpiredTokenError, MismatchError, NotFoundError
from app.services.mailer import Mailer
from app.services.security import (
    PasswordHasher,
    generate_reset_token_with_expiry,
    hash_token,
    utcnow,
)

logger = logging.getLogger(__name__)


class RecoveryService:
    def __init__(
        self,
        db: Session,
        hasher: PasswordHasher,
        mailer: Mailer,
        frontend_url: str,
        reset_ttl_minutes: int = 60,
        mask_account_existence: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.hasher = hasher
        self.mailer = mailer
        self.frontend_url = frontend_url.rstrip("/")
        self.reset_ttl_minutes = reset_ttl_minutes
        self.mask_account_existence = mask_account_existence
        self.clock = clock

    def reset_link(self, token: str) -> str:
        return f"{self.frontend_url}/reset-password/{token}"

    def forgot_password(self, username_or_email: str) -> bool:
        user = find_by_username_or_email(self.db, username_or_email)
        if not user:
            if self.mask_account_existence:
                return True
            raise NotFoundError()

        token, token_hash, expires_at = generate_reset_token_with_expiry(
            self.reset_ttl_minutes, now=self.clock()
        )
        self.db.query(User).filter(User.id == user.id).update(
            {
                User.reset_token_hash: token_hash,
                User.reset_token_expires_at: expires_at,
            },
            synchronize_session=False,
        )
        self.db.commit()

        logger.info("Password reset requested for account id=%s", user.id)
        self.mailer.send_password_reset_email(user.email, self.reset_link(token))
        return True

    def reset_password(self, token: str, new_password: str, confirm_password: str) -> bool:
        if new_password != confirm_password:
            raise MismatchError()

        token_hash = hash_token(token)
        user = self.db.query(User).filter(User.reset_token_hash == token_hash).first()
        now = self.clock()
        if not user or not user.reset_token_expires_at or user.reset_token_expires_at <= now:
            raise InvalidOrExpiredTokenError()

        # keyed by the still-valid token so a concurrent replay updates nothing
        updated = (
            self.db.query(User)
            .filter(
                User.reset_token_hash == token_hash,
                User.reset_token_expires_at > now,
            )
            .update(
                {
                    User.hashed_password: self.hasher.hash(new_password),
                    User.reset_token_hash: None,
                    User.reset_token_expires_at: None,
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        if updated != 1:
            raise InvalidOrExpiredTokenError()

        logger.info("Password reset for account id=%s", user.id)
        self.mailer.send_reset_success_email(user.email)
        return True
