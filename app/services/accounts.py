import logging
from datetime import datetime
from typing import Callable, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.user import User
from app.services.errors import (
    AlreadyVerifiedError,
    ConflictError,
    ExpiredError,
    InvalidCodeError,
    InvalidCredentialsError,
    NotFoundError,
)
from app.services.mailer import Mailer
from app.services.security import (
    PasswordHasher,
    generate_verification_code_with_expiry,
    hash_token,
    token_matches,
    utcnow,
)
from app.services.sessions import SessionIssuer

logger = logging.getLogger(__name__)


def find_by_username_or_email(db: Session, username_or_email: str) -> Optional[User]:
    return (
        db.query(User)
        .filter(
            or_(
                User.username == username_or_email,
                User.email == username_or_email.lower(),
            )
        )
        .first()
    )


class AccountService:
    """Signup, email verification and login.

    Accounts move one way, from unverified to verified. Verification clears
    the outstanding code in the same UPDATE that flips ``is_verified``, so a
    code can only ever be consumed once.
    """

    def __init__(
        self,
        db: Session,
        hasher: PasswordHasher,
        issuer: SessionIssuer,
        mailer: Mailer,
        verification_ttl_hours: int = 24,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.hasher = hasher
        self.issuer = issuer
        self.mailer = mailer
        self.verification_ttl_hours = verification_ttl_hours
        self.clock = clock

    def _raise_conflict(self, existing: User, username: str) -> None:
        if existing.username == username:
            raise ConflictError("username")
        raise ConflictError("email")

    def signup(self, username: str, full_name: str, email: str, password: str) -> str:
        email = email.lower()
        existing = (
            self.db.query(User)
            .filter(or_(User.username == username, User.email == email))
            .first()
        )
        if existing:
            self._raise_conflict(existing, username)

        now = self.clock()
        code, code_hash, expires_at = generate_verification_code_with_expiry(
            self.verification_ttl_hours, now=now
        )
        user = User(
            username=username,
            full_name=full_name,
            email=email,
            hashed_password=self.hasher.hash(password),
            is_verified=False,
            email_verification_token_hash=code_hash,
            email_verification_expires_at=expires_at,
            created_at=now,
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            # lost a race against a concurrent signup with the same username/email
            self.db.rollback()
            existing = (
                self.db.query(User)
                .filter(or_(User.username == username, User.email == email))
                .first()
            )
            if existing is None:
                raise
            self._raise_conflict(existing, username)

        logger.info("Account created id=%s username=%s", user.id, user.username)
        self.mailer.send_verification_email(user.email, code)
        return user.email

    def verify_email(self, email: str, code: str) -> Tuple[User, str]:
        email = email.lower()
        user = self.db.query(User).filter(User.email == email).first()
        if not user:
            raise NotFoundError()
        if user.is_verified:
            raise AlreadyVerifiedError()
        if not token_matches(code, user.email_verification_token_hash):
            raise InvalidCodeError()
        now = self.clock()
        if user.email_verification_expires_at and user.email_verification_expires_at < now:
            raise ExpiredError()

        updated = (
            self.db.query(User)
            .filter(
                User.id == user.id,
                User.is_verified == False,  # noqa: E712
                User.email_verification_token_hash == hash_token(code),
            )
            .update(
                {
                    User.is_verified: True,
                    User.email_verification_token_hash: None,
                    User.email_verification_expires_at: None,
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        if updated != 1:
            # the code was consumed by a concurrent verify or replaced by a resend
            verified = (
                self.db.query(User.is_verified).filter(User.id == user.id).scalar()
            )
            if verified:
                raise AlreadyVerifiedError()
            raise InvalidCodeError()

        self.db.refresh(user)
        logger.info("Email verified for account id=%s", user.id)
        token = self.issuer.issue(user.id, user.username)
        self.mailer.send_welcome_email(user.email, user.username)
        return user, token

    def resend_verification(self, email: str) -> None:
        email = email.lower()
        user = self.db.query(User).filter(User.email == email).first()
        if not user:
            raise NotFoundError()
        if user.is_verified:
            raise AlreadyVerifiedError()

        now = self.clock()
        code, code_hash, expires_at = generate_verification_code_with_expiry(
            self.verification_ttl_hours, now=now
        )
        updated = (
            self.db.query(User)
            .filter(User.id == user.id, User.is_verified == False)  # noqa: E712
            .update(
                {
                    User.email_verification_token_hash: code_hash,
                    User.email_verification_expires_at: expires_at,
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        if updated != 1:
            raise AlreadyVerifiedError()

        self.mailer.send_verification_email(user.email, code)

    def login(self, username_or_email: str, password: str) -> Tuple[User, Optional[str]]:
        user = find_by_username_or_email(self.db, username_or_email)
        if not user:
            raise NotFoundError("Sorry, user does not exist")
        if not self.hasher.verify(password, user.hashed_password):
            raise InvalidCredentialsError()

        # unverified accounts see their own state but get no session
        if not user.is_verified:
            return user, None
        return user, self.issuer.issue(user.id, user.username)

    def get_account(self, account_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == account_id).first()
