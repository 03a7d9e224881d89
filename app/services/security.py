import hashlib
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import bcrypt


VERIFICATION_CODE_MIN = 100000
VERIFICATION_CODE_MAX = 999999
RESET_TOKEN_BYTES = 20  # 40 hex characters


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how DateTime columns are stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class PasswordHasher:
    """bcrypt hashing with a fixed work factor."""

    def __init__(self, rounds: int = 10):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        # Truncate password to 72 bytes (bcrypt limit)
        password_bytes = password.encode("utf-8")[:72]
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password_bytes, salt).decode("utf-8")

    def verify(self, password: str, hashed_password: str) -> bool:
        password_bytes = password.encode("utf-8")[:72]
        try:
            return bcrypt.checkpw(password_bytes, hashed_password.encode("utf-8"))
        except ValueError:
            # stored value is not a bcrypt hash
            return False


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def token_matches(token: str, token_hash: Optional[str]) -> bool:
    if not token_hash:
        return False
    return hmac.compare_digest(hash_token(token), token_hash)


def generate_verification_code() -> str:
    return str(secrets.randbelow(VERIFICATION_CODE_MAX - VERIFICATION_CODE_MIN + 1) + VERIFICATION_CODE_MIN)


def generate_reset_token() -> str:
    return secrets.token_hex(RESET_TOKEN_BYTES)


def generate_verification_code_with_expiry(
    hours: int = 24, now: Optional[datetime] = None
) -> Tuple[str, str, datetime]:
    code = generate_verification_code()
    issued_at = now or utcnow()
    return code, hash_token(code), issued_at + timedelta(hours=hours)


def generate_reset_token_with_expiry(
    minutes: int = 60, now: Optional[datetime] = None
) -> Tuple[str, str, datetime]:
    token = generate_reset_token()
    issued_at = now or utcnow()
    return token, hash_token(token), issued_at + timedelta(minutes=minutes)
