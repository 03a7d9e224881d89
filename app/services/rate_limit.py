import logging
from typing import Optional

import redis

from app.services.errors import TooManyRequestsError

logger = logging.getLogger(__name__)

SIGNUP_IP_LIMIT_DAY = 5
SIGNUP_IP_LIMIT_10MIN = 3
FORGOT_PASSWORD_LIMIT_HOUR = 5
RESEND_COOLDOWN_SECONDS = 60
RESEND_DAILY_LIMIT = 20


class RateLimiter:
    """Fixed-window counters kept in Redis.

    A Redis outage fails open: the request proceeds and a warning is logged.
    """

    def __init__(self, client: Optional[redis.Redis], enabled: bool = True):
        self.client = client
        self.enabled = enabled and client is not None

    def hit(self, key: str, limit: int, expire_seconds: int) -> None:
        if not self.enabled:
            return
        try:
            current = self.client.incr(key)
            if current == 1:
                self.client.expire(key, expire_seconds)
        except redis.RedisError as exc:
            logger.warning("Rate limit check skipped for %s: %s", key, exc)
            return
        if current > limit:
            raise TooManyRequestsError()

    def cooldown(self, key: str, seconds: int) -> None:
        """Allow one call per ``seconds`` for ``key``."""
        if not self.enabled:
            return
        try:
            acquired = self.client.set(key, "1", ex=seconds, nx=True)
        except redis.RedisError as exc:
            logger.warning("Cooldown check skipped for %s: %s", key, exc)
            return
        if not acquired:
            raise TooManyRequestsError("Too frequent, try again later")

    def check_signup(self, ip: str) -> None:
        self.hit(f"signup:ip:{ip}:day", SIGNUP_IP_LIMIT_DAY, 24 * 3600)
        self.hit(f"signup:ip:{ip}:10m", SIGNUP_IP_LIMIT_10MIN, 600)

    def check_forgot_password(self, identifier: str) -> None:
        self.hit(f"forgot:{identifier.lower()}:hour", FORGOT_PASSWORD_LIMIT_HOUR, 3600)

    def check_resend_verification(self, email: str) -> None:
        self.cooldown(f"resend:cooldown:{email}", RESEND_COOLDOWN_SECONDS)
        self.hit(f"resend:email:{email}:day", RESEND_DAILY_LIMIT, 24 * 3600)
