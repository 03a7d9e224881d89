import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionIdentity:
    account_id: int
    username: str


class SessionIssuer:
    """Signs and resolves stateless session credentials.

    The credential is an HS256 JWT carrying the account id (``sub``) and the
    username. Nothing password-derived is embedded. Resolution never raises:
    anything that does not decode to a valid, unexpired identity resolves to
    ``None`` so the caller can treat the request as anonymous.
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256", ttl: timedelta = timedelta(hours=24)):
        self._secret_key = secret_key
        self.algorithm = algorithm
        self.ttl = ttl

    @property
    def max_age_seconds(self) -> int:
        return int(self.ttl.total_seconds())

    def issue(self, account_id: int, username: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(account_id),
            "username": username,
            "iat": now,
            "exp": now + self.ttl,
        }
        return jwt.encode(payload, self._secret_key, algorithm=self.algorithm)

    def resolve(self, token: Optional[str]) -> Optional[SessionIdentity]:
        if not token:
            return None
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self.algorithm])
            user_id_raw = payload.get("sub")
            username = payload.get("username")
            if user_id_raw is None or not isinstance(username, str):
                return None
            # sub travels as a string
            account_id = int(user_id_raw)
        except (JWTError, ValueError, TypeError) as exc:
            logger.debug("Rejected session credential: %s", exc)
            return None
        return SessionIdentity(account_id=account_id, username=username)
