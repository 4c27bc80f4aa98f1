"""Stateless JWT session tokens."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from jose import jwt, JWTError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Issues and validates signed session tokens.

    Tokens carry ``sub``, ``iat`` and ``exp`` (epoch seconds). A token is valid
    only when the signature verifies and the validation time is strictly
    before ``exp``. There is no server-side session or revocation state.
    """

    def __init__(
        self,
        secret_key: str,
        expiration_hours: int,
        algorithm: str = "HS256",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._secret_key = secret_key
        self._lifetime = timedelta(hours=expiration_hours)
        self._algorithm = algorithm
        self._clock = clock or _utcnow

    def _now(self) -> int:
        return int(self._clock().timestamp())

    def issue(self, subject: str) -> str:
        """Create a signed token for the subject."""
        if not subject:
            raise ValueError("Token subject must be non-empty")

        issued_at = self._now()
        payload = {
            "sub": str(subject),
            "iat": issued_at,
            "exp": issued_at + int(self._lifetime.total_seconds()),
        }
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def validate(self, token: str) -> Optional[str]:
        """Return the token's subject, or None if the token is not valid."""
        if not token:
            return None

        try:
            # Expiry is checked below against our own clock
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"verify_exp": False, "verify_iat": False},
            )
        except JWTError as e:
            logger.debug(f"Token verification failed: {e}")
            return None

        subject = payload.get("sub")
        expires_at = payload.get("exp")
        if not subject or not isinstance(expires_at, (int, float)):
            logger.debug("Token missing sub or exp claim")
            return None

        if not self._now() < expires_at:
            logger.debug("Token expired")
            return None

        return subject
