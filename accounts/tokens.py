"""
Stateless signed bearer tokens.

Tokens are HS256 JWTs carrying ``sub``, ``iat`` and ``exp``. The signature
covers every claim, so tampering with any of them fails verification.
Nothing is stored server-side: verification is a pure function of the token,
the secret and the current time.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import jwt
import structlog

from accounts.errors import Unauthenticated
from accounts.models import AccessToken, Principal

logger = structlog.get_logger(__name__)

REQUIRED_CLAIMS = ["sub", "iat", "exp"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Issues and verifies first-party access tokens."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        expires_in: timedelta = timedelta(hours=2),
        clock_skew: timedelta = timedelta(seconds=60),
        clock: Callable[[], datetime] = _utcnow,
    ):
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.expires_in = expires_in
        self.clock_skew = clock_skew
        self.clock = clock

    @classmethod
    def from_config(cls, config) -> "TokenService":
        """Build a token service from application settings."""
        return cls(
            secret_key=config.secret_key,
            algorithm=config.algorithm,
            expires_in=timedelta(minutes=config.access_token_expire_minutes),
            clock_skew=timedelta(seconds=config.token_clock_skew_seconds),
        )

    def issue(self, user_id: str, username: Optional[str] = None) -> AccessToken:
        """
        Create a signed token for a verified identity.

        Args:
            user_id: Subject of the token
            username: Optional username carried for log context

        Returns:
            AccessToken with the encoded token and its claims
        """
        # JWT timestamps have second resolution.
        issued_at = self.clock().replace(microsecond=0)
        expires_at = issued_at + self.expires_in

        payload = {
            "sub": str(user_id),
            "iat": issued_at,
            "exp": expires_at,
        }
        if username:
            payload["username"] = username

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        return AccessToken(
            token=token,
            subject_id=str(user_id),
            issued_at=issued_at,
            expires_at=expires_at,
        )

    def verify(self, token: Optional[str]) -> Principal:
        """
        Verify a token and resolve its principal.

        Raises:
            Unauthenticated: If the token is absent, malformed, tampered with,
                expired, or issued too far in the future
        """
        if not token or not token.strip():
            raise Unauthenticated("Missing token")

        now = self.clock()
        try:
            # exp and iat are checked below against the injected clock.
            claims = jwt.decode(
                token.strip(),
                self.secret_key,
                algorithms=[self.algorithm],
                options={
                    "require": REQUIRED_CLAIMS,
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidSignatureError:
            logger.warning("Token signature mismatch")
            raise Unauthenticated("Invalid token")
        except jwt.PyJWTError as e:
            logger.warning("Malformed token", error=str(e))
            raise Unauthenticated("Invalid token")

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise Unauthenticated("Invalid token")

        try:
            issued_at = datetime.fromtimestamp(int(claims["iat"]), tz=timezone.utc)
            expires_at = datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError):
            raise Unauthenticated("Invalid token")

        if expires_at <= now:
            raise Unauthenticated("Token has expired")

        if issued_at > now + self.clock_skew:
            logger.warning("Token issued in the future", subject=subject, issued_at=issued_at.isoformat())
            raise Unauthenticated("Invalid token")

        return Principal(user_id=subject)
