"""JWT token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication. The token
carries the user's id as `sub`, plus `iat` and `exp`, signed with HMAC
(HS256) over header+payload. Nothing is stored server-side, and there is
no revocation list: a token is good until it expires.

Both issue() and verify() take `now` explicitly instead of reading the
clock, so expiry behaviour is deterministic and easy to test. The codec
itself is frozen — build it once at startup and share it.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache

import jwt

from tasktrack.config import settings


class TokenError(Exception):
    """Raised when token verification fails."""


class MalformedTokenError(TokenError):
    """Token can't be decoded or is missing required claims."""


class BadSignatureError(TokenError):
    """Signature doesn't match the signing key."""


class ExpiredTokenError(TokenError):
    """Token expiry is at or before the verification time."""


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _numeric_date(moment: datetime) -> int | float:
    """Seconds since the epoch, as an int whenever the value is whole."""
    ts = moment.timestamp()
    return int(ts) if ts.is_integer() else ts


@dataclass(frozen=True)
class TokenCodec:
    """Issues and verifies signed bearer tokens.

    Learn: iat is truncated to whole seconds (JWT NumericDate) and
    exp = iat + ttl. A token is rejected as expired once now >= exp.
    """

    secret: str
    algorithm: str = "HS256"
    ttl_ms: int = 86_400_000

    def issue(self, subject: str, now: datetime) -> str:
        """Create a signed token for `subject`, valid for ttl_ms from `now`."""
        issued_at = _as_utc(now).replace(microsecond=0)
        expires_at = issued_at + timedelta(milliseconds=self.ttl_ms)
        payload = {
            "sub": subject,
            "iat": _numeric_date(issued_at),
            "exp": _numeric_date(expires_at),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, encoded: str, now: datetime) -> str:
        """Verify `encoded` at time `now` and return its subject unchanged.

        Raises MalformedTokenError, BadSignatureError or ExpiredTokenError.
        """
        try:
            payload = jwt.decode(
                encoded,
                self.secret,
                algorithms=[self.algorithm],
                options={
                    # Time claims are checked below against the supplied `now`
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "require": ["sub", "iat", "exp"],
                },
            )
        except jwt.InvalidSignatureError:
            raise BadSignatureError("Token signature does not match")
        except jwt.InvalidTokenError as e:
            raise MalformedTokenError(f"Invalid token: {e}")

        subject = payload["sub"]
        expires = payload["exp"]
        if not isinstance(subject, str) or not subject:
            raise MalformedTokenError("Invalid token: subject must be a non-empty string")
        if isinstance(expires, bool) or not isinstance(expires, (int, float)):
            raise MalformedTokenError("Invalid token: exp must be a number")

        if expires <= _as_utc(now).timestamp():
            raise ExpiredTokenError("Token has expired")
        return subject


@lru_cache(maxsize=1)
def get_token_codec() -> TokenCodec:
    """The process-wide codec, built from settings on first use."""
    return TokenCodec(
        secret=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        ttl_ms=settings.token_ttl_ms,
    )
