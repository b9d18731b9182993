"""Principal resolution — registration, login, and token → user.

Learn: This is where credentials turn into a User row.

- register(): advisory uniqueness checks (username first, then email),
  then save. The unique constraints in the database are the real guard:
  if two registrations race past the checks, the loser's save() raises
  DuplicateKeyError, which maps to the same "taken" errors.
- authenticate(): username lookup, falling back to email. The password
  check goes through the hasher, which compares in constant time.
- resolve_from_token(): verify the token, then load the subject. A
  valid token whose user has since been deleted is reported as
  PrincipalVanishedError, not as a bad token.
"""

import uuid
from datetime import datetime
from typing import Callable

import structlog
from pydantic.networks import validate_email
from pydantic_core import PydanticCustomError

from tasktrack.auth.jwt import TokenCodec
from tasktrack.auth.password import PasswordHasher
from tasktrack.db.models import User, utcnow
from tasktrack.db.stores import CredentialStore, DuplicateKeyError

logger = structlog.get_logger()


class AuthError(Exception):
    """Base class for authentication failures."""


class UsernameTakenError(AuthError):
    def __init__(self, username: str):
        super().__init__("Username is already in use")
        self.username = username


class EmailTakenError(AuthError):
    def __init__(self, email: str):
        super().__init__("Email is already in use")
        self.email = email


class PrincipalNotFoundError(AuthError):
    """No user matches the given username or email."""


class BadCredentialsError(AuthError):
    """Password didn't match."""


class PrincipalVanishedError(AuthError):
    """Token was valid but its subject no longer exists."""


def _normalize_email(value: str) -> str:
    """Normalize the way EmailStr does at registration (lowercased domain).

    Anything that isn't a valid address is looked up as given.
    """
    try:
        return validate_email(value)[1]
    except PydanticCustomError:
        return value


class PrincipalResolver:
    """Turns credentials and tokens into authenticated users."""

    def __init__(
        self,
        credentials: CredentialStore,
        codec: TokenCodec,
        hasher: PasswordHasher,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.credentials = credentials
        self.codec = codec
        self.hasher = hasher
        self.clock = clock

    # ─── Register ────────────────────────────────────────

    async def register(self, username: str, email: str, password: str) -> User:
        """Create a new user. Username uniqueness is checked before email."""
        if await self.credentials.exists_by_username(username):
            raise UsernameTakenError(username)
        if await self.credentials.exists_by_email(email):
            raise EmailTakenError(email)

        user = User(
            username=username,
            email=email,
            password_hash=self.hasher.hash(password),
        )
        try:
            user = await self.credentials.save(user)
        except DuplicateKeyError as e:
            logger.info("auth.register_race_lost", field=e.field)
            if e.field == "username":
                raise UsernameTakenError(username)
            raise EmailTakenError(email)

        logger.info("auth.registered", user_id=str(user.id))
        return user

    # ─── Login ───────────────────────────────────────────

    async def authenticate(self, username_or_email: str, password: str) -> User:
        """Check a username-or-email + password pair."""
        user = await self.credentials.find_by_username(username_or_email)
        if user is None:
            user = await self.credentials.find_by_email(_normalize_email(username_or_email))
        if user is None:
            raise PrincipalNotFoundError(f"No user matches '{username_or_email}'")

        if not self.hasher.verify(password, user.password_hash):
            raise BadCredentialsError("Invalid credentials")
        return user

    # ─── Tokens ──────────────────────────────────────────

    def issue_token(self, user: User) -> str:
        return self.codec.issue(str(user.id), self.clock())

    async def resolve_from_token(self, encoded: str) -> User:
        """Verify a token and load its user.

        TokenError subclasses propagate unchanged from the codec.
        """
        subject = self.codec.verify(encoded, self.clock())
        try:
            user_id = uuid.UUID(subject)
        except ValueError:
            raise PrincipalVanishedError(f"Token subject '{subject}' is not a user id")

        user = await self.credentials.find_by_id(user_id)
        if user is None:
            raise PrincipalVanishedError(f"User {subject} no longer exists")
        return user
