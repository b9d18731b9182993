"""FastAPI auth dependencies.

Learn: These are used as Depends() in route handlers to extract
and validate the current principal from the request.

Two layers, on purpose:
1. get_current_principal_optional — the "soft" layer. Reads the Bearer
   header, resolves it, and attaches the principal to request.state.
   A missing, malformed, expired or orphaned token is logged and
   ignored; the request carries on anonymously.
2. get_current_principal — the "hard" layer, applied on protected
   routers. Rejects anonymous requests with 401.

So authentication fails open and authorization fails closed.
"""

import uuid
from dataclasses import dataclass
from typing import Optional

import structlog
from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from tasktrack.auth.jwt import TokenError, get_token_codec
from tasktrack.auth.password import get_password_hasher
from tasktrack.auth.resolver import AuthError, PrincipalResolver
from tasktrack.db.engine import get_db
from tasktrack.db.models import User
from tasktrack.db.stores import CredentialStore

logger = structlog.get_logger()

BEARER_PREFIX = "Bearer "


class UnauthenticatedError(Exception):
    """Raised when a protected route is hit without a principal."""


@dataclass(frozen=True)
class CurrentPrincipal:
    """The authenticated user making the request.

    Learn: A detached, read-only view of the user — no password hash,
    no ORM session. Downstream code scopes every task query by `id`.
    """

    id: uuid.UUID
    username: str
    email: str

    @classmethod
    def from_user(cls, user: User) -> "CurrentPrincipal":
        return cls(id=user.id, username=user.username, email=user.email)


def get_resolver(db: AsyncSession = Depends(get_db)) -> PrincipalResolver:
    return PrincipalResolver(
        credentials=CredentialStore(db),
        codec=get_token_codec(),
        hasher=get_password_hasher(),
    )


class RequestAuthenticator:
    """Per-request interception: Bearer header → principal on request.state.

    State per request: unauthenticated → authenticated (terminal), or
    unauthenticated → unauthenticated. Never raises for bad credentials.
    """

    def __init__(self, resolver: PrincipalResolver):
        self.resolver = resolver

    async def authenticate(
        self, request: Request, authorization: Optional[str]
    ) -> Optional[CurrentPrincipal]:
        existing = getattr(request.state, "principal", None)
        if existing is not None:
            return existing

        if not authorization or not authorization.startswith(BEARER_PREFIX):
            return None

        token = authorization[len(BEARER_PREFIX):].strip()
        try:
            user = await self.resolver.resolve_from_token(token)
        except (TokenError, AuthError) as e:
            logger.warning(
                "auth.token_rejected",
                reason=type(e).__name__,
                detail=str(e),
                path=request.url.path,
            )
            return None

        principal = CurrentPrincipal.from_user(user)
        request.state.principal = principal
        structlog.contextvars.bind_contextvars(principal_id=str(principal.id))
        return principal


async def get_current_principal_optional(
    request: Request,
    authorization: Optional[str] = Header(None),
    resolver: PrincipalResolver = Depends(get_resolver),
) -> Optional[CurrentPrincipal]:
    """Extract current principal (optional — returns None if no valid auth)."""
    return await RequestAuthenticator(resolver).authenticate(request, authorization)


async def get_current_principal(
    principal: Optional[CurrentPrincipal] = Depends(get_current_principal_optional),
) -> CurrentPrincipal:
    """Extract current principal (required — 401 if anonymous)."""
    if principal is None:
        raise UnauthenticatedError("Authentication required")
    return principal
