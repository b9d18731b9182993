"""Auth API — registration, login, current user.

Learn: Routes for user authentication:
- POST /auth/register → create an account, returns a bearer token
- POST /auth/login → username-or-email + password → bearer token
- GET /auth/me → current user info (requires a token)

Register and login both answer with {token, type: "Bearer", message}.
Failures are raised as typed errors and translated in api/errors.py.
"""

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from tasktrack.auth.dependencies import (
    CurrentPrincipal,
    get_current_principal,
    get_resolver,
)
from tasktrack.auth.resolver import PrincipalResolver

router = APIRouter(prefix="/auth")


# ─── Schemas ─────────────────────────────────────────────


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginRequest(BaseModel):
    username_or_email: str = Field(..., alias="usernameOrEmail", min_length=1)
    password: str = Field(..., min_length=1)

    model_config = {"populate_by_name": True}

    @field_validator("username_or_email", "password")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class AuthResponse(BaseModel):
    token: str
    type: str = "Bearer"
    message: str


class UserRead(BaseModel):
    id: uuid.UUID
    username: str
    email: str
    created_at: datetime

    model_config = {
        "from_attributes": True,
        "alias_generator": to_camel,
        "populate_by_name": True,
    }


# ─── Register ────────────────────────────────────────────


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    body: RegisterRequest,
    resolver: PrincipalResolver = Depends(get_resolver),
):
    """Create a new user account and return a token for it."""
    user = await resolver.register(body.username, body.email, body.password)
    return AuthResponse(
        token=resolver.issue_token(user),
        message="User registered successfully",
    )


# ─── Login ───────────────────────────────────────────────


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    resolver: PrincipalResolver = Depends(get_resolver),
):
    """Login with username or email and password → bearer token."""
    user = await resolver.authenticate(body.username_or_email, body.password)
    return AuthResponse(
        token=resolver.issue_token(user),
        message="Login successful",
    )


# ─── Current user ───────────────────────────────────────


@router.get("/me", response_model=UserRead)
async def get_me(
    principal: CurrentPrincipal = Depends(get_current_principal),
    resolver: PrincipalResolver = Depends(get_resolver),
):
    """Get the current authenticated user's info."""
    user = await resolver.credentials.find_by_id(principal.id)
    return user
