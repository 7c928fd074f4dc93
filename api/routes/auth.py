"""
api/routes/auth.py -- Registration, login, token refresh and profile endpoints.

Routes:
  POST /api/auth/register          -- create a regular user; returns user + token pair (201)
  POST /api/auth/login             -- password login; returns user + token pair
  POST /api/auth/refresh           -- rotate a refresh token into a new pair
  POST /api/auth/logout            -- revoke one refresh token, or all of them
  GET  /api/auth/profile           -- current user (requires auth)
  PUT  /api/auth/profile           -- update name/email/age/city (requires auth)
  POST /api/auth/change-password   -- verify + replace password, revoke all sessions

Security:
  [H2] register and login are rate-limited per client IP (LOGIN_RATE_LIMIT).
  [C1] Login failures return the same 401 body for unknown email, wrong
       password and deactivated accounts. UserStore.authenticate() also
       equalises timing -- use it, never inline the lookup + compare.
  [M5] Cache-Control: no-store on every response that carries tokens.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from api.limiter import CREDENTIAL_RATE_LIMIT, limiter
from api.models import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    LogoutRequest,
    MessageResponse,
    ProfileUpdate,
    RefreshRequest,
    RegisterRequest,
    TokensOut,
    TokensResponse,
    UserOut,
    UserResponse,
)
from auth.dependencies import authenticate_token
from auth.models import User
from auth.service import AuthService

# Auth policy:
# - POST /api/auth/register:         public
# - POST /api/auth/login:            public
# - POST /api/auth/refresh:          public -- the refresh token is the credential
# - POST /api/auth/logout:           requires auth (authenticate_token)
# - GET  /api/auth/profile:          requires auth
# - PUT  /api/auth/profile:          requires auth
# - POST /api/auth/change-password:  requires auth
router = APIRouter()


def _service(request: Request) -> AuthService:
    return request.app.state.auth_service


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(CREDENTIAL_RATE_LIMIT)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/register", response_model=AuthResponse, status_code=201)
async def register(request: Request, response: Response, body: RegisterRequest) -> AuthResponse:
    """Register a new account with role "user" and log it in.

    400 on shape or password-strength failures (every unmet rule listed),
    409 if the email is already registered.
    """
    result = await _service(request).register(body.model_dump())
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return AuthResponse(
        message="User registered successfully",
        user=UserOut.from_user(result.user),
        tokens=TokensOut.from_pair(result.tokens),
    )


@limiter.limit(CREDENTIAL_RATE_LIMIT)  # [H2]
@router.post("/auth/login", response_model=AuthResponse)
async def login(request: Request, response: Response, body: LoginRequest) -> AuthResponse:
    """Authenticate with email and password.

    Returns the same generic error for unknown email and wrong password
    ("Invalid credentials") to avoid leaking account existence [C1].
    """
    result = await _service(request).login(body.email, body.password)
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return AuthResponse(
        message="Login successful",
        user=UserOut.from_user(result.user),
        tokens=TokensOut.from_pair(result.tokens),
    )


@router.post("/auth/refresh", response_model=TokensResponse)
async def refresh(request: Request, response: Response, body: RefreshRequest) -> TokensResponse:
    """Exchange a refresh token for a new pair. The presented token stops working."""
    tokens = await _service(request).refresh(body.refresh_token)
    response.headers["Cache-Control"] = "no-store"  # [M5]
    return TokensResponse(message="Token refreshed successfully", tokens=TokensOut.from_pair(tokens))


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    body: Optional[LogoutRequest] = None,
    current_user: User = Depends(authenticate_token),
) -> MessageResponse:
    """End this device's session (refreshToken given) or every session (omitted)."""
    _service(request).logout(current_user.id, body.refresh_token if body else None)
    return MessageResponse(message="Logout successful")


@router.get("/auth/profile", response_model=UserResponse)
async def get_profile(current_user: User = Depends(authenticate_token)) -> UserResponse:
    return UserResponse(user=UserOut.from_user(current_user))


@router.put("/auth/profile", response_model=UserResponse)
async def update_profile(
    request: Request,
    body: ProfileUpdate,
    current_user: User = Depends(authenticate_token),
) -> UserResponse:
    """Update the caller's own profile. Password and role changes are refused here."""
    user = await _service(request).update_profile(current_user.id, body.model_dump(exclude_unset=True))
    return UserResponse(message="Profile updated successfully", user=UserOut.from_user(user))


@router.post("/auth/change-password", response_model=MessageResponse)
async def change_password(
    request: Request,
    body: ChangePasswordRequest,
    current_user: User = Depends(authenticate_token),
) -> MessageResponse:
    """Replace the caller's password and revoke every refresh token they hold."""
    await _service(request).change_password(current_user.id, body.current_password, body.new_password)
    return MessageResponse(message="Password changed successfully. Please login again.")
