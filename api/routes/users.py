"""
api/routes/users.py -- User management endpoints.

Routes:
  GET    /api/users                        -- list users, public view (admin)
  GET    /api/users/stats                  -- aggregate statistics (admin)
  POST   /api/users                        -- create a user with any role (admin)
  GET    /api/users/{user_id}              -- one user (owner or admin)
  PUT    /api/users/{user_id}              -- update (owner or admin; role/isActive/password admin only)
  DELETE /api/users/{user_id}              -- delete (admin, not self)
  POST   /api/users/{user_id}/activate     -- re-enable an account (admin)
  POST   /api/users/{user_id}/deactivate   -- disable an account and revoke its sessions (admin, not self)

/stats is registered before /{user_id} so it is not captured as an id.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import (
    PublicUserOut,
    UserCreate,
    UserListResponse,
    UserOut,
    UserResponse,
    UserStats,
    UserStatsResponse,
    UserUpdate,
)
from auth.dependencies import require_admin, require_ownership_or_admin
from auth.models import User
from auth.service import AuthService
from auth.store import UserStore

router = APIRouter()


def _service(request: Request) -> AuthService:
    return request.app.state.auth_service


# ---------------------------------------------------------------------------
# Admin only
# ---------------------------------------------------------------------------


@router.get("/users", response_model=UserListResponse)
async def list_users(request: Request, current_user: User = Depends(require_admin)) -> UserListResponse:
    user_store: UserStore = request.app.state.user_store
    users = user_store.find_all()
    return UserListResponse(count=len(users), users=[PublicUserOut.from_user(u) for u in users])


@router.get("/users/stats", response_model=UserStatsResponse)
async def user_stats(request: Request, current_user: User = Depends(require_admin)) -> UserStatsResponse:
    user_store: UserStore = request.app.state.user_store
    return UserStatsResponse(stats=UserStats(**user_store.stats()))


@router.post("/users", response_model=UserResponse, status_code=201)
async def create_user(
    request: Request,
    body: UserCreate,
    current_user: User = Depends(require_admin),
) -> UserResponse:
    """Create an account directly. Unlike /auth/register, no tokens are issued."""
    data = body.model_dump()
    data["role"] = body.role.value
    user = await _service(request).create_user(data)
    return UserResponse(message="User created successfully", user=UserOut.from_user(user))


@router.delete("/users/{user_id}", response_model=UserResponse)
async def delete_user(
    request: Request,
    user_id: str,
    current_user: User = Depends(require_admin),
) -> UserResponse:
    user = _service(request).delete_user(current_user, user_id)
    return UserResponse(message="User deleted successfully", user=UserOut.from_user(user))


@router.post("/users/{user_id}/activate", response_model=UserResponse)
async def activate_user(
    request: Request,
    user_id: str,
    current_user: User = Depends(require_admin),
) -> UserResponse:
    user = await _service(request).set_active(current_user, user_id, True)
    return UserResponse(message="User activated successfully", user=UserOut.from_user(user))


@router.post("/users/{user_id}/deactivate", response_model=UserResponse)
async def deactivate_user(
    request: Request,
    user_id: str,
    current_user: User = Depends(require_admin),
) -> UserResponse:
    """Disable the account. Its access tokens stop working on the next request."""
    user = await _service(request).set_active(current_user, user_id, False)
    return UserResponse(message="User deactivated successfully", user=UserOut.from_user(user))


# ---------------------------------------------------------------------------
# Owner or admin
# ---------------------------------------------------------------------------


@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(
    request: Request,
    user_id: str,
    current_user: User = Depends(require_ownership_or_admin),
) -> UserResponse:
    user = _service(request).get_user(user_id)
    return UserResponse(user=UserOut.from_user(user))


@router.put("/users/{user_id}", response_model=UserResponse)
async def update_user(
    request: Request,
    user_id: str,
    body: UserUpdate,
    current_user: User = Depends(require_ownership_or_admin),
) -> UserResponse:
    patch = body.model_dump(exclude_unset=True)
    if body.role is not None:
        patch["role"] = body.role.value
    user = await _service(request).update_user(current_user, user_id, patch)
    return UserResponse(message="User updated successfully", user=UserOut.from_user(user))
