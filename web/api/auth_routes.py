"""Auth API routes: register, login, current user, user and permission management."""
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import Field

import config
from panel.models import User
from panel.storage import storage
from web.api.utils import CamelModel
from web.auth import (
    create_access_token,
    hash_password,
    require_admin_user,
    require_user,
    verify_password,
)

router = APIRouter(prefix="/api", tags=["auth"])

Role = Literal["admin", "moderator", "user"]


class LoginRequest(CamelModel):
    username: str
    password: str


class RegisterRequest(CamelModel):
    username: str = Field(min_length=3, max_length=64)
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=6)
    role: Role = "user"


class UserResponse(CamelModel):
    id: int
    username: str
    email: str
    role: str
    created_at: datetime
    updated_at: datetime


class LoginResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


class UpdateUserRequest(CamelModel):
    username: Optional[str] = Field(None, min_length=3, max_length=64)
    email: Optional[str] = Field(None, min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: Optional[str] = Field(None, min_length=6)
    role: Optional[Role] = None


class PermissionCreate(CamelModel):
    name: str = Field(min_length=1, max_length=64)
    description: Optional[str] = None


class PermissionResponse(CamelModel):
    id: int
    name: str
    description: Optional[str]


class PermissionGrant(CamelModel):
    permission_id: int


def _login_response(user: User) -> LoginResponse:
    return LoginResponse(
        access_token=create_access_token(user),
        user=UserResponse.model_validate(user),
    )


async def _ensure_unique(username: Optional[str], email: Optional[str], exclude_id: Optional[int] = None) -> None:
    if username:
        existing = await storage.get_user_by_username(username)
        if existing and existing.id != exclude_id:
            raise HTTPException(400, "Username already exists")
    if email:
        existing = await storage.get_user_by_email(email)
        if existing and existing.id != exclude_id:
            raise HTTPException(400, "Email already exists")


async def _get_user_or_404(user_id: int) -> User:
    user = await storage.get_user(user_id)
    if not user:
        raise HTTPException(404, "User not found")
    return user


# --- Session ---


@router.post("/register", response_model=LoginResponse, status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest):
    """Create an account. The first account picks its role (the setup wizard creates an admin); later ones are plain users."""
    first_user = await storage.count_users() == 0
    if not first_user:
        settings = await storage.get_site_settings()
        if settings and not settings.enable_registration:
            raise HTTPException(403, "Registration is disabled")
    await _ensure_unique(body.username, body.email)
    user = await storage.create_user({
        "username": body.username,
        "email": body.email,
        "password": hash_password(body.password),
        "role": body.role if first_user else "user",
    })
    return _login_response(user)


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest):
    """Authenticate and return JWT."""
    user = await storage.get_user_by_username(body.username)
    if not user:
        # Bootstrap: if INITIAL_ADMIN_PASSWORD is set and matches, create admin
        if (
            config.INITIAL_ADMIN_PASSWORD
            and body.username == config.INITIAL_ADMIN_USERNAME
            and body.password == config.INITIAL_ADMIN_PASSWORD
        ):
            user = await storage.create_user({
                "username": config.INITIAL_ADMIN_USERNAME,
                "email": f"{config.INITIAL_ADMIN_USERNAME}@localhost",
                "password": hash_password(config.INITIAL_ADMIN_PASSWORD),
                "role": "admin",
            })
            return _login_response(user)
        raise HTTPException(status_code=401, detail="Invalid username or password")
    if not verify_password(body.password, user.password):
        raise HTTPException(status_code=401, detail="Invalid username or password")
    return _login_response(user)


@router.get("/user", response_model=UserResponse)
async def get_me(user: User = Depends(require_user)):
    """Get current authenticated user."""
    return user


# --- Users (admin) ---


@router.get("/users", response_model=list[UserResponse])
async def list_users(admin: User = Depends(require_admin_user)):
    """List all users (admin only)."""
    return await storage.get_users()


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(body: RegisterRequest, admin: User = Depends(require_admin_user)):
    """Create a new user with any role (admin only)."""
    await _ensure_unique(body.username, body.email)
    return await storage.create_user({
        "username": body.username,
        "email": body.email,
        "password": hash_password(body.password),
        "role": body.role,
    })


@router.patch("/users/{user_id}", response_model=UserResponse)
async def update_user(user_id: int, body: UpdateUserRequest, admin: User = Depends(require_admin_user)):
    """Update username, email, password or role (admin only)."""
    await _get_user_or_404(user_id)
    updates = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}
    await _ensure_unique(updates.get("username"), updates.get("email"), exclude_id=user_id)
    if "password" in updates:
        updates["password"] = hash_password(updates["password"])
    return await storage.update_user(user_id, updates)


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(user_id: int, admin: User = Depends(require_admin_user)):
    """Delete a user (admin only). Cannot delete self."""
    if user_id == admin.id:
        raise HTTPException(400, "Cannot delete your own account")
    if not await storage.delete_user(user_id):
        raise HTTPException(404, "User not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# --- Permissions (admin) ---


@router.get("/permissions", response_model=list[PermissionResponse])
async def list_permissions(admin: User = Depends(require_admin_user)):
    return await storage.get_permissions()


@router.post("/permissions", response_model=PermissionResponse, status_code=status.HTTP_201_CREATED)
async def create_permission(body: PermissionCreate, admin: User = Depends(require_admin_user)):
    if await storage.get_permission_by_name(body.name):
        raise HTTPException(400, "Permission already exists")
    return await storage.create_permission(body.model_dump())


@router.get("/users/{user_id}/permissions", response_model=list[PermissionResponse])
async def list_user_permissions(user_id: int, admin: User = Depends(require_admin_user)):
    await _get_user_or_404(user_id)
    return await storage.get_user_permissions(user_id)


@router.post("/users/{user_id}/permissions", response_model=list[PermissionResponse], status_code=status.HTTP_201_CREATED)
async def grant_permission(user_id: int, body: PermissionGrant, admin: User = Depends(require_admin_user)):
    """Grant a permission; granting one the user already has is a no-op."""
    await _get_user_or_404(user_id)
    if not await storage.get_permission(body.permission_id):
        raise HTTPException(404, "Permission not found")
    current = await storage.get_user_permissions(user_id)
    if all(p.id != body.permission_id for p in current):
        await storage.add_user_permission(user_id, body.permission_id)
    return await storage.get_user_permissions(user_id)


@router.delete("/users/{user_id}/permissions/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_permission(user_id: int, permission_id: int, admin: User = Depends(require_admin_user)):
    await storage.remove_user_permission(user_id, permission_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
