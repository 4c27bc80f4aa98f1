"""Routes for the authenticated user's own account."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from core.container import container
from middleware.auth import current_user_id
from services.user_auth import UserAuthService

router = APIRouter(prefix="/users", tags=["users"])


class UpdateUserRequest(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    old_password: str
    new_password: str


def get_user_auth_service() -> UserAuthService:
    return container.user_auth_service()


@router.get("/me")
async def get_current_user(
    user_id: str = Depends(current_user_id),
    user_auth: UserAuthService = Depends(get_user_auth_service),
):
    user = await user_auth.get_user(user_id)
    return user.to_public()


@router.put("/me")
async def update_user(
    request: UpdateUserRequest,
    user_id: str = Depends(current_user_id),
    user_auth: UserAuthService = Depends(get_user_auth_service),
):
    """Update profile fields; changing the username re-checks availability."""
    user = await user_auth.update_user(
        user_id,
        first_name=request.first_name,
        last_name=request.last_name,
        username=request.username,
    )
    return user.to_public()


@router.put("/me/password")
async def change_password(
    request: ChangePasswordRequest,
    user_id: str = Depends(current_user_id),
    user_auth: UserAuthService = Depends(get_user_auth_service),
):
    await user_auth.change_password(user_id, request.old_password, request.new_password)
    return {"message": "Password updated successfully"}


@router.delete("/me")
async def delete_user(
    user_id: str = Depends(current_user_id),
    user_auth: UserAuthService = Depends(get_user_auth_service),
):
    """Delete the account and all of its todos."""
    await user_auth.delete_user(user_id)
    return {"message": "User deleted successfully"}
