"""Authentication routes for registration, login, and username checks."""

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from core.container import container
from services.user_auth import UserAuthService
from services.username import UsernameAvailabilityService

router = APIRouter(prefix="/auth", tags=["auth"])


class RegisterRequest(BaseModel):
    username: str
    password: str
    first_name: str = ""
    last_name: str = ""


class LoginRequest(BaseModel):
    username: str
    password: str


class UsernameCheckResponse(BaseModel):
    username: str
    available: bool


def get_user_auth_service() -> UserAuthService:
    return container.user_auth_service()


def get_username_service() -> UsernameAvailabilityService:
    return container.username_service()


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    user_auth: UserAuthService = Depends(get_user_auth_service),
):
    """Register a new user and return a bearer token."""
    user, token = await user_auth.register(
        username=request.username,
        password=request.password,
        first_name=request.first_name,
        last_name=request.last_name,
    )
    return {"token": token, "user": user.to_public()}


@router.post("/login")
async def login(
    request: LoginRequest,
    user_auth: UserAuthService = Depends(get_user_auth_service),
):
    """Login with username and password."""
    user, token = await user_auth.login(username=request.username, password=request.password)
    return {"token": token, "user": user.to_public()}


@router.post("/logout")
async def logout():
    """
    Logout acknowledgement.
    Tokens are stateless, so the client ends the session by discarding its token.
    """
    return {"message": "Logged out successfully"}


@router.get("/username-check/{username}", response_model=UsernameCheckResponse)
async def check_username_availability(
    username: str,
    usernames: UsernameAvailabilityService = Depends(get_username_service),
):
    """Report whether a username is free to register."""
    available = await usernames.is_available(username)
    return UsernameCheckResponse(username=username, available=available)
