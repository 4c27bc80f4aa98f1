"""User registration, login, and account management."""

import logging
import re
from typing import Optional, Tuple

from constants import PASSWORD_MIN_LENGTH, USERNAME_PATTERN
from core.config import Settings
from core.database import Database
from core.exceptions import (
    InvalidCredentialsError,
    UserNotFoundError,
    UsernameTakenError,
    ValidationError,
)
from models.auth import User
from services.token import TokenService
from services.username import UsernameAvailabilityService

logger = logging.getLogger(__name__)

_USERNAME_RE = re.compile(USERNAME_PATTERN)


def validate_username(username: str) -> None:
    if not _USERNAME_RE.match(username or ""):
        raise ValidationError(
            "Username must be 3-32 characters of letters, digits, '_', '.' or '-'"
        )


def validate_password(password: str) -> None:
    if len(password or "") < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")


class UserAuthService:
    """Handles user authentication, registration, and account changes."""

    def __init__(
        self,
        database: Database,
        tokens: TokenService,
        usernames: UsernameAvailabilityService,
        settings: Settings,
    ):
        self.database = database
        self.tokens = tokens
        self.usernames = usernames
        self.settings = settings

    async def register(
        self, username: str, password: str, first_name: str = "", last_name: str = ""
    ) -> Tuple[User, str]:
        """Create an account and return it with a fresh session token."""
        validate_username(username)
        validate_password(password)

        if not await self.usernames.is_available(username):
            raise UsernameTakenError(username)

        # A concurrent registration can still win; create_user raises on the unique index
        user = await self.database.create_user(
            User.create(username=username, password=password,
                        first_name=first_name, last_name=last_name)
        )
        await self.usernames.mark_taken(user.username)

        logger.info(f"User registered: {user.username}")
        return user, self.tokens.issue(user.id)

    async def login(self, username: str, password: str) -> Tuple[User, str]:
        """Authenticate and return the user with a fresh session token."""
        user = await self.database.get_user_by_username(username)
        if not user or not user.verify_password(password):
            raise InvalidCredentialsError("Invalid username or password")

        logger.info(f"User logged in: {user.username}")
        return user, self.tokens.issue(user.id)

    async def get_user(self, user_id: str) -> User:
        user = await self.database.get_user_by_id(user_id)
        if not user:
            raise UserNotFoundError(user_id)
        return user

    async def update_user(
        self,
        user_id: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        username: Optional[str] = None,
    ) -> User:
        """Update profile fields. A username change moves the cache marker."""
        current = await self.get_user(user_id)
        changes = {}
        if first_name is not None:
            changes["first_name"] = first_name.strip()
        if last_name is not None:
            changes["last_name"] = last_name.strip()

        renaming = username is not None and username != current.username
        if renaming:
            validate_username(username)
            if not await self.usernames.is_available(username):
                raise UsernameTakenError(username)
            changes["username"] = username

        if not changes:
            return current

        user = await self.database.update_user(user_id, **changes)
        if not user:
            raise UserNotFoundError(user_id)

        if renaming:
            await self.usernames.release(current.username)
            await self.usernames.mark_taken(user.username)
            logger.info(f"Username changed: {current.username} -> {user.username}")
        return user

    async def change_password(self, user_id: str, old_password: str, new_password: str) -> None:
        user = await self.get_user(user_id)
        if not user.verify_password(old_password):
            raise InvalidCredentialsError("Current password is incorrect")
        validate_password(new_password)

        user.set_password(new_password)
        await self.database.update_user(user_id, password_hash=user.password_hash)
        logger.info(f"Password changed for user: {user.username}")

    async def delete_user(self, user_id: str) -> None:
        """Delete the account and its todos, then free the username."""
        user = await self.get_user(user_id)
        if not await self.database.delete_user(user_id):
            raise UserNotFoundError(user_id)
        await self.usernames.release(user.username)
        logger.info(f"User deleted: {user.username}")
