"""Application exception hierarchy."""

from typing import Iterable, Tuple


class MuchToDoError(Exception):
    """Base exception for all application errors."""


class CacheUnavailableError(MuchToDoError):
    """The cache backend could not be reached or rejected the operation."""

    def __init__(self, backend: str, message: str, keys: Iterable[str] = ()):
        self.backend = backend
        self.keys: Tuple[str, ...] = tuple(keys)
        super().__init__(f"[{backend}] {message}")


class SourceUnavailableError(MuchToDoError):
    """The persistent user/todo store could not be reached."""


class UsernameTakenError(MuchToDoError):
    """Username is already claimed by another account."""

    def __init__(self, username: str):
        self.username = username
        super().__init__(f"Username '{username}' is already taken")


class InvalidCredentialsError(MuchToDoError):
    """Unknown username or wrong password."""


class UserNotFoundError(MuchToDoError):
    """User account does not exist."""


class TodoNotFoundError(MuchToDoError):
    """Todo does not exist or belongs to another user."""


class ValidationError(MuchToDoError):
    """Request data failed a business rule."""
