"""User account models."""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict
from sqlmodel import SQLModel, Field, Column, DateTime
from sqlalchemy import func
import bcrypt


def new_id() -> str:
    return uuid.uuid4().hex


class User(SQLModel, table=True):
    """User account for authentication."""

    __tablename__ = "users"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=32)
    # Unique index is the final authority on username uniqueness; the cache is only a fast path.
    username: str = Field(unique=True, index=True, max_length=32)
    first_name: str = Field(default="", max_length=100)
    last_name: str = Field(default="", max_length=100)
    password_hash: str = Field(max_length=255)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), server_default=func.now())
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_column=Column(DateTime(timezone=True), onupdate=func.now())
    )

    def set_password(self, password: str) -> None:
        """Hash and set password using bcrypt."""
        salt = bcrypt.gensalt()
        self.password_hash = bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')

    def verify_password(self, password: str) -> bool:
        """Verify password against stored hash."""
        return bcrypt.checkpw(
            password.encode('utf-8'),
            self.password_hash.encode('utf-8')
        )

    def to_public(self) -> Dict[str, Any]:
        """Serializable view without the password hash."""
        return {
            "id": self.id,
            "username": self.username,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def create(cls, username: str, password: str, first_name: str = "", last_name: str = "") -> "User":
        """Factory method to create a user with hashed password."""
        user = cls(
            username=username,
            password_hash="",  # Will be set below
            first_name=first_name.strip(),
            last_name=last_name.strip(),
        )
        user.set_password(password)
        return user
