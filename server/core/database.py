"""Async database service with SQLModel and SQLAlchemy 2.0.

The users and todos tables are the source of truth. The cache_entries table
backs the SQLite cache when no Redis is configured.
"""

import time
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional
from contextlib import asynccontextmanager
from sqlmodel import SQLModel, select
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.exc import IntegrityError, OperationalError, InterfaceError

from core.config import Settings
from core.exceptions import SourceUnavailableError, UsernameTakenError
from core.logging import get_logger
from models.auth import User
from models.cache import CacheEntry
from models.database import Todo

logger = get_logger(__name__)


class Database:
    """Async database service with SQLModel."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine = None
        self.async_session = None

    async def startup(self):
        """Initialize database connection and create tables."""
        try:
            engine_kwargs: Dict[str, Any] = {"echo": self.settings.database_echo, "future": True}
            if not self.settings.is_sqlite:
                engine_kwargs["pool_size"] = self.settings.database_pool_size
                engine_kwargs["max_overflow"] = self.settings.database_max_overflow

            self.engine = create_async_engine(self.settings.database_url, **engine_kwargs)

            self.async_session = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False
            )

            async with self.engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)

            logger.info("Database initialized successfully")

        except Exception as e:
            logger.error("Database startup failed", error=str(e))
            raise

    async def shutdown(self):
        """Close database connections."""
        if self.engine:
            await self.engine.dispose()
            logger.info("Database connections closed")

    @asynccontextmanager
    async def get_session(self):
        """Get async database session.

        Connectivity failures surface as SourceUnavailableError.
        """
        if not self.async_session:
            raise SourceUnavailableError("Database not initialized")

        async with self.async_session() as session:
            try:
                yield session
            except (OperationalError, InterfaceError) as e:
                await session.rollback()
                raise SourceUnavailableError(str(e)) from e
            except Exception:
                await session.rollback()
                raise

    async def ping(self) -> bool:
        """Check database connectivity."""
        from sqlalchemy import text
        try:
            async with self.get_session() as session:
                await session.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning("Database ping failed", error=str(e))
            return False

    # ============================================================================
    # Users
    # ============================================================================

    async def list_usernames(self) -> List[str]:
        """Return every username, projecting only the username column."""
        async with self.get_session() as session:
            result = await session.execute(select(User.username))
            return list(result.scalars().all())

    async def get_user_by_username(self, username: str) -> Optional[User]:
        """Exact-match lookup by username."""
        async with self.get_session() as session:
            result = await session.execute(select(User).where(User.username == username))
            return result.scalars().first()

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        async with self.get_session() as session:
            result = await session.execute(select(User).where(User.id == user_id))
            return result.scalars().first()

    async def create_user(self, user: User) -> User:
        """Insert a user. Raises UsernameTakenError on a unique violation."""
        try:
            async with self.get_session() as session:
                session.add(user)
                await session.commit()
                await session.refresh(user)
                return user
        except IntegrityError as e:
            raise UsernameTakenError(user.username) from e

    async def update_user(self, user_id: str, **fields: Any) -> Optional[User]:
        """Apply field updates to a user. Returns None if the user is gone."""
        try:
            async with self.get_session() as session:
                result = await session.execute(select(User).where(User.id == user_id))
                user = result.scalars().first()
                if not user:
                    return None

                for name, value in fields.items():
                    setattr(user, name, value)
                user.updated_at = datetime.now(timezone.utc)

                await session.commit()
                await session.refresh(user)
                return user
        except IntegrityError as e:
            raise UsernameTakenError(fields.get("username", "")) from e

    async def delete_user(self, user_id: str) -> bool:
        """Delete a user and all of their todos."""
        async with self.get_session() as session:
            result = await session.execute(select(User).where(User.id == user_id))
            user = result.scalars().first()
            if not user:
                return False

            await session.execute(delete(Todo).where(Todo.user_id == user_id))
            await session.delete(user)
            await session.commit()
            logger.info("Deleted user", user_id=user_id)
            return True

    # ============================================================================
    # Todos
    # ============================================================================

    async def create_todo(self, todo: Todo) -> Todo:
        async with self.get_session() as session:
            session.add(todo)
            await session.commit()
            await session.refresh(todo)
            return todo

    async def get_todos_for_user(self, user_id: str) -> List[Todo]:
        async with self.get_session() as session:
            stmt = select(Todo).where(Todo.user_id == user_id).order_by(Todo.created_at.desc())
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_todo(self, todo_id: str, user_id: str) -> Optional[Todo]:
        """Get a todo by id, scoped to its owner."""
        async with self.get_session() as session:
            stmt = select(Todo).where(Todo.id == todo_id, Todo.user_id == user_id)
            result = await session.execute(stmt)
            return result.scalars().first()

    async def update_todo(self, todo_id: str, user_id: str, **fields: Any) -> Optional[Todo]:
        async with self.get_session() as session:
            stmt = select(Todo).where(Todo.id == todo_id, Todo.user_id == user_id)
            result = await session.execute(stmt)
            todo = result.scalars().first()
            if not todo:
                return None

            for name, value in fields.items():
                setattr(todo, name, value)
            todo.updated_at = datetime.now(timezone.utc)

            await session.commit()
            await session.refresh(todo)
            return todo

    async def delete_todo(self, todo_id: str, user_id: str) -> bool:
        async with self.get_session() as session:
            stmt = select(Todo).where(Todo.id == todo_id, Todo.user_id == user_id)
            result = await session.execute(stmt)
            todo = result.scalars().first()
            if not todo:
                return False

            await session.delete(todo)
            await session.commit()
            return True

    # ============================================================================
    # Cache entries (SQLite cache backend)
    # ============================================================================

    async def get_cache_entry(self, key: str, now: Optional[float] = None) -> Optional[str]:
        """Get cache value by key. Returns None if expired or not found."""
        now = time.time() if now is None else now
        async with self.get_session() as session:
            stmt = select(CacheEntry).where(CacheEntry.key == key)
            result = await session.execute(stmt)
            entry = result.scalar_one_or_none()

            if not entry:
                return None

            if entry.expires_at is not None and entry.expires_at <= now:
                # Entry expired - delete it
                await session.delete(entry)
                await session.commit()
                return None

            return entry.value

    async def set_cache_entries(self, entries: Dict[str, str], ttl: Optional[int] = None,
                                now: Optional[float] = None) -> int:
        """Upsert cache values in a single transaction. Returns count written."""
        now = time.time() if now is None else now
        expires_at = now + ttl if ttl else None

        async with self.get_session() as session:
            stmt = select(CacheEntry).where(CacheEntry.key.in_(list(entries)))
            result = await session.execute(stmt)
            existing = {entry.key: entry for entry in result.scalars().all()}

            for key, value in entries.items():
                entry = existing.get(key)
                if entry:
                    entry.value = value
                    entry.expires_at = expires_at
                    entry.created_at = now
                else:
                    session.add(CacheEntry(
                        key=key,
                        value=value,
                        expires_at=expires_at,
                        created_at=now
                    ))

            await session.commit()
            return len(entries)

    async def delete_cache_entry(self, key: str) -> bool:
        """Delete cache entry by key. Returns whether a row was removed."""
        async with self.get_session() as session:
            stmt = select(CacheEntry).where(CacheEntry.key == key)
            result = await session.execute(stmt)
            entry = result.scalar_one_or_none()

            if not entry:
                return False

            await session.delete(entry)
            await session.commit()
            return True

    async def cleanup_expired_cache(self, now: Optional[float] = None) -> int:
        """Remove all expired cache entries. Returns count deleted."""
        now = time.time() if now is None else now
        async with self.get_session() as session:
            stmt = delete(CacheEntry).where(
                CacheEntry.expires_at.isnot(None),
                CacheEntry.expires_at <= now
            )
            result = await session.execute(stmt)
            await session.commit()
            count = result.rowcount or 0
            if count > 0:
                logger.info("Cleaned up expired cache entries", count=count)
            return count
