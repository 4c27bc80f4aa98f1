"""Todo CRUD scoped to the owning user."""

from datetime import datetime
from typing import Any, List, Optional

from core.database import Database
from core.exceptions import TodoNotFoundError, ValidationError
from core.logging import get_logger
from models.database import Todo

logger = get_logger(__name__)

_UPDATABLE = ("title", "description", "completed", "due_date")
# Fields an explicit null clears rather than skips
_CLEARABLE = ("due_date",)


class TodoService:
    """Todos are only ever visible to their owner; others get not-found."""

    def __init__(self, database: Database):
        self.database = database

    async def create(self, user_id: str, title: str, description: str = "",
                     due_date: Optional[datetime] = None) -> Todo:
        if not title or not title.strip():
            raise ValidationError("Title is required")
        todo = await self.database.create_todo(Todo(
            user_id=user_id,
            title=title.strip(),
            description=description,
            due_date=due_date,
        ))
        logger.info("Todo created", todo_id=todo.id, user_id=user_id)
        return todo

    async def list_for_user(self, user_id: str) -> List[Todo]:
        return await self.database.get_todos_for_user(user_id)

    async def get(self, user_id: str, todo_id: str) -> Todo:
        todo = await self.database.get_todo(todo_id, user_id)
        if not todo:
            raise TodoNotFoundError(todo_id)
        return todo

    async def update(self, user_id: str, todo_id: str, **fields: Any) -> Todo:
        changes = {
            k: v for k, v in fields.items()
            if k in _UPDATABLE and (v is not None or k in _CLEARABLE)
        }
        if "title" in changes:
            if not changes["title"].strip():
                raise ValidationError("Title cannot be empty")
            changes["title"] = changes["title"].strip()

        todo = await self.database.update_todo(todo_id, user_id, **changes)
        if not todo:
            raise TodoNotFoundError(todo_id)
        return todo

    async def delete(self, user_id: str, todo_id: str) -> None:
        if not await self.database.delete_todo(todo_id, user_id):
            raise TodoNotFoundError(todo_id)
        logger.info("Todo deleted", todo_id=todo_id, user_id=user_id)
