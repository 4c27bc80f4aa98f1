"""Todo CRUD routes for the authenticated user."""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from core.container import container
from middleware.auth import current_user_id
from services.todo import TodoService

router = APIRouter(prefix="/todos", tags=["todos"])


class CreateTodoRequest(BaseModel):
    title: str
    description: str = ""
    due_date: Optional[datetime] = None


class UpdateTodoRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    completed: Optional[bool] = None
    due_date: Optional[datetime] = None


def get_todo_service() -> TodoService:
    return container.todo_service()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_todo(
    request: CreateTodoRequest,
    user_id: str = Depends(current_user_id),
    todos: TodoService = Depends(get_todo_service),
):
    todo = await todos.create(user_id, request.title, request.description, request.due_date)
    return todo.to_dict()


@router.get("")
async def get_all_todos(
    user_id: str = Depends(current_user_id),
    todos: TodoService = Depends(get_todo_service),
):
    return [todo.to_dict() for todo in await todos.list_for_user(user_id)]


@router.get("/{todo_id}")
async def get_todo(
    todo_id: str,
    user_id: str = Depends(current_user_id),
    todos: TodoService = Depends(get_todo_service),
):
    todo = await todos.get(user_id, todo_id)
    return todo.to_dict()


@router.put("/{todo_id}")
async def update_todo(
    todo_id: str,
    request: UpdateTodoRequest,
    user_id: str = Depends(current_user_id),
    todos: TodoService = Depends(get_todo_service),
):
    todo = await todos.update(user_id, todo_id, **request.model_dump(exclude_unset=True))
    return todo.to_dict()


@router.delete("/{todo_id}")
async def delete_todo(
    todo_id: str,
    user_id: str = Depends(current_user_id),
    todos: TodoService = Depends(get_todo_service),
):
    await todos.delete(user_id, todo_id)
    return {"message": "Todo deleted successfully"}
