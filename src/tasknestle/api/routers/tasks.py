"""Task and task-comment endpoints."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ... import crud, models, schemas
from ...notifications import Mailer
from ..dependencies import get_current_user, get_db, get_mailer

router = APIRouter(tags=["tasks"])


def _task(task: models.Task) -> dict:
    return schemas.TaskResponse.model_validate(task).model_dump(mode="json")


def _comment(comment: models.Comment) -> dict:
    return schemas.CommentResponse.model_validate(comment).model_dump(mode="json")


# Registered before /{task_id} so "my-tasks" is not parsed as an id
@router.get("/my-tasks", response_model=schemas.ApiResponse)
def get_my_tasks(
    status: Optional[models.TaskStatus] = Query(None, description="Filter by status"),
    priority: Optional[models.TaskPriority] = Query(None, description="Filter by priority"),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Tasks assigned to the caller; admins get every task."""
    tasks = crud.get_my_tasks(db, current_user, status=status, priority=priority)
    return schemas.ApiResponse(data={"tasks": [_task(t) for t in tasks]})


@router.get("/{task_id}", response_model=schemas.ApiResponse)
def get_task(
    task_id: UUID,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = crud.get_task_for(db, current_user, task_id)
    detail = schemas.TaskDetailResponse.model_validate(task).model_dump(mode="json")
    return schemas.ApiResponse(data={"task": detail})


@router.put("/{task_id}", response_model=schemas.ApiResponse)
def update_task(
    task_id: UUID,
    changes: schemas.TaskUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """
    Update a task.

    Only the fields sent are changed. Send `"assigned_to": null` to
    unassign or `"due_date": null` to clear the due date.
    """
    task = crud.update_task(db, current_user, task_id, changes, mailer=mailer)
    return schemas.ApiResponse(message="Task updated successfully", data={"task": _task(task)})


@router.delete("/{task_id}", response_model=schemas.ApiResponse)
def delete_task(
    task_id: UUID,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    crud.delete_task(db, current_user, task_id)
    return schemas.ApiResponse(message="Task deleted successfully")


@router.post("/{task_id}/comments", response_model=schemas.ApiResponse, status_code=201)
def add_comment(
    task_id: UUID,
    comment: schemas.CommentCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = crud.add_comment(db, current_user, task_id, comment.text)
    return schemas.ApiResponse(message="Comment added successfully", data={"comment": _comment(result)})


@router.get("/{task_id}/comments", response_model=schemas.ApiResponse)
def list_comments(
    task_id: UUID,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    comments = crud.list_comments(db, current_user, task_id)
    return schemas.ApiResponse(data={"comments": [_comment(c) for c in comments]})
