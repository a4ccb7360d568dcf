"""Project, membership, project-task and invitation endpoints."""
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ... import crud, invitations, models, schemas
from ...config import Settings
from ...notifications import Mailer
from ..dependencies import get_app_settings, get_current_user, get_db, get_mailer

router = APIRouter(tags=["projects"])


def _project(project: models.Project) -> dict:
    return schemas.ProjectResponse.model_validate(project).model_dump(mode="json")


def _task(task: models.Task) -> dict:
    return schemas.TaskResponse.model_validate(task).model_dump(mode="json")


@router.post("", response_model=schemas.ApiResponse, status_code=201)
def create_project(
    project: schemas.ProjectCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Create a new project.

    - **title**: 3-100 characters
    - **description**: Optional, up to 500 characters
    - **members**: Optional user IDs; the creator is always added
    """
    result = crud.create_project(
        db,
        current_user,
        title=project.title,
        description=project.description,
        member_ids=project.members,
    )
    return schemas.ApiResponse(message="Project created successfully", data={"project": _project(result)})


@router.get("", response_model=schemas.ApiResponse)
def list_projects(
    status: models.ProjectStatus = Query(models.ProjectStatus.ACTIVE, description="Filter by status"),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List the projects visible to the caller (all projects for admins)."""
    projects = crud.list_projects(db, current_user, status=status)
    return schemas.ApiResponse(data={"projects": [_project(p) for p in projects]})


@router.get("/{project_id}", response_model=schemas.ApiResponse)
def get_project(
    project_id: UUID,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    project = crud.get_project_for(db, current_user, project_id)
    return schemas.ApiResponse(data={"project": _project(project)})


@router.put("/{project_id}", response_model=schemas.ApiResponse)
def update_project(
    project_id: UUID,
    changes: schemas.ProjectUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    project = crud.update_project(db, current_user, project_id, changes)
    return schemas.ApiResponse(message="Project updated successfully", data={"project": _project(project)})


@router.delete("/{project_id}", response_model=schemas.ApiResponse)
def delete_project(
    project_id: UUID,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    crud.delete_project(db, current_user, project_id)
    return schemas.ApiResponse(message="Project deleted successfully")


# ============================================================================
# Members
# ============================================================================

@router.get("/{project_id}/members", response_model=schemas.ApiResponse)
def get_project_members(
    project_id: UUID,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    project = crud.get_project_members(db, current_user, project_id)
    members = schemas.ProjectMembersResponse(
        members=[schemas.UserSummary.model_validate(m) for m in project.members],
        created_by=schemas.UserSummary.model_validate(project.creator) if project.creator else None,
    )
    return schemas.ApiResponse(data=members.model_dump(mode="json"))


@router.post("/{project_id}/members", response_model=schemas.ApiResponse)
def add_members(
    project_id: UUID,
    request: schemas.MemberIdsRequest,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    project = crud.add_members(db, current_user, project_id, request.member_ids)
    return schemas.ApiResponse(message="Members added successfully", data={"project": _project(project)})


@router.delete("/{project_id}/members", response_model=schemas.ApiResponse)
def remove_members(
    project_id: UUID,
    request: schemas.MemberIdsRequest,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    project = crud.remove_members(db, current_user, project_id, request.member_ids)
    return schemas.ApiResponse(message="Members removed successfully", data={"project": _project(project)})


# ============================================================================
# Tasks
# ============================================================================

@router.post("/{project_id}/tasks", response_model=schemas.ApiResponse, status_code=201)
def create_task(
    project_id: UUID,
    task: schemas.TaskCreate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    result = crud.create_task(db, current_user, project_id, task, mailer=mailer)
    return schemas.ApiResponse(message="Task created successfully", data={"task": _task(result)})


@router.get("/{project_id}/tasks", response_model=schemas.ApiResponse)
def list_project_tasks(
    project_id: UUID,
    status: Optional[models.TaskStatus] = Query(None, description="Filter by status"),
    priority: Optional[models.TaskPriority] = Query(None, description="Filter by priority"),
    assigned_to: Optional[UUID] = Query(None, description="Filter by assignee"),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    tasks = crud.list_project_tasks(
        db, current_user, project_id, status=status, priority=priority, assigned_to=assigned_to
    )
    return schemas.ApiResponse(data={"tasks": [_task(t) for t in tasks]})


@router.get("/{project_id}/tasks/stats", response_model=schemas.ApiResponse)
def get_task_stats(
    project_id: UUID,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Task counts grouped by status and by priority."""
    stats = schemas.TaskStatsResponse(**crud.get_task_stats(db, current_user, project_id))
    return schemas.ApiResponse(data=stats.model_dump(mode="json"))


# ============================================================================
# Invitations
# ============================================================================

@router.post("/{project_id}/invite", response_model=schemas.ApiResponse)
def invite_user(
    project_id: UUID,
    request: schemas.InviteRequest,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    mailer: Mailer = Depends(get_mailer),
):
    """
    Invite someone to the project by email.

    Existing users are added right away; anyone else receives an
    invitation link valid for seven days.
    """
    result = invitations.issue_invitation(db, settings, mailer, current_user, project_id, request.email)
    if result.outcome == invitations.OUTCOME_ADDED:
        return schemas.ApiResponse(
            message="User added to project successfully",
            data={
                "outcome": result.outcome,
                "user": schemas.UserResponse.model_validate(result.user).model_dump(mode="json"),
            },
        )
    return schemas.ApiResponse(
        message="Invitation sent successfully",
        data={
            "outcome": result.outcome,
            "email": result.email,
            "invitation_token": result.token,
            "email_sent": result.delivery.delivered,
        },
    )
