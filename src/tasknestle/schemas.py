"""Pydantic schemas for request/response validation."""
import re
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from .models import ProjectStatus, TaskPriority, TaskStatus, UserRole


def normalize_email(value: str) -> str:
    """Lower-case an address that already passed ``EmailStr`` validation."""
    return value.lower()


def strip_text(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def check_password_strength(value: str) -> str:
    """Require at least one lowercase letter, one uppercase letter and one digit."""
    if not (re.search(r"[a-z]", value) and re.search(r"[A-Z]", value) and re.search(r"\d", value)):
        raise ValueError(
            "Password must contain at least one uppercase letter, one lowercase letter, and one number"
        )
    return value


# ============================================================================
# Envelope
# ============================================================================

class ApiResponse(BaseModel):
    """Envelope shared by every endpoint."""

    success: bool = True
    message: Optional[str] = None
    data: Optional[Any] = None
    errors: Optional[list[dict]] = None


# ============================================================================
# User Schemas
# ============================================================================

class UserSummary(BaseModel):
    """Denormalized user reference embedded in other resources."""

    id: UUID
    name: str
    email: str

    model_config = ConfigDict(from_attributes=True)


class UserResponse(UserSummary):
    """Full user view (never includes the password hash)."""

    role: UserRole
    email_verified: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class LoginRequest(BaseModel):
    """Credentials for POST /auth/login."""

    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return normalize_email(value)


class UserCreate(BaseModel):
    """Admin-created user with an explicit password (kept exactly as typed)."""

    name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: UserRole = UserRole.MEMBER

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value: Any) -> Any:
        return strip_text(value)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return normalize_email(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return check_password_strength(value)


class UserCreateWithCredentials(BaseModel):
    """Admin-created user with a generated password mailed to them."""

    name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    role: UserRole = UserRole.MEMBER
    project_id: Optional[UUID] = None

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return normalize_email(value)


class ProfileUpdate(BaseModel):
    """Self-service profile update."""

    name: Optional[str] = Field(None, min_length=2, max_length=50)
    email: Optional[EmailStr] = None

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: Optional[str]) -> Optional[str]:
        return normalize_email(value) if value is not None else None


class ChangePasswordRequest(BaseModel):
    """Password change for the current user."""

    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)

    @field_validator("new_password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return check_password_strength(value)


class UserRoleUpdate(BaseModel):
    role: UserRole


class AddUserToProjectRequest(BaseModel):
    user_id: UUID
    project_id: UUID


# ============================================================================
# Project Schemas
# ============================================================================

class ProjectCreate(BaseModel):
    """Schema for creating a new project."""

    title: str = Field(..., min_length=3, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    members: list[UUID] = Field(default_factory=list, description="Initial member user IDs")

    model_config = ConfigDict(str_strip_whitespace=True)


class ProjectUpdate(BaseModel):
    """Schema for updating a project. Omitted fields are left unchanged."""

    title: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    status: Optional[ProjectStatus] = None
    members: Optional[list[UUID]] = Field(None, description="Replacement member list")

    model_config = ConfigDict(str_strip_whitespace=True)


class MemberIdsRequest(BaseModel):
    """Bulk member add/remove."""

    member_ids: list[UUID] = Field(..., min_length=1)


class ProjectSummary(BaseModel):
    id: UUID
    title: str
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ProjectResponse(BaseModel):
    """Project with members and creator resolved."""

    id: UUID
    title: str
    description: Optional[str] = None
    status: ProjectStatus
    members: list[UserSummary] = Field(default_factory=list)
    created_by: Optional[UserSummary] = Field(None, validation_alias="creator")
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class ProjectMembersResponse(BaseModel):
    members: list[UserSummary]
    created_by: Optional[UserSummary] = None


# ============================================================================
# Task Schemas
# ============================================================================

class TaskCreate(BaseModel):
    """Schema for creating a task inside a project."""

    title: str = Field(..., min_length=3, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    assigned_to: Optional[UUID] = None
    due_date: Optional[datetime] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class TaskUpdate(BaseModel):
    """
    Schema for updating a task.

    Only fields present in the request body are applied; an explicit
    ``null`` for ``assigned_to`` or ``due_date`` clears the value.
    """

    title: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assigned_to: Optional[UUID] = None
    due_date: Optional[datetime] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class CommentResponse(BaseModel):
    id: UUID
    task_id: UUID
    text: str
    created_by: Optional[UserSummary] = Field(None, validation_alias="author")
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TaskResponse(BaseModel):
    """Task with assignee, creator and project resolved."""

    id: UUID
    project_id: UUID
    project: Optional[ProjectSummary] = None
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    assigned_to: Optional[UserSummary] = Field(None, validation_alias="assignee")
    due_date: Optional[datetime] = None
    created_by: Optional[UserSummary] = Field(None, validation_alias="creator")
    comment_count: int = 0
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class TaskDetailResponse(TaskResponse):
    """Single-task view including its comments, oldest first."""

    comments: list[CommentResponse] = Field(default_factory=list)


class StatCount(BaseModel):
    key: str
    count: int


class TaskStatsResponse(BaseModel):
    status_stats: list[StatCount]
    priority_stats: list[StatCount]


# ============================================================================
# Comment Schemas
# ============================================================================

class CommentCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=500)

    model_config = ConfigDict(str_strip_whitespace=True)


class CommentUpdate(CommentCreate):
    pass


# ============================================================================
# Invitation Schemas
# ============================================================================

class InviteRequest(BaseModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return normalize_email(value)


class AcceptInvitationRequest(BaseModel):
    """Redeem an invitation token by creating an account."""

    token: str = Field(..., min_length=1)
    name: str = Field(..., min_length=2, max_length=50)
    password: str = Field(..., min_length=6)

    @field_validator("token", "name", mode="before")
    @classmethod
    def strip_fields(cls, value: Any) -> Any:
        return strip_text(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return check_password_strength(value)
