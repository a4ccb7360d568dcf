"""SQLAlchemy database models."""
from datetime import datetime
from uuid import uuid4
import enum

from sqlalchemy import (
    Column,
    String,
    Text,
    DateTime,
    ForeignKey,
    Enum,
    Boolean,
    Table,
    Uuid,
)
from sqlalchemy.orm import declarative_base, relationship

# Base class for all models
Base = declarative_base()


# Association table for project membership (set semantics per project)
project_members = Table(
    'project_members',
    Base.metadata,
    Column('project_id', Uuid, ForeignKey('projects.id', ondelete='CASCADE'), primary_key=True),
    Column('user_id', Uuid, ForeignKey('users.id', ondelete='CASCADE'), primary_key=True, index=True),
    Column('joined_at', DateTime, nullable=False, default=datetime.utcnow),
)


class UserRole(str, enum.Enum):
    """Global user role enum."""

    ADMIN = "admin"
    MEMBER = "member"


class ProjectStatus(str, enum.Enum):
    """Project status enum."""

    ACTIVE = "active"
    ARCHIVED = "archived"
    COMPLETED = "completed"


class TaskStatus(str, enum.Enum):
    """Task status enum, one value per kanban column."""

    TODO = "todo"
    DISCOVERY = "discovery"
    IN_PROGRESS = "in-progress"
    REVIEW = "review"
    TESTING = "testing"
    COMPLETED = "completed"
    HOLD = "hold"
    CANCELLED = "cancelled"


class TaskPriority(str, enum.Enum):
    """Task priority enum."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class User(Base):
    """
    User account.

    Users sign in with email and password; the password is stored as a
    salted PBKDF2 hash (see ``security.hash_password``).
    """

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid4)
    name = Column(String(50), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(
        Enum(UserRole, name="user_role", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=UserRole.MEMBER,
        index=True
    )
    email_verified = Column(Boolean, nullable=False, default=False)

    # Audit fields
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    projects = relationship("Project", secondary=project_members, back_populates="members")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role.value})>"


class Project(Base):
    """
    Project model.

    The creator is always part of ``members``; the service layer enforces
    this on create, update and member removal.
    """

    __tablename__ = "projects"

    id = Column(Uuid, primary_key=True, default=uuid4)
    title = Column(String(100), nullable=False)
    description = Column(Text)
    status = Column(
        Enum(ProjectStatus, name="project_status", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=ProjectStatus.ACTIVE,
        index=True
    )

    # Audit fields
    created_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    members = relationship(
        "User",
        secondary=project_members,
        back_populates="projects",
        order_by=project_members.c.joined_at,
    )
    creator = relationship("User", foreign_keys=[created_by])

    @property
    def member_ids(self) -> set:
        return {member.id for member in self.members}

    def __repr__(self) -> str:
        return f"<Project {self.id}: {self.title}>"


class Task(Base):
    """
    Task within a project.

    ``project_id`` is a plain reference: deleting a project leaves its tasks
    in place, and such tasks resolve to a missing project.
    """

    __tablename__ = "tasks"

    id = Column(Uuid, primary_key=True, default=uuid4)
    project_id = Column(Uuid, nullable=False, index=True)

    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    # values_callable stores enum values ("in-progress"), not names
    status = Column(
        Enum(TaskStatus, name="task_status", values_callable=lambda obj: [e.value for e in obj]),
        nullable=False,
        default=TaskStatus.TODO,
        index=True
    )
    priority = Column(
        Enum(TaskPriority, name="task_priority", values_callable=lambda obj: [e.value for e in obj]),
        nullable=False,
        default=TaskPriority.MEDIUM,
        index=True
    )
    assigned_to = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    due_date = Column(DateTime, nullable=True, index=True)

    # Audit fields
    created_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    project = relationship(
        "Project",
        primaryjoin="foreign(Task.project_id) == Project.id",
        viewonly=True,
    )
    assignee = relationship("User", foreign_keys=[assigned_to])
    creator = relationship("User", foreign_keys=[created_by])
    comments = relationship(
        "Comment",
        primaryjoin="Task.id == foreign(Comment.task_id)",
        order_by="Comment.created_at",
        viewonly=True,
    )

    @property
    def comment_count(self) -> int:
        return len(self.comments)

    def __repr__(self) -> str:
        return f"<Task {self.id}: {self.title[:30]}>"


class Comment(Base):
    """Comment on a task."""

    __tablename__ = "comments"

    id = Column(Uuid, primary_key=True, default=uuid4)
    task_id = Column(Uuid, nullable=False, index=True)
    text = Column(String(500), nullable=False)

    # Audit fields
    created_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    author = relationship("User", foreign_keys=[created_by])

    def __repr__(self) -> str:
        return f"<Comment {self.id} on task {self.task_id}>"
