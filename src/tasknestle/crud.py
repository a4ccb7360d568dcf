"""CRUD operations for users, projects, tasks and comments.

Every operation re-fetches what it needs, raises ``NotFound`` for missing
entities, checks the policy in ``permissions`` and only then writes.
"""
import logging
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from . import models, schemas
from .errors import (
    AlreadyMember,
    AssigneeNotMember,
    Conflict,
    NotFound,
    ValidationFailed,
)
from .notifications import DeliveryResult, Mailer
from .permissions import (
    can_access_project,
    can_access_task,
    can_create_task,
    can_delete_comment,
    can_delete_project,
    can_delete_task,
    can_modify_comment,
    can_modify_project,
    can_modify_task,
    ensure,
    is_admin,
)
from .security import generate_password, hash_password, verify_password

logger = logging.getLogger("tasknestle.crud")

RECENT_LIMIT = 5


def _dedupe(ids: Iterable[UUID]) -> list[UUID]:
    seen = set()
    result = []
    for item in ids:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def _resolve_users(db: Session, user_ids: Iterable[UUID]) -> list[models.User]:
    """
    Load users for ``user_ids`` in the given order, dropping duplicates.

    Raises:
        ValidationFailed: If any id does not match a user
    """
    ids = _dedupe(user_ids)
    if not ids:
        return []
    found = {u.id: u for u in db.query(models.User).filter(models.User.id.in_(ids)).all()}
    if len(found) != len(ids):
        missing = [str(i) for i in ids if i not in found]
        logger.warning(f"Unknown member ids: {', '.join(missing)}")
        raise ValidationFailed("One or more member IDs are invalid")
    return [found[i] for i in ids]


def _log_delivery(result: DeliveryResult, what: str) -> None:
    if not result.delivered:
        logger.warning(f"Email not delivered ({what}): {result.error}")


# ============================================================================
# Users
# ============================================================================

def get_user(db: Session, user_id: UUID) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == email.strip().lower()).first()


def list_users(db: Session) -> list[models.User]:
    """All users, newest first."""
    return db.query(models.User).order_by(models.User.created_at.desc()).all()


def _new_user(
    db: Session,
    name: str,
    email: str,
    password: str,
    role: models.UserRole,
    email_verified: bool,
) -> models.User:
    email = email.strip().lower()
    if get_user_by_email(db, email):
        logger.warning(f"Attempted to create duplicate user {email}")
        raise Conflict("User already exists with this email")

    db_user = models.User(
        name=name.strip(),
        email=email,
        password_hash=hash_password(password),
        role=role,
        email_verified=email_verified,
    )
    db.add(db_user)
    return db_user


def create_user(
    db: Session,
    name: str,
    email: str,
    password: str,
    role: models.UserRole = models.UserRole.MEMBER,
    email_verified: bool = False,
) -> models.User:
    """
    Create a user account.

    Args:
        db: Database session
        name: Display name
        email: Email address (stored lower-cased)
        password: Plain-text password, hashed before storage
        role: Global role
        email_verified: Whether the address is already trusted

    Returns:
        Created user

    Raises:
        Conflict: If the email is already registered
    """
    db_user = _new_user(db, name, email, password, role, email_verified)
    db.commit()
    db.refresh(db_user)

    logger.info(f"Created user {db_user.id} ({db_user.email}) with role {db_user.role.value}")
    return db_user


def update_profile(
    db: Session,
    user: models.User,
    name: Optional[str] = None,
    email: Optional[str] = None,
) -> models.User:
    """
    Update the caller's own name and/or email.

    Raises:
        Conflict: If the new email belongs to another account
    """
    if email is not None:
        email = email.strip().lower()
        if email != user.email:
            existing = get_user_by_email(db, email)
            if existing and existing.id != user.id:
                raise Conflict("Email is already taken")
            user.email = email
    if name is not None:
        user.name = name.strip()

    db.commit()
    db.refresh(user)
    logger.debug(f"Updated profile of user {user.id}")
    return user


def change_password(db: Session, user: models.User, current_password: str, new_password: str) -> None:
    """
    Replace the caller's password after checking the current one.

    Raises:
        ValidationFailed: If ``current_password`` is wrong
    """
    if not verify_password(current_password, user.password_hash):
        logger.warning(f"Wrong current password for user {user.id}")
        raise ValidationFailed("Current password is incorrect")

    user.password_hash = hash_password(new_password)
    db.commit()
    logger.info(f"User {user.id} changed password")


def update_user_role(db: Session, user_id: UUID, role: models.UserRole) -> models.User:
    db_user = get_user(db, user_id)
    if not db_user:
        raise NotFound("User not found")

    db_user.role = role
    db.commit()
    db.refresh(db_user)
    logger.info(f"Set role of user {user_id} to {role.value}")
    return db_user


def delete_user(db: Session, admin: models.User, user_id: UUID) -> None:
    """
    Delete a user account.

    Memberships go with the user; projects, tasks and comments stay and
    lose their reference to it.

    Raises:
        NotFound: If the user does not exist
        Conflict: If an admin tries to delete their own account
    """
    db_user = get_user(db, user_id)
    if not db_user:
        raise NotFound("User not found")
    if db_user.id == admin.id:
        raise Conflict("You cannot delete your own account")

    db.query(models.Project).filter(models.Project.created_by == user_id).update(
        {models.Project.created_by: None}, synchronize_session=False
    )
    db.query(models.Task).filter(models.Task.created_by == user_id).update(
        {models.Task.created_by: None}, synchronize_session=False
    )
    db.query(models.Task).filter(models.Task.assigned_to == user_id).update(
        {models.Task.assigned_to: None}, synchronize_session=False
    )
    db.query(models.Comment).filter(models.Comment.created_by == user_id).update(
        {models.Comment.created_by: None}, synchronize_session=False
    )
    db.delete(db_user)
    db.commit()

    logger.info(f"Admin {admin.id} deleted user {user_id}")


def create_user_with_credentials(
    db: Session,
    mailer: Mailer,
    name: str,
    email: str,
    role: models.UserRole = models.UserRole.MEMBER,
    project_id: Optional[UUID] = None,
) -> tuple[models.User, str, Optional[models.Project], DeliveryResult]:
    """
    Create a pre-verified user with a generated password and mail it to them.

    Args:
        db: Database session
        mailer: Mailer for the credentials email
        name: Display name
        email: Email address
        role: Global role
        project_id: Optional project to add the new user to

    Returns:
        Tuple of (user, generated password, project or None, delivery result)

    Raises:
        Conflict: If the email is already registered
        NotFound: If ``project_id`` is given but no such project exists
    """
    project = None
    if project_id is not None:
        project = db.query(models.Project).filter(models.Project.id == project_id).first()
        if not project:
            raise NotFound("Project not found")

    password = generate_password()
    db_user = _new_user(db, name, email, password, role, email_verified=True)
    if project is not None:
        project.members.append(db_user)
    db.commit()
    db.refresh(db_user)

    logger.info(f"Created user {db_user.id} with generated credentials"
                + (f" in project {project.id}" if project else ""))

    delivery = mailer.send_login_credentials(
        db_user.email, db_user.name, password, project.title if project else None
    )
    _log_delivery(delivery, f"credentials for {db_user.email}")
    return db_user, password, project, delivery


def add_user_to_project(
    db: Session,
    mailer: Mailer,
    user_id: UUID,
    project_id: UUID,
) -> tuple[models.User, models.Project, DeliveryResult]:
    """
    Add an existing user to a project and notify them.

    Raises:
        NotFound: If the user or project does not exist
        AlreadyMember: If the user is already in the project
    """
    db_user = get_user(db, user_id)
    if not db_user:
        raise NotFound("User not found")
    project = db.query(models.Project).filter(models.Project.id == project_id).first()
    if not project:
        raise NotFound("Project not found")
    if db_user.id in project.member_ids:
        raise AlreadyMember("User is already a project member")

    project.members.append(db_user)
    db.commit()
    logger.info(f"Added user {user_id} to project {project_id}")

    delivery = mailer.send_login_credentials(db_user.email, db_user.name, None, project.title)
    _log_delivery(delivery, f"project notice for {db_user.email}")
    return db_user, project, delivery


def get_dashboard_stats(db: Session) -> dict:
    """Totals and the most recent users and projects for the admin dashboard."""
    return {
        "stats": {
            "total_users": db.query(func.count(models.User.id)).scalar(),
            "total_projects": db.query(func.count(models.Project.id)).scalar(),
            "active_projects": db.query(func.count(models.Project.id))
            .filter(models.Project.status == models.ProjectStatus.ACTIVE)
            .scalar(),
            "total_tasks": db.query(func.count(models.Task.id)).scalar(),
        },
        "recent_users": db.query(models.User)
        .order_by(models.User.created_at.desc())
        .limit(RECENT_LIMIT)
        .all(),
        "recent_projects": db.query(models.Project)
        .order_by(models.Project.created_at.desc())
        .limit(RECENT_LIMIT)
        .all(),
    }


# ============================================================================
# Projects
# ============================================================================

def get_project(db: Session, project_id: UUID) -> models.Project:
    """
    Fetch a project by id.

    Raises:
        NotFound: If the project does not exist
    """
    project = db.query(models.Project).filter(models.Project.id == project_id).first()
    if not project:
        raise NotFound("Project not found")
    return project


def create_project(
    db: Session,
    user: models.User,
    title: str,
    description: Optional[str] = None,
    member_ids: Iterable[UUID] = (),
) -> models.Project:
    """
    Create a project owned by ``user``.

    The creator is always a member; duplicate ids collapse to one membership.

    Raises:
        ValidationFailed: If any member id is unknown
    """
    members = [m for m in _resolve_users(db, member_ids) if m.id != user.id]

    db_project = models.Project(
        title=title,
        description=description,
        created_by=user.id,
    )
    db_project.members = [user] + members
    db.add(db_project)
    db.commit()
    db.refresh(db_project)

    logger.info(f"User {user.id} created project {db_project.id} with {len(db_project.members)} members")
    return db_project


def list_projects(
    db: Session,
    user: models.User,
    status: Optional[models.ProjectStatus] = models.ProjectStatus.ACTIVE,
) -> list[models.Project]:
    """
    Projects visible to ``user``, most recently updated first.

    Admins see every project; everyone else sees the projects they belong to.
    ``status=None`` disables the status filter.
    """
    query = db.query(models.Project)
    if status is not None:
        query = query.filter(models.Project.status == status)
    if not is_admin(user):
        query = query.join(
            models.project_members,
            models.project_members.c.project_id == models.Project.id,
        ).filter(models.project_members.c.user_id == user.id)

    return query.order_by(models.Project.updated_at.desc()).all()


def get_project_for(db: Session, user: models.User, project_id: UUID) -> models.Project:
    """
    Fetch a project the caller may see.

    Raises:
        NotFound: If the project does not exist
        Forbidden: If the caller is not admin, creator or member
    """
    project = get_project(db, project_id)
    ensure(can_access_project(user, project), user, "Access denied - not a project member")
    return project


def update_project(
    db: Session,
    user: models.User,
    project_id: UUID,
    changes: schemas.ProjectUpdate,
) -> models.Project:
    """
    Apply the fields present in ``changes`` to a project.

    A ``members`` list replaces the membership wholesale and must still
    contain the creator.

    Raises:
        NotFound: If the project does not exist
        Forbidden: If the caller may not modify the project
        ValidationFailed: If any member id is unknown
        Conflict: If the new member list drops the creator
    """
    project = get_project(db, project_id)
    ensure(can_modify_project(user, project), user, "Access denied - not a project member")

    update_data = changes.model_dump(exclude_unset=True)

    if update_data.get("members") is not None:
        member_ids = _dedupe(update_data["members"])
        if project.created_by is not None and project.created_by not in member_ids:
            raise Conflict("Cannot remove project creator")
        project.members = _resolve_users(db, member_ids)

    if update_data.get("title") is not None:
        project.title = update_data["title"]
    if "description" in update_data:
        project.description = update_data["description"]
    if update_data.get("status") is not None:
        project.status = update_data["status"]

    db.commit()
    db.refresh(project)
    logger.debug(f"User {user.id} updated project {project_id}: {sorted(update_data)}")
    return project


def delete_project(db: Session, user: models.User, project_id: UUID) -> None:
    """
    Delete a project. Its tasks are left in place.

    Raises:
        NotFound: If the project does not exist
        Forbidden: If the caller is neither admin nor the creator
    """
    project = get_project(db, project_id)
    ensure(can_delete_project(user, project), user,
           "Access denied - only admin or project creator can delete")

    db.delete(project)
    db.commit()
    logger.info(f"User {user.id} deleted project {project_id}")


def add_members(
    db: Session,
    user: models.User,
    project_id: UUID,
    member_ids: Iterable[UUID],
) -> models.Project:
    """
    Add users to a project, skipping those already in it.

    Raises:
        ValidationFailed: If ``member_ids`` is empty or contains unknown ids
        NotFound: If the project does not exist
        Forbidden: If the caller may not modify the project
        AlreadyMember: If every id is already a member (nothing changes)
    """
    member_ids = _dedupe(member_ids)
    if not member_ids:
        raise ValidationFailed("Member IDs array is required")

    project = get_project(db, project_id)
    ensure(can_modify_project(user, project), user, "Access denied - not a project member")

    users = _resolve_users(db, member_ids)
    current = project.member_ids
    new_members = [u for u in users if u.id not in current]
    if not new_members:
        raise AlreadyMember("All provided members are already in the project")

    project.members.extend(new_members)
    db.commit()
    db.refresh(project)

    logger.info(f"User {user.id} added {len(new_members)} members to project {project_id}")
    return project


def remove_members(
    db: Session,
    user: models.User,
    project_id: UUID,
    member_ids: Iterable[UUID],
) -> models.Project:
    """
    Remove users from a project.

    Raises:
        ValidationFailed: If ``member_ids`` is empty
        NotFound: If the project does not exist
        Forbidden: If the caller may not modify the project
        Conflict: If the creator is among the ids, whatever the caller's role
    """
    member_ids = set(member_ids)
    if not member_ids:
        raise ValidationFailed("Member IDs array is required")

    project = get_project(db, project_id)
    ensure(can_modify_project(user, project), user, "Access denied - not a project member")

    if project.created_by in member_ids:
        logger.warning(f"User {user.id} tried to remove the creator of project {project_id}")
        raise Conflict("Cannot remove project creator")

    project.members = [m for m in project.members if m.id not in member_ids]
    db.commit()
    db.refresh(project)

    logger.info(f"User {user.id} removed members from project {project_id}")
    return project


def get_project_members(db: Session, user: models.User, project_id: UUID) -> models.Project:
    """Project whose ``members`` and ``creator`` the caller wants to list."""
    return get_project_for(db, user, project_id)


# ============================================================================
# Tasks
# ============================================================================

def _check_assignee(project: models.Project, assignee_id: UUID) -> models.User:
    for member in project.members:
        if member.id == assignee_id:
            return member
    logger.warning(f"Rejected assignee {assignee_id}: not a member of project {project.id}")
    raise AssigneeNotMember("Assigned user must be a project member")


def _get_task_with_project(db: Session, task_id: UUID) -> tuple[models.Task, models.Project]:
    """
    Fetch a task and its project.

    Raises:
        NotFound: If the task does not exist, or its project was deleted
    """
    task = db.query(models.Task).filter(models.Task.id == task_id).first()
    if not task:
        raise NotFound("Task not found")
    if task.project is None:
        raise NotFound("Project not found")
    return task, task.project


def _notify_assignee(
    mailer: Optional[Mailer],
    assignee: models.User,
    task: models.Task,
    project: models.Project,
    assigner: models.User,
) -> None:
    if mailer is None or assignee.id == assigner.id:
        return
    delivery = mailer.send_task_assignment(assignee.email, task.title, project.title, assigner.name)
    _log_delivery(delivery, f"assignment of task {task.id}")


def create_task(
    db: Session,
    user: models.User,
    project_id: UUID,
    data: schemas.TaskCreate,
    mailer: Optional[Mailer] = None,
) -> models.Task:
    """
    Create a task in a project.

    Args:
        db: Database session
        user: Creator
        project_id: Owning project
        data: Task fields
        mailer: When given, the assignee is notified (best-effort)

    Returns:
        Created task

    Raises:
        NotFound: If the project does not exist
        Forbidden: If the caller may not create tasks in the project
        AssigneeNotMember: If the assignee is not a project member
    """
    project = get_project(db, project_id)
    ensure(can_create_task(user, project), user, "Access denied - not a project member")

    assignee = _check_assignee(project, data.assigned_to) if data.assigned_to else None

    db_task = models.Task(
        project_id=project.id,
        title=data.title,
        description=data.description,
        status=data.status,
        priority=data.priority,
        assigned_to=assignee.id if assignee else None,
        due_date=data.due_date,
        created_by=user.id,
    )
    db.add(db_task)
    db.commit()
    db.refresh(db_task)

    logger.info(f"User {user.id} created task {db_task.id} in project {project_id}")
    if assignee:
        _notify_assignee(mailer, assignee, db_task, project, user)
    return db_task


def list_project_tasks(
    db: Session,
    user: models.User,
    project_id: UUID,
    status: Optional[models.TaskStatus] = None,
    priority: Optional[models.TaskPriority] = None,
    assigned_to: Optional[UUID] = None,
) -> list[models.Task]:
    """Tasks of a project, newest first, optionally filtered."""
    project = get_project_for(db, user, project_id)

    query = db.query(models.Task).filter(models.Task.project_id == project.id)
    if status:
        query = query.filter(models.Task.status == status)
    if priority:
        query = query.filter(models.Task.priority == priority)
    if assigned_to:
        query = query.filter(models.Task.assigned_to == assigned_to)

    return query.order_by(models.Task.created_at.desc()).all()


def get_task_for(db: Session, user: models.User, task_id: UUID) -> models.Task:
    """
    Fetch a task the caller may see, with its comments.

    Raises:
        NotFound: If the task (or its project) does not exist
        Forbidden: If the caller has no access to the task
    """
    task, project = _get_task_with_project(db, task_id)
    ensure(can_access_task(user, project, task), user, "Access denied - insufficient permissions")
    return task


def update_task(
    db: Session,
    user: models.User,
    task_id: UUID,
    changes: schemas.TaskUpdate,
    mailer: Optional[Mailer] = None,
) -> models.Task:
    """
    Apply the fields present in ``changes`` to a task.

    An explicit ``None`` for ``assigned_to``, ``due_date`` or ``description``
    clears it. The assignee is validated before anything is written.

    Raises:
        NotFound: If the task (or its project) does not exist
        Forbidden: If the caller may not modify the task
        AssigneeNotMember: If the new assignee is not a project member
    """
    task, project = _get_task_with_project(db, task_id)
    ensure(can_modify_task(user, project, task), user, "Access denied - insufficient permissions")

    update_data = changes.model_dump(exclude_unset=True)

    new_assignee = None
    if update_data.get("assigned_to") is not None:
        new_assignee = _check_assignee(project, update_data["assigned_to"])

    for field in ("title", "status", "priority"):
        if update_data.get(field) is not None:
            setattr(task, field, update_data[field])
    for field in ("description", "due_date"):
        if field in update_data:
            setattr(task, field, update_data[field])

    reassigned = False
    if "assigned_to" in update_data:
        new_id = new_assignee.id if new_assignee else None
        reassigned = new_id is not None and new_id != task.assigned_to
        task.assigned_to = new_id

    db.commit()
    db.refresh(task)

    logger.debug(f"User {user.id} updated task {task_id}: {sorted(update_data)}")
    if reassigned:
        _notify_assignee(mailer, new_assignee, task, project, user)
    return task


def delete_task(db: Session, user: models.User, task_id: UUID) -> None:
    """
    Delete a task. Its comments are left in place.

    Raises:
        NotFound: If the task (or its project) does not exist
        Forbidden: If the caller is not admin, project creator or task creator
    """
    task, project = _get_task_with_project(db, task_id)
    ensure(can_delete_task(user, project, task), user, "Access denied - insufficient permissions")

    db.delete(task)
    db.commit()
    logger.info(f"User {user.id} deleted task {task_id}")


def get_my_tasks(
    db: Session,
    user: models.User,
    status: Optional[models.TaskStatus] = None,
    priority: Optional[models.TaskPriority] = None,
) -> list[models.Task]:
    """
    Tasks assigned to ``user`` (every task for admins).

    Ordered by due date with undated tasks last, then newest first.
    """
    query = db.query(models.Task)
    if not is_admin(user):
        query = query.filter(models.Task.assigned_to == user.id)
    if status:
        query = query.filter(models.Task.status == status)
    if priority:
        query = query.filter(models.Task.priority == priority)

    return query.order_by(
        models.Task.due_date.is_(None),
        models.Task.due_date.asc(),
        models.Task.created_at.desc(),
    ).all()


def get_task_stats(db: Session, user: models.User, project_id: UUID) -> dict:
    """Task counts of a project grouped by status and by priority."""
    project = get_project_for(db, user, project_id)

    def _grouped(column) -> list[dict]:
        rows = (
            db.query(column, func.count(models.Task.id))
            .filter(models.Task.project_id == project.id)
            .group_by(column)
            .all()
        )
        return [{"key": key.value, "count": count} for key, count in rows]

    return {
        "status_stats": _grouped(models.Task.status),
        "priority_stats": _grouped(models.Task.priority),
    }


# ============================================================================
# Comments
# ============================================================================

def _get_comment(db: Session, comment_id: UUID) -> models.Comment:
    comment = db.query(models.Comment).filter(models.Comment.id == comment_id).first()
    if not comment:
        raise NotFound("Comment not found")
    return comment


def add_comment(db: Session, user: models.User, task_id: UUID, text: str) -> models.Comment:
    """
    Comment on a task the caller has access to.

    Raises:
        NotFound: If the task (or its project) does not exist
        Forbidden: If the caller has no access to the task
    """
    task, project = _get_task_with_project(db, task_id)
    ensure(can_access_task(user, project, task), user, "Access denied - insufficient permissions")

    db_comment = models.Comment(task_id=task.id, text=text, created_by=user.id)
    db.add(db_comment)
    db.commit()
    db.refresh(db_comment)

    logger.debug(f"User {user.id} commented on task {task_id}")
    return db_comment


def list_comments(db: Session, user: models.User, task_id: UUID) -> list[models.Comment]:
    """Comments of a task, oldest first."""
    task, project = _get_task_with_project(db, task_id)
    ensure(can_access_task(user, project, task), user, "Access denied - insufficient permissions")

    return (
        db.query(models.Comment)
        .filter(models.Comment.task_id == task.id)
        .order_by(models.Comment.created_at.asc())
        .all()
    )


def update_comment(db: Session, user: models.User, comment_id: UUID, text: str) -> models.Comment:
    """
    Edit a comment. Only its author may do this.

    Raises:
        NotFound: If the comment does not exist
        Forbidden: If the caller is not the author
    """
    comment = _get_comment(db, comment_id)
    ensure(can_modify_comment(user, comment), user, "Access denied - can only edit your own comments")

    comment.text = text
    db.commit()
    db.refresh(comment)
    return comment


def delete_comment(db: Session, user: models.User, comment_id: UUID) -> None:
    """
    Delete a comment (author or admin).

    Raises:
        NotFound: If the comment does not exist
        Forbidden: If the caller is neither the author nor an admin
    """
    comment = _get_comment(db, comment_id)
    ensure(can_delete_comment(user, comment), user, "Access denied - can only delete your own comments")

    db.delete(comment)
    db.commit()
    logger.debug(f"User {user.id} deleted comment {comment_id}")


# ============================================================================
# Bootstrap
# ============================================================================

def ensure_admin(
    db: Session,
    name: str,
    email: str,
    password: str,
) -> tuple[models.User, bool]:
    """
    Create the first admin account unless an admin already exists.

    Returns:
        Tuple of (admin user, whether it was created now)
    """
    existing = (
        db.query(models.User)
        .filter(models.User.role == models.UserRole.ADMIN)
        .order_by(models.User.created_at.asc())
        .first()
    )
    if existing:
        logger.info(f"Admin user already exists: {existing.email}")
        return existing, False

    admin = create_user(db, name, email, password, role=models.UserRole.ADMIN, email_verified=True)
    return admin, True
