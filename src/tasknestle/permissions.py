"""Authorization policy for projects, tasks and comments.

Pure predicates over already-fetched entities: no queries, no side effects.
Every predicate is an OR of grants, and the admin role grants everything,
so the order of the checks never changes the answer.

Services call ``ensure`` to turn a denied predicate into ``Forbidden``.
"""
import logging

from . import models
from .errors import Forbidden

logger = logging.getLogger("tasknestle.permissions")


def is_admin(principal: models.User) -> bool:
    return principal.role == models.UserRole.ADMIN


def is_project_creator(principal: models.User, project: models.Project) -> bool:
    return project.created_by is not None and project.created_by == principal.id


def is_project_member(principal: models.User, project: models.Project) -> bool:
    return principal.id in project.member_ids


def can_access_project(principal: models.User, project: models.Project) -> bool:
    """Admin, project creator or member."""
    return (
        is_admin(principal)
        or is_project_creator(principal, project)
        or is_project_member(principal, project)
    )


def can_modify_project(principal: models.User, project: models.Project) -> bool:
    """Identical to access: any member may edit project details and members."""
    return can_access_project(principal, project)


def can_delete_project(principal: models.User, project: models.Project) -> bool:
    """Admin or project creator."""
    return is_admin(principal) or is_project_creator(principal, project)


def can_create_task(principal: models.User, project: models.Project) -> bool:
    return can_access_project(principal, project)


def can_invite(principal: models.User, project: models.Project) -> bool:
    return can_access_project(principal, project)


def can_modify_task(
    principal: models.User,
    project: models.Project,
    task: models.Task,
) -> bool:
    """
    Admin, project member, task creator or assignee.

    The assignee grant stands on its own: an assignee who has since left
    the project can still move their task along.
    """
    return (
        is_admin(principal)
        or is_project_member(principal, project)
        or (task.created_by is not None and task.created_by == principal.id)
        or (task.assigned_to is not None and task.assigned_to == principal.id)
    )


def can_access_task(
    principal: models.User,
    project: models.Project,
    task: models.Task,
) -> bool:
    """Reading a task (and commenting on it) takes the same grants as modifying it."""
    return can_modify_task(principal, project, task)


def can_delete_task(
    principal: models.User,
    project: models.Project,
    task: models.Task,
) -> bool:
    """Admin, project creator or task creator. Assignees cannot delete."""
    return (
        is_admin(principal)
        or is_project_creator(principal, project)
        or (task.created_by is not None and task.created_by == principal.id)
    )


def can_modify_comment(principal: models.User, comment: models.Comment) -> bool:
    """Only the author may edit a comment, admins included."""
    return comment.created_by is not None and comment.created_by == principal.id


def can_delete_comment(principal: models.User, comment: models.Comment) -> bool:
    return is_admin(principal) or can_modify_comment(principal, comment)


def ensure(allowed: bool, principal: models.User, message: str) -> None:
    """
    Raise ``Forbidden`` unless ``allowed``.

    Raises:
        Forbidden: If the policy predicate denied the action
    """
    if not allowed:
        logger.warning(f"Permission denied for user {principal.id}: {message}")
        raise Forbidden(message)
