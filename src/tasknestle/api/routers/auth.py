"""Authentication, profile and admin user-management endpoints."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ... import auth, crud, models, schemas
from ...config import Settings
from ...notifications import Mailer
from ..dependencies import (
    get_app_settings,
    get_current_user,
    get_db,
    get_mailer,
    require_admin,
)

logger = logging.getLogger("tasknestle.auth_api")

router = APIRouter(tags=["auth"])


def _user(user: models.User) -> dict:
    return schemas.UserResponse.model_validate(user).model_dump(mode="json")


@router.post("/login", response_model=schemas.ApiResponse)
def login(
    credentials: schemas.LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Exchange email and password for a session token."""
    token, user = auth.login(db, settings, credentials.email, credentials.password)
    return schemas.ApiResponse(
        message="Login successful",
        data={"token": token, "user": _user(user)},
    )


@router.get("/profile", response_model=schemas.ApiResponse)
def get_profile(current_user: models.User = Depends(get_current_user)):
    return schemas.ApiResponse(data={"user": _user(current_user)})


@router.put("/profile", response_model=schemas.ApiResponse)
def update_profile(
    changes: schemas.ProfileUpdate,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user = crud.update_profile(db, current_user, name=changes.name, email=changes.email)
    return schemas.ApiResponse(message="Profile updated successfully", data={"user": _user(user)})


@router.put("/change-password", response_model=schemas.ApiResponse)
def change_password(
    request: schemas.ChangePasswordRequest,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    crud.change_password(db, current_user, request.current_password, request.new_password)
    return schemas.ApiResponse(message="Password changed successfully")


# ============================================================================
# Admin
# ============================================================================

@router.post("/users", response_model=schemas.ApiResponse, status_code=201)
def create_user(
    user: schemas.UserCreate,
    admin: models.User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """
    Create a user with an explicit password (admin only).

    - **name**: 2-50 characters
    - **email**: Unique email address
    - **password**: At least 6 characters with upper, lower case and a digit
    - **role**: `admin` or `member` (default: member)
    """
    db_user = crud.create_user(db, user.name, user.email, user.password, role=user.role)
    logger.info(f"Admin {admin.id} created user {db_user.id}")
    return schemas.ApiResponse(message="User created successfully", data={"user": _user(db_user)})


@router.get("/users", response_model=schemas.ApiResponse)
def list_users(
    admin: models.User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    users = crud.list_users(db)
    return schemas.ApiResponse(data={"users": [_user(u) for u in users]})


@router.delete("/users/{user_id}", response_model=schemas.ApiResponse)
def delete_user(
    user_id: UUID,
    admin: models.User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    crud.delete_user(db, admin, user_id)
    return schemas.ApiResponse(message="User deleted successfully")


@router.put("/users/{user_id}/role", response_model=schemas.ApiResponse)
def update_user_role(
    user_id: UUID,
    request: schemas.UserRoleUpdate,
    admin: models.User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = crud.update_user_role(db, user_id, request.role)
    return schemas.ApiResponse(message="User role updated successfully", data={"user": _user(user)})


@router.post("/users/with-credentials", response_model=schemas.ApiResponse, status_code=201)
def create_user_with_credentials(
    request: schemas.UserCreateWithCredentials,
    admin: models.User = Depends(require_admin),
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    """
    Create a user with a generated password and email the credentials.

    The generated password is also returned so the admin can hand it over
    when email delivery is not configured.
    """
    user, password, project, delivery = crud.create_user_with_credentials(
        db, mailer, request.name, request.email, role=request.role, project_id=request.project_id
    )
    data = {
        "user": _user(user),
        "credentials": {"email": user.email, "password": password},
        "email_sent": delivery.delivered,
    }
    if project is not None:
        data["project"] = {"id": str(project.id), "title": project.title}
    return schemas.ApiResponse(message="User created and credentials sent successfully", data=data)


@router.post("/users/add-to-project", response_model=schemas.ApiResponse)
def add_user_to_project(
    request: schemas.AddUserToProjectRequest,
    admin: models.User = Depends(require_admin),
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    user, project, delivery = crud.add_user_to_project(db, mailer, request.user_id, request.project_id)
    return schemas.ApiResponse(
        message="User added to project successfully",
        data={
            "user": _user(user),
            "project": {"id": str(project.id), "title": project.title},
            "email_sent": delivery.delivered,
        },
    )


@router.get("/admin/dashboard", response_model=schemas.ApiResponse)
def get_dashboard(
    admin: models.User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Totals plus the five most recent users and projects."""
    stats = crud.get_dashboard_stats(db)
    return schemas.ApiResponse(
        data={
            "stats": stats["stats"],
            "recent_users": [_user(u) for u in stats["recent_users"]],
            "recent_projects": [
                schemas.ProjectResponse.model_validate(p).model_dump(mode="json")
                for p in stats["recent_projects"]
            ],
        }
    )
