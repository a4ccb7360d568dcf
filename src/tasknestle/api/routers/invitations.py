"""Public invitation endpoints (no session required)."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ... import invitations, schemas
from ...config import Settings
from ...notifications import Mailer
from ..dependencies import get_app_settings, get_db, get_mailer

router = APIRouter(tags=["invitations"])


@router.post("/accept", response_model=schemas.ApiResponse, status_code=201)
def accept_invitation(
    request: schemas.AcceptInvitationRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    mailer: Mailer = Depends(get_mailer),
):
    """Create the invited account, join the project and log in."""
    redemption = invitations.redeem_invitation(
        db, settings, mailer, request.token, request.name, request.password
    )
    return schemas.ApiResponse(
        message="Account created and invitation accepted successfully",
        data={
            "user": schemas.UserResponse.model_validate(redemption.user).model_dump(mode="json"),
            "token": redemption.session_token,
            "project": {"id": str(redemption.project.id), "title": redemption.project.title},
        },
    )


@router.get("/verify/{token}", response_model=schemas.ApiResponse)
def verify_invitation(
    token: str,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    email, project = invitations.verify_invitation(db, settings, token)
    return schemas.ApiResponse(
        message="Invitation token is valid",
        data={
            "email": email,
            "project": schemas.ProjectSummary.model_validate(project).model_dump(mode="json"),
        },
    )
