"""Project invitations.

An invitation is a signed, time-limited token carrying the invitee's email
and the project id; nothing is stored until it is redeemed. A token stops
working once an account exists for its email, which is what makes it
effectively single-use.
"""
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from . import crud, models
from .auth import issue_session_token
from .config import Settings
from .errors import AlreadyMember, AlreadyRegistered, InvalidToken, ProjectGone
from .notifications import DeliveryResult, Mailer
from .permissions import can_invite, ensure
from .security import TokenError, decode_token, encode_token

logger = logging.getLogger("tasknestle.invitations")

INVITATION_TOKEN_TYPE = "invitation"

OUTCOME_ADDED = "added"
OUTCOME_INVITED = "invited"


@dataclass
class InvitationResult:
    """What ``issue_invitation`` did for the given email."""

    outcome: str
    email: str
    user: Optional[models.User] = None
    token: Optional[str] = None
    delivery: Optional[DeliveryResult] = None


@dataclass
class Redemption:
    user: models.User
    project: models.Project
    session_token: str


def _decode_invitation(settings: Settings, token: str) -> tuple[str, UUID]:
    """
    Verify an invitation token and return (email, project id).

    Raises:
        InvalidToken: If the signature, expiry, type or claims are wrong
    """
    try:
        claims = decode_token(token, settings.secret_key)
    except TokenError as e:
        logger.warning(f"Rejected invitation token: {e}")
        raise InvalidToken("Invalid or expired invitation token")

    if claims.get("type") != INVITATION_TOKEN_TYPE:
        logger.warning(f"Rejected token of type {claims.get('type')!r} as invitation")
        raise InvalidToken("Invalid token type")

    try:
        return str(claims["email"]), UUID(str(claims["project_id"]))
    except (KeyError, ValueError):
        raise InvalidToken("Invalid or expired invitation token")


def _get_invited_project(db: Session, project_id: UUID) -> models.Project:
    project = db.query(models.Project).filter(models.Project.id == project_id).first()
    if not project:
        raise ProjectGone("Project not found or has been deleted")
    return project


def issue_invitation(
    db: Session,
    settings: Settings,
    mailer: Mailer,
    inviter: models.User,
    project_id: UUID,
    email: str,
) -> InvitationResult:
    """
    Invite ``email`` to a project.

    Existing accounts are added to the project directly. For unknown emails
    an invitation token is minted and mailed; the token is also returned so
    the inviter can share it if the email does not arrive.

    Args:
        db: Database session
        settings: Settings holding the signing key and token lifetime
        mailer: Mailer for the invitation email
        inviter: Principal sending the invitation
        project_id: Target project
        email: Invitee address

    Returns:
        InvitationResult with outcome ``added`` or ``invited``

    Raises:
        NotFound: If the project does not exist
        Forbidden: If the inviter has no access to the project
        AlreadyMember: If the email belongs to a current member
    """
    project = crud.get_project(db, project_id)
    ensure(can_invite(inviter, project), inviter, "Access denied - not a project member")

    email = email.strip().lower()
    existing = crud.get_user_by_email(db, email)
    if existing:
        if existing.id in project.member_ids:
            raise AlreadyMember("User is already a project member")
        project.members.append(existing)
        db.commit()
        logger.info(f"User {inviter.id} added existing user {existing.id} to project {project.id}")
        return InvitationResult(outcome=OUTCOME_ADDED, email=email, user=existing)

    token = encode_token(
        {"email": email, "project_id": str(project.id), "type": INVITATION_TOKEN_TYPE},
        settings.secret_key,
        timedelta(days=settings.invitation_token_days),
    )
    delivery = mailer.send_project_invitation(email, project.title, inviter.name, token)
    if not delivery.delivered:
        logger.warning(f"Invitation email to {email} not delivered: {delivery.error}")

    logger.info(f"User {inviter.id} invited {email} to project {project.id}")
    return InvitationResult(outcome=OUTCOME_INVITED, email=email, token=token, delivery=delivery)


def verify_invitation(db: Session, settings: Settings, token: str) -> tuple[str, models.Project]:
    """
    Check that an invitation can still be redeemed.

    Returns:
        Tuple of (invited email, project)

    Raises:
        InvalidToken: If the token is invalid, expired or not an invitation
        ProjectGone: If the project was deleted
    """
    email, project_id = _decode_invitation(settings, token)
    return email, _get_invited_project(db, project_id)


def redeem_invitation(
    db: Session,
    settings: Settings,
    mailer: Mailer,
    token: str,
    name: str,
    password: str,
) -> Redemption:
    """
    Create the invited account and add it to the project.

    Raises:
        InvalidToken: If the token is invalid, expired or not an invitation
        AlreadyRegistered: If an account already exists for the email
        ProjectGone: If the project was deleted
    """
    email, project_id = _decode_invitation(settings, token)

    if crud.get_user_by_email(db, email):
        logger.warning(f"Invitation for {email} redeemed again")
        raise AlreadyRegistered("User already exists with this email")

    project = _get_invited_project(db, project_id)

    user = crud.create_user(db, name, email, password, email_verified=True)
    project.members.append(user)
    db.commit()
    db.refresh(user)
    logger.info(f"User {user.id} joined project {project.id} by invitation")

    delivery = mailer.send_welcome(user.email, user.name)
    if not delivery.delivered:
        logger.warning(f"Welcome email to {user.email} not delivered: {delivery.error}")

    return Redemption(user=user, project=project, session_token=issue_session_token(settings, user))
