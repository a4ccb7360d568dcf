"""Session tokens and credential checks."""
import logging
from datetime import timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from . import models
from .config import Settings
from .errors import PrincipalNotFound, Unauthenticated
from .security import TokenError, decode_token, encode_token, verify_password

logger = logging.getLogger("tasknestle.auth")

SESSION_TOKEN_TYPE = "session"


def issue_session_token(settings: Settings, user: models.User) -> str:
    """Mint a session token for ``user`` valid for ``settings.session_token_days``."""
    return encode_token(
        {"sub": str(user.id), "type": SESSION_TOKEN_TYPE},
        settings.secret_key,
        timedelta(days=settings.session_token_days),
    )


def authenticate(db: Session, settings: Settings, token: Optional[str]) -> models.User:
    """
    Resolve a bearer token to the user it was issued for.

    Args:
        db: Database session
        settings: Settings holding the signing key
        token: Raw bearer token (may be None when the header is absent)

    Returns:
        The authenticated user

    Raises:
        Unauthenticated: If the token is absent, malformed, expired or not a session token
        PrincipalNotFound: If the token's subject no longer exists
    """
    if not token:
        raise Unauthenticated("No token, authorization denied")

    try:
        claims = decode_token(token, settings.secret_key)
    except TokenError as e:
        logger.debug(f"Rejected session token: {e}")
        raise Unauthenticated("Token has expired" if e.expired else "Token is not valid")

    if claims.get("type") != SESSION_TOKEN_TYPE:
        raise Unauthenticated("Token is not valid")

    try:
        user_id = UUID(str(claims.get("sub")))
    except ValueError:
        raise Unauthenticated("Token is not valid")

    user = db.query(models.User).filter(models.User.id == user_id).first()
    if not user:
        raise PrincipalNotFound("User not found")
    return user


def login(db: Session, settings: Settings, email: str, password: str) -> tuple[str, models.User]:
    """
    Check credentials and issue a session token.

    Raises:
        Unauthenticated: If the email is unknown or the password does not match
    """
    user = db.query(models.User).filter(models.User.email == email.strip().lower()).first()
    if not user or not verify_password(password, user.password_hash):
        logger.warning(f"Failed login attempt for {email}")
        raise Unauthenticated("Invalid email or password")

    logger.info(f"User {user.id} logged in")
    return issue_session_token(settings, user), user
