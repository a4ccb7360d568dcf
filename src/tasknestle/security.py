"""Password hashing and signed bearer tokens.

Tokens are ``<base64url(json payload)>.<hex hmac-sha256>``. The payload
always carries ``exp`` (unix seconds) and a ``type`` marker so that a
session token can never be redeemed as an invitation and vice versa.
"""
import base64
import hashlib
import hmac
import json
import secrets
import string
import time
from datetime import timedelta
from typing import Any, Optional

PBKDF2_ITERATIONS = 310_000
HASH_SCHEME = "pbkdf2_sha256"


class TokenError(ValueError):
    """Raised when a token cannot be trusted."""

    def __init__(self, message: str, expired: bool = False):
        super().__init__(message)
        self.expired = expired


def hash_password(password: str, salt: Optional[bytes] = None) -> str:
    """
    Hash a password with a random salt.

    Returns:
        ``pbkdf2_sha256$<iterations>$<salt b64>$<digest b64>``
    """
    salt = salt or secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return "$".join([
        HASH_SCHEME,
        str(PBKDF2_ITERATIONS),
        base64.b64encode(salt).decode("utf-8"),
        base64.b64encode(digest).decode("utf-8"),
    ])


def verify_password(password: str, password_hash: str) -> bool:
    """Check ``password`` against a value produced by ``hash_password``."""
    try:
        scheme, iterations, salt_b64, digest_b64 = password_hash.split("$")
    except (ValueError, AttributeError):
        return False
    if scheme != HASH_SCHEME:
        return False

    salt = base64.b64decode(salt_b64)
    computed = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, int(iterations))
    return hmac.compare_digest(base64.b64encode(computed).decode("utf-8"), digest_b64)


def generate_password(length: int = 12) -> str:
    """Random password with at least one lowercase, uppercase letter and digit."""
    alphabet = string.ascii_letters + string.digits
    while True:
        candidate = "".join(secrets.choice(alphabet) for _ in range(length))
        if (any(c.islower() for c in candidate)
                and any(c.isupper() for c in candidate)
                and any(c.isdigit() for c in candidate)):
            return candidate


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)


def _sign(value: str, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), value.encode("utf-8"), hashlib.sha256).hexdigest()


def encode_token(payload: dict[str, Any], secret: str, expires_in: timedelta) -> str:
    """
    Sign ``payload`` into a bearer token valid for ``expires_in``.

    Args:
        payload: JSON-serializable claims
        secret: Signing key
        expires_in: Validity window from now

    Returns:
        Signed token string
    """
    now = int(time.time())
    claims = dict(payload, iat=now, exp=now + int(expires_in.total_seconds()))
    body = _b64encode(json.dumps(claims, separators=(",", ":"), sort_keys=True).encode("utf-8"))
    return f"{body}.{_sign(body, secret)}"


def decode_token(token: str, secret: str) -> dict[str, Any]:
    """
    Verify a token's signature and expiry and return its claims.

    Raises:
        TokenError: If the token is malformed, tampered with or expired
    """
    if not token or token.count(".") != 1:
        raise TokenError("Malformed token")

    body, signature = token.split(".")
    # compare_digest rejects non-ASCII str arguments, tokens come from clients
    if not hmac.compare_digest(signature.encode("utf-8"), _sign(body, secret).encode("utf-8")):
        raise TokenError("Invalid token signature")

    try:
        claims = json.loads(_b64decode(body))
    except (ValueError, UnicodeDecodeError):
        raise TokenError("Malformed token payload")
    if not isinstance(claims, dict) or not isinstance(claims.get("exp"), int):
        raise TokenError("Malformed token payload")

    if claims["exp"] <= int(time.time()):
        raise TokenError("Token expired", expired=True)

    return claims
