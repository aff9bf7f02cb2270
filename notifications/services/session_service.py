"""
Session verification.

Decodes the bearer token issued by the school platform and checks the
subject against the directory. Used by both the HTTP middleware and the
WebSocket handshake.
"""
from dataclasses import dataclass
from typing import Optional
from django.conf import settings
from directory import lookup
from notifications.utils.exceptions import SessionRejected
import jwt
import logging

logger = logging.getLogger('notifications.session')


@dataclass(frozen=True)
class SessionIdentity:
    user_id: str
    tenant_id: Optional[str]
    role: str
    branch_id: Optional[str] = None
    email: str = ''


def extract_bearer(header_value) -> Optional[str]:
    if not header_value:
        return None
    if isinstance(header_value, bytes):
        header_value = header_value.decode('latin-1')
    if header_value.startswith('Bearer '):
        return header_value[7:].strip() or None
    return None


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[getattr(settings, 'JWT_ALGORITHM', 'HS256')],
            options={'require': ['sub']},
        )
    except jwt.ExpiredSignatureError:
        raise SessionRejected("Token has expired")
    except jwt.InvalidTokenError as e:
        raise SessionRejected(f"Invalid token: {str(e)}")


def verify_token(token: str) -> SessionIdentity:
    """Return the identity behind ``token`` or raise SessionRejected."""
    if not token:
        raise SessionRejected("No authentication token provided")

    payload = decode_token(token)
    user = lookup.get_user(payload['sub'])
    if user is None:
        raise SessionRejected(f"Unknown user {payload['sub']}")
    if not user.is_active:
        logger.warning(f"Session rejected for inactive user {user.id} ({user.status})")
        raise SessionRejected("User is not active")

    return SessionIdentity(
        user_id=str(user.id),
        tenant_id=str(user.school_id) if user.school_id else None,
        role=user.role,
        branch_id=str(user.branch_id) if user.branch_id else None,
        email=user.email,
    )
