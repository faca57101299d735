# Overview: Service-layer operations for operator sessions; encapsulates token issuance and validation.

"""
Session Token Management Service

WHY: Gateway reads/writes and signing requests are only honored for an
authenticated operator. The console presents a bearer token; this service
resolves it to a Profile.

Issuance normally belongs to the external identity provider. The CLI
(`flask sessions issue`) uses create_session() to stand in for it.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- 24-hour absolute timeout (SESSION_ABSOLUTE_TIMEOUT)
- 2-hour idle timeout (SESSION_IDLE_TIMEOUT)
- Revocable on logout or when the profile is deactivated
"""

import secrets
import hashlib
from dataclasses import dataclass
from datetime import timedelta
from ..extensions import db
from ..models import SessionToken, Profile
from pressdesk.time_utils import utcnow


# Configuration constants
SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)  # Maximum session length
SESSION_IDLE_TIMEOUT = timedelta(hours=2)        # Activity timeout


class SessionError(ValueError):
    """Raised when a session cannot be issued."""


@dataclass
class SessionContext:
    """Resolved bearer session: who is calling, and through which token row."""
    profile: Profile
    session: SessionToken

    @property
    def role(self) -> str:
        return self.profile.role


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """
    Hash token for database storage using SHA-256.

    Tokens are already high-entropy (unlike passwords), so a fast hash is enough.
    """
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(profile_id: str) -> tuple[SessionToken, str]:
    """
    Create a new session token for a profile.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.
    """
    profile = db.session.get(Profile, profile_id)
    if not profile:
        raise SessionError("Profile not found")
    if not profile.is_active:
        raise SessionError("Profile is deactivated")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        profile_id=profile.id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + SESSION_ABSOLUTE_TIMEOUT,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason
    db.session.commit()


def validate_session(token: str) -> SessionContext | None:
    """
    Validate session token and return SessionContext if valid.

    Returns None if:
    - Token is empty, unknown, expired, or revoked
    - Profile is deactivated (is_active=False)

    Updates last_used_at on successful validation (activity tracking).
    """
    if not token:
        return None

    now = utcnow()
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return None

    # Check absolute timeout
    if session.expires_at < now:
        return None

    # Check idle timeout
    if now - session.last_used_at > SESSION_IDLE_TIMEOUT:
        _revoke(session, "Idle timeout")
        return None

    profile = session.profile
    if not profile or not profile.is_active:
        _revoke(session, "Profile deactivated")
        return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(profile=profile, session=session)


def revoke_profile_sessions(profile_id: str, reason: str = "Revoked") -> int:
    """Revoke every live session of a profile. Returns the number revoked."""
    sessions = db.session.query(SessionToken).filter_by(profile_id=profile_id, is_revoked=False).all()
    now = utcnow()
    for session in sessions:
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = reason
    db.session.commit()
    return len(sessions)
