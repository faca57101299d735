"""
Operator sessions: issuance, validation, expiry and revocation.
"""

from datetime import timedelta

import pytest

from pressdesk.models import SessionToken
from pressdesk.services import session_service
from pressdesk.services.session_service import SESSION_IDLE_TIMEOUT, SessionError


class TestSessions:
    def test_token_is_stored_hashed(self, db_session, admin):
        session, token = session_service.create_session(admin.id)
        assert len(token) == 64
        assert session.token_hash == session_service.hash_token(token)
        assert session.token_hash != token

    def test_validate_returns_context(self, db_session, admin):
        _, token = session_service.create_session(admin.id)
        context = session_service.validate_session(token)
        assert context.profile.id == admin.id
        assert context.role == "ADMIN"

    def test_unknown_token(self, db_session):
        assert session_service.validate_session("nope") is None
        assert session_service.validate_session("") is None

    def test_unknown_profile(self, db_session):
        with pytest.raises(SessionError, match="Profile not found"):
            session_service.create_session("missing")

    def test_inactive_profile_cannot_get_session(self, db_session, staff):
        staff.is_active = False
        db_session.commit()
        with pytest.raises(SessionError, match="deactivated"):
            session_service.create_session(staff.id)

    def test_deactivated_profile_session_revoked(self, db_session, staff):
        session, token = session_service.create_session(staff.id)
        staff.is_active = False
        db_session.commit()
        assert session_service.validate_session(token) is None
        assert db_session.get(SessionToken, session.id).revoked_reason == "Profile deactivated"

    def test_expired_session(self, db_session, admin):
        session, token = session_service.create_session(admin.id)
        session.expires_at = session.created_at - timedelta(seconds=1)
        db_session.commit()
        assert session_service.validate_session(token) is None

    def test_idle_session_revoked(self, db_session, admin):
        session, token = session_service.create_session(admin.id)
        session.last_used_at = session.last_used_at - SESSION_IDLE_TIMEOUT - timedelta(minutes=1)
        db_session.commit()
        assert session_service.validate_session(token) is None
        assert db_session.get(SessionToken, session.id).revoked_reason == "Idle timeout"

    def test_revoke_profile_sessions(self, db_session, admin):
        _, first = session_service.create_session(admin.id)
        _, second = session_service.create_session(admin.id)
        assert session_service.revoke_profile_sessions(admin.id) == 2
        assert session_service.validate_session(first) is None
        assert session_service.validate_session(second) is None
