"""
Unit tests for nirman/dependencies.py -- bearer extraction and auth guards.
"""
import os
import sys
import pytest
from unittest.mock import patch, MagicMock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))
os.environ.setdefault("DATABASE_URL", "")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from nirman.dependencies import get_bearer_token, get_current_session, require_auth, require_capability
from nirman.exceptions import AuthenticationError, AuthorizationError
from nirman.roles import Capability

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
from __mocks__.fixtures import make_session

pytestmark = pytest.mark.unit


def _make_request(authorization=None):
    """Create a mock Request object with an optional Authorization header."""
    request = MagicMock()
    request.headers = {"authorization": authorization} if authorization else {}
    return request


# ── get_bearer_token ─────────────────────────────────────────────────

class TestGetBearerToken:
    def test_no_header(self):
        assert get_bearer_token(_make_request()) is None

    def test_bearer_token(self):
        assert get_bearer_token(_make_request("Bearer abc.def")) == "abc.def"

    def test_scheme_case_insensitive(self):
        assert get_bearer_token(_make_request("bearer abc")) == "abc"

    def test_wrong_scheme(self):
        assert get_bearer_token(_make_request("Basic dXNlcjpwYXNz")) is None

    def test_missing_token(self):
        assert get_bearer_token(_make_request("Bearer ")) is None


# ── get_current_session ──────────────────────────────────────────────

class TestGetCurrentSession:
    def test_no_header_returns_none(self):
        assert get_current_session(_make_request()) is None

    @patch("nirman.dependencies.validate_session")
    @patch("nirman.dependencies.deserialize_session")
    def test_valid_token(self, mock_deser, mock_validate):
        session = make_session()
        mock_deser.return_value = "session-123"
        mock_validate.return_value = session

        assert get_current_session(_make_request("Bearer token")) is session
        mock_validate.assert_called_once_with("session-123")

    @patch("nirman.dependencies.validate_session")
    @patch("nirman.dependencies.deserialize_session")
    def test_bad_signature(self, mock_deser, mock_validate):
        mock_deser.return_value = None
        assert get_current_session(_make_request("Bearer forged")) is None
        mock_validate.assert_not_called()


# ── require_auth / require_capability ────────────────────────────────

class TestGuards:
    @patch("nirman.dependencies.get_current_session")
    def test_require_auth_raises_401(self, mock_session):
        mock_session.return_value = None
        with pytest.raises(AuthenticationError) as exc:
            require_auth(_make_request())
        assert exc.value.status_code == 401

    @patch("nirman.dependencies.get_current_session")
    def test_require_auth_returns_session(self, mock_session):
        session = make_session()
        mock_session.return_value = session
        assert require_auth(_make_request("Bearer t")) is session

    @patch("nirman.dependencies.get_current_session")
    def test_capability_granted(self, mock_session):
        session = make_session(role="Progress Monitor")
        mock_session.return_value = session
        guard = require_capability(Capability.RECORD_PROGRESS)
        assert guard(_make_request("Bearer t")) is session

    @patch("nirman.dependencies.get_current_session")
    def test_capability_denied(self, mock_session):
        mock_session.return_value = make_session(role="Tender Manager")
        guard = require_capability(Capability.RECORD_PROGRESS)
        with pytest.raises(AuthorizationError):
            guard(_make_request("Bearer t"))

    def test_guard_name(self):
        assert require_capability(Capability.COMPLETE_WORK).__name__ == "require_complete_work"
