"""
Unit tests for nirman/config.py -- environment-driven settings.
"""
import os
import sys
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))
os.environ.setdefault("DATABASE_URL", "")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

from nirman import config
from nirman.config import _env_flag

pytestmark = pytest.mark.unit


class TestConfig:
    def test_sqlite_in_tests(self):
        assert config.USE_POSTGRES is False
        assert config.DATABASE_PATH.suffix == ".db"

    def test_session_age_positive(self):
        assert config.SESSION_MAX_AGE > 0

    def test_bearer_scheme(self):
        assert config.BEARER_SCHEME == "Bearer"

    def test_page_limits(self):
        assert 0 < config.DEFAULT_PAGE_LIMIT <= config.MAX_PAGE_LIMIT

    def test_deployment_default(self):
        assert config.NIRMAN_DEPLOYMENT


class TestEnvFlag:
    def test_unset_uses_default(self, monkeypatch):
        monkeypatch.delenv("NIRMAN_TEST_FLAG", raising=False)
        assert _env_flag("NIRMAN_TEST_FLAG", True) is True
        assert _env_flag("NIRMAN_TEST_FLAG", False) is False

    @pytest.mark.parametrize("value", ["1", "true", "TRUE", "yes", "on"])
    def test_truthy(self, monkeypatch, value):
        monkeypatch.setenv("NIRMAN_TEST_FLAG", value)
        assert _env_flag("NIRMAN_TEST_FLAG", False) is True

    @pytest.mark.parametrize("value", ["0", "false", "no", "off"])
    def test_falsy(self, monkeypatch, value):
        monkeypatch.setenv("NIRMAN_TEST_FLAG", value)
        assert _env_flag("NIRMAN_TEST_FLAG", True) is False

    def test_empty_uses_default(self, monkeypatch):
        monkeypatch.setenv("NIRMAN_TEST_FLAG", "")
        assert _env_flag("NIRMAN_TEST_FLAG", True) is True
