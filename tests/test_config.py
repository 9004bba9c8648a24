"""Unit tests for configuration management."""

import pytest
from pydantic import ValidationError

from climasync.config import (
    ActionCategory,
    Environment,
    ParentType,
    ReactionType,
    ReportStatus,
    Settings,
    TeamRole,
)


class TestEnumClasses:
    """Tests for domain enums."""

    def test_parent_type_values(self):
        assert ParentType.FORUM_POST == "forum_post"
        assert ParentType.CLIMATE_ACTION == "climate_action"
        assert ParentType.COMMENT == "comment"

    def test_reaction_type_values(self):
        assert {r.value for r in ReactionType} == {"like", "love", "celebrate", "insightful"}

    def test_enum_members_work_as_dict_keys(self):
        """String enums hash like their value, so counts keyed either way agree."""
        counts = {"love": 1}
        assert counts[ReactionType.LOVE] == 1

    def test_other_enums(self):
        assert ActionCategory.TREE_PLANTING == "tree_planting"
        assert TeamRole.ADMIN == "admin"
        assert ReportStatus.PENDING == "pending"


class TestSettings:
    """Tests for Settings class."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_URL", raising=False)
        monkeypatch.delenv("SUPABASE_ANON_KEY", raising=False)

        settings = Settings()

        assert settings.request_timeout_seconds == 10.0
        assert settings.poll_interval_seconds == 600.0
        assert settings.max_read_attempts == 3
        assert settings.feed_page_size == 50
        assert settings.supabase_anon_key is None

    def test_store_url_normalized(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co/")

        settings = Settings()

        assert settings.supabase_url == "https://example.supabase.co"
        assert settings.rest_url == "https://example.supabase.co/rest/v1"
        assert settings.functions_url == "https://example.supabase.co/functions/v1"

    def test_short_key_rejected(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_ANON_KEY", "short")

        with pytest.raises(ValidationError) as exc_info:
            Settings()

        assert "at least 10 characters" in str(exc_info.value)

    def test_page_size_bounds(self, monkeypatch):
        monkeypatch.setenv("FEED_PAGE_SIZE", "0")
        with pytest.raises(ValidationError):
            Settings()

        monkeypatch.setenv("FEED_PAGE_SIZE", "101")
        with pytest.raises(ValidationError):
            Settings()

    def test_timeout_must_be_positive(self, monkeypatch):
        monkeypatch.setenv("REQUEST_TIMEOUT_SECONDS", "0")
        with pytest.raises(ValidationError):
            Settings()

    def test_redact_key(self, monkeypatch):
        monkeypatch.setenv("SUPABASE_ANON_KEY", "abcdefghijklmnopqrst")

        settings = Settings()

        assert settings.redact_key() == "abcdefgh...qrst"
        assert settings.redact_key("short_key_1") == "***"

    def test_redact_missing_key(self, monkeypatch):
        monkeypatch.delenv("SUPABASE_ANON_KEY", raising=False)
        assert Settings().redact_key() == "None"


class TestEnvironmentProfiles:
    """Tests for environment-specific defaults."""

    def test_testing_profile(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "testing")

        settings = Settings()

        assert settings.environment == Environment.TESTING
        assert settings.is_testing
        assert settings.local_database_path == ":memory:"
        assert settings.log_level == "ERROR"
        assert settings.enable_tracing is False

    def test_production_profile(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")

        settings = Settings()

        assert settings.is_production
        assert settings.log_level == "INFO"
        assert settings.log_json is True
        assert settings.enable_tracing is True

    def test_development_profile(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "development")

        settings = Settings()

        assert settings.is_development
        assert settings.log_level == "DEBUG"
        assert settings.log_json is False

    def test_local_database_url(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "staging")
        monkeypatch.setenv("LOCAL_DATABASE_PATH", "/tmp/climasync.db")

        settings = Settings()

        assert settings.local_database_url == "sqlite:////tmp/climasync.db"
