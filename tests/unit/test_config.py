"""
Unit tests for environment-driven settings.
"""

import logging

import pytest
from pydantic import ValidationError

from pushrelay.core.config import Settings
from pushrelay.core.logging import configure_logging


class TestSettings:

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.android_batch_limit == 500
        assert settings.android_max_retry == 0
        assert settings.core_sync is False
        assert settings.core_feedback_url == ""

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("ANDROID_PROJECT_ID", "env-project")
        monkeypatch.setenv("ANDROID_MAX_RETRY", "3")
        monkeypatch.setenv("CORE_SYNC", "true")
        monkeypatch.setenv("CORE_FEEDBACK_URL", "https://hooks.example.com")

        settings = Settings(_env_file=None)

        assert settings.android_project_id == "env-project"
        assert settings.android_max_retry == 3
        assert settings.core_sync is True
        assert settings.core_feedback_url == "https://hooks.example.com"

    @pytest.mark.parametrize("limit", [0, 501])
    def test_batch_limit_is_bounded_by_provider(self, limit):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, android_batch_limit=limit)


class TestConfigureLogging:

    def test_handler_is_attached_once(self):
        root = logging.getLogger("pushrelay")
        before = list(root.handlers)
        try:
            first = configure_logging("DEBUG")
            second = configure_logging("WARNING")

            added = [h for h in root.handlers if h not in before]
            assert added == [first]
            assert second is first
            assert root.level == logging.WARNING
        finally:
            for handler in root.handlers[:]:
                if handler not in before:
                    root.removeHandler(handler)
            root.setLevel(logging.NOTSET)
