"""
Unit tests for configuration.
"""

import pytest

from storyreader.config import Settings


class TestSettings:
    """Test the Settings configuration class"""

    def test_default_values(self, monkeypatch):
        """Test that default values are set correctly"""
        monkeypatch.delenv("DATABASE_PATH", raising=False)
        settings = Settings()
        assert settings.database_path.endswith("storyreader.db")
        assert settings.replay_step_delay == 1.5
        assert isinstance(settings.debug, bool)
        assert settings.log_level == "INFO"

    def test_environment_variables(self, monkeypatch):
        """Test that environment variables override defaults"""
        monkeypatch.setenv("REPLAY_STEP_DELAY", "0.25")
        monkeypatch.setenv("DEBUG", "true")
        monkeypatch.setenv("LOG_LEVEL", "VERBOSE")

        settings = Settings()
        assert settings.replay_step_delay == 0.25
        assert settings.debug is True
        assert settings.log_level == "VERBOSE"

    def test_negative_replay_delay_rejected(self, monkeypatch):
        monkeypatch.setenv("REPLAY_STEP_DELAY", "-1")
        with pytest.raises(ValueError):
            Settings()
