"""Unit tests for config parsing module."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from scm_publish import config as publish_config


class TestConfigParsing:
    """Test config fallback chain."""

    def test_defaults_without_config(self):
        """Test that defaults work when nothing is configured."""
        assert publish_config.scm_publish_disabled() is False
        assert publish_config.scm_publish_no_prompt() is False
        assert publish_config.scm_publish_username() is None
        assert publish_config.scm_publish_password() is None
        assert publish_config.scm_publish_prompt_timeout() == 120
        assert publish_config.scm_publish_commit_message() == "[SCMPublish Plugin]"
        assert publish_config.scm_publish_git_branch() == "main"
        assert publish_config.scm_publish_log_file() is None
        assert "publishing content" in publish_config.scm_publish_readme_content()

    def test_env_var_overrides(self, monkeypatch):
        """Test that environment variables override defaults."""
        monkeypatch.setenv("SCM_PUBLISH_DISABLE", "true")
        monkeypatch.setenv("SCM_PUBLISH_NO_PROMPT", "yes")
        monkeypatch.setenv("SCM_PUBLISH_USERNAME", "ci-bot")
        monkeypatch.setenv("SCM_PUBLISH_PASSWORD", "s3cret")
        monkeypatch.setenv("SCM_PUBLISH_PROMPT_TIMEOUT", "5")
        monkeypatch.setenv("SCM_PUBLISH_GIT_BRANCH", "gh-pages")

        assert publish_config.scm_publish_disabled() is True
        assert publish_config.scm_publish_no_prompt() is True
        assert publish_config.scm_publish_username() == "ci-bot"
        assert publish_config.scm_publish_password() == "s3cret"
        assert publish_config.scm_publish_prompt_timeout() == 5
        assert publish_config.scm_publish_git_branch() == "gh-pages"

    def test_config_file_parsing(self, monkeypatch, tmp_path):
        """Test parsing from config file."""
        config_file = tmp_path / "publish.conf"
        config_file.write_text(
            """[scm_publish]
no_prompt = true
username = file-user
prompt_timeout = 30
commit_message = Publish docs
"""
        )
        monkeypatch.setenv("SCM_PUBLISH_CONFIG", str(config_file))

        assert publish_config.scm_publish_no_prompt() is True
        assert publish_config.scm_publish_username() == "file-user"
        assert publish_config.scm_publish_prompt_timeout() == 30
        assert publish_config.scm_publish_commit_message() == "Publish docs"
        assert publish_config.scm_publish_disabled() is False

    def test_config_file_missing_section(self, monkeypatch, tmp_path):
        """Test that a file without [scm_publish] falls back to defaults."""
        config_file = tmp_path / "other.conf"
        config_file.write_text("[other]\nusername = nobody\n")
        monkeypatch.setenv("SCM_PUBLISH_CONFIG", str(config_file))

        assert publish_config.scm_publish_username() is None

    def test_config_file_not_found(self, monkeypatch, tmp_path):
        """Test that a missing config file is not an error."""
        monkeypatch.setenv("SCM_PUBLISH_CONFIG", str(tmp_path / "missing.conf"))
        assert publish_config.scm_publish_prompt_timeout() == 120

    def test_options_object(self):
        """Test values from the host options object."""
        publish_config.initialize(
            SimpleNamespace(scm_publish_username="opt-user", scm_publish_no_prompt="on")
        )
        assert publish_config.scm_publish_username() == "opt-user"
        assert publish_config.scm_publish_no_prompt() is True
        assert publish_config.scm_publish_password() is None

    def test_env_overrides_options_and_file(self, monkeypatch, tmp_path):
        """Test precedence: env var, then options object, then config file."""
        config_file = tmp_path / "publish.conf"
        config_file.write_text("[scm_publish]\nusername = file-user\n")
        monkeypatch.setenv("SCM_PUBLISH_CONFIG", str(config_file))
        publish_config.initialize(SimpleNamespace(scm_publish_username="opt-user"))

        monkeypatch.setenv("SCM_PUBLISH_USERNAME", "env-user")
        assert publish_config.scm_publish_username() == "env-user"

        monkeypatch.delenv("SCM_PUBLISH_USERNAME")
        assert publish_config.scm_publish_username() == "opt-user"

        publish_config.initialize(SimpleNamespace())
        assert publish_config.scm_publish_username() == "file-user"

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("true", True),
            ("True", True),
            ("1", True),
            ("yes", True),
            ("on", True),
            ("false", False),
            ("0", False),
            ("no", False),
            ("off", False),
            ("", False),
        ],
    )
    def test_bool_parsing(self, monkeypatch, value, expected):
        """Test boolean value parsing."""
        monkeypatch.setenv("SCM_PUBLISH_NO_PROMPT", value)
        assert publish_config.scm_publish_no_prompt() is expected

    def test_invalid_int_uses_default(self, monkeypatch):
        """Test that an unparseable timeout falls back to the default."""
        monkeypatch.setenv("SCM_PUBLISH_PROMPT_TIMEOUT", "soon")
        assert publish_config.scm_publish_prompt_timeout() == 120

    def test_negative_timeout_uses_default(self, monkeypatch, caplog):
        """Test that a negative timeout is rejected with a warning."""
        monkeypatch.setenv("SCM_PUBLISH_PROMPT_TIMEOUT", "-1")
        assert publish_config.scm_publish_prompt_timeout() == 120
        assert "SCM_PUBLISH_PROMPT_TIMEOUT" in caplog.text

    def test_zero_timeout_allowed(self, monkeypatch):
        monkeypatch.setenv("SCM_PUBLISH_PROMPT_TIMEOUT", "0")
        assert publish_config.scm_publish_prompt_timeout() == 0

    def test_reset_config(self, monkeypatch, tmp_path):
        """Test that reset_config re-reads the config file."""
        config_file = tmp_path / "publish.conf"
        config_file.write_text("[scm_publish]\ngit_branch = first\n")
        monkeypatch.setenv("SCM_PUBLISH_CONFIG", str(config_file))
        assert publish_config.scm_publish_git_branch() == "first"

        config_file.write_text("[scm_publish]\ngit_branch = second\n")
        assert publish_config.scm_publish_git_branch() == "first"

        publish_config.reset_config()
        assert publish_config.scm_publish_git_branch() == "second"
