"""Tests for engine settings and GitHub token resolution (config.py)."""

from __future__ import annotations

import subprocess
from unittest.mock import MagicMock

from signal_rank.config import (
    DEFAULT_BASE_DELAY,
    DEFAULT_MAX_ATTEMPTS,
    EngineSettings,
    _resolve_gh_cli_token,
    resolve_github_token,
)


class TestResolveGitHubToken:
    def test_env_token_wins(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "  ghp_env  ")
        assert resolve_github_token() == ("ghp_env", "env")

    def test_gh_cli_fallback(self, monkeypatch):
        monkeypatch.setattr("signal_rank.config._resolve_gh_cli_token", lambda: "gho_cli")
        assert resolve_github_token() == ("gho_cli", "gh_cli")

    def test_no_token(self):
        assert resolve_github_token() == (None, "none")


class TestGhCliToken:
    def test_reads_stdout(self, monkeypatch):
        completed = MagicMock(returncode=0, stdout="gho_abc\n")
        monkeypatch.setattr(subprocess, "run", MagicMock(return_value=completed))
        assert _resolve_gh_cli_token() == "gho_abc"

    def test_not_logged_in(self, monkeypatch):
        completed = MagicMock(returncode=1, stdout="")
        monkeypatch.setattr(subprocess, "run", MagicMock(return_value=completed))
        assert _resolve_gh_cli_token() is None

    def test_gh_not_installed(self, monkeypatch):
        monkeypatch.setattr(subprocess, "run", MagicMock(side_effect=FileNotFoundError("gh")))
        assert _resolve_gh_cli_token() is None

    def test_gh_hangs(self, monkeypatch):
        hang = MagicMock(side_effect=subprocess.TimeoutExpired(cmd="gh", timeout=2))
        monkeypatch.setattr(subprocess, "run", hang)
        assert _resolve_gh_cli_token() is None


class TestEngineSettings:
    def test_defaults(self):
        settings = EngineSettings()
        assert settings.max_attempts == DEFAULT_MAX_ATTEMPTS == 3
        assert settings.base_delay == DEFAULT_BASE_DELAY == 1.0
        assert settings.read_timeout == 30.0
        assert settings.connect_timeout == 10.0
        assert settings.github_token is None

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "ghp_env")
        settings = EngineSettings.from_env()
        assert settings.github_token == "ghp_env"
        assert settings.token_source == "env"
