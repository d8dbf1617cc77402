"""Shared test fixtures."""

from __future__ import annotations

import pytest


@pytest.fixture(autouse=True)
def _isolate_github_auth(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's GITHUB_TOKEN and `gh` login out of every test."""
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)
    monkeypatch.setattr("signal_rank.config._resolve_gh_cli_token", lambda: None)
