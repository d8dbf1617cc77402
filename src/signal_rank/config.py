"""Engine settings resolved from the environment."""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; SignalRankBot/1.0)"


@dataclass(frozen=True, slots=True)
class EngineSettings:
    """Runtime knobs for the collectors. Immutable once built."""

    github_token: str | None = None
    token_source: str = "none"  # env | gh_cli | none
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY
    read_timeout: float = 30.0
    connect_timeout: float = 10.0
    user_agent: str = DEFAULT_USER_AGENT

    @classmethod
    def from_env(cls) -> EngineSettings:
        token, source = resolve_github_token()
        return cls(github_token=token, token_source=source)


def resolve_github_token() -> tuple[str | None, str]:
    """Resolve auth token: env first, then `gh auth token` fallback."""
    env_token = os.environ.get("GITHUB_TOKEN", "").strip()
    if env_token:
        return env_token, "env"

    gh_token = _resolve_gh_cli_token()
    if gh_token:
        logger.info("Using GitHub token from `gh auth token` fallback.")
        return gh_token, "gh_cli"

    logger.info(
        "No GitHub auth token found (checked GITHUB_TOKEN and `gh auth token`). "
        "Repository scans use the unauthenticated rate limit."
    )
    return None, "none"


def _resolve_gh_cli_token() -> str | None:
    """Try to read a token from local GitHub CLI auth context."""
    try:
        completed = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=2,
            check=False,
        )
    except (OSError, subprocess.SubprocessError):
        return None

    if completed.returncode != 0:
        return None
    token = completed.stdout.strip()
    return token or None
