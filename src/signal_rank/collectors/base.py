"""Ports: repository and site signal collection."""

from __future__ import annotations

from typing import Protocol

from signal_rank.models import GitHubScanResult, SaaSScanResult
from signal_rank.retry import RetryPolicy


class GitHubCollectorPort(Protocol):
    """Port for collecting Track A signals from the GitHub API."""

    async def scan(
        self,
        owner: str,
        repo: str,
        *,
        policy: RetryPolicy | None = None,
    ) -> GitHubScanResult | None:
        """Scan a repository. Returns None only if the repository does not exist."""
        ...


class SiteCollectorPort(Protocol):
    """Port for collecting Track B signals from a site's rendered HTML."""

    async def scan(
        self,
        url: str,
        *,
        policy: RetryPolicy | None = None,
    ) -> SaaSScanResult:
        """Scan a page and derive its discoverability signals."""
        ...
