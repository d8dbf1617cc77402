"""Exception hierarchy for signal-rank.

All exceptions inherit from SignalRankError (single catch point).
Collectors return None for a missing repository; the engine only raises
RepositoryNotFoundError when that repository was its sole input.
"""

from __future__ import annotations


class SignalRankError(Exception):
    """Base exception for all signal-rank errors."""


class InvalidScanInputError(SignalRankError):
    """Neither a repository identifier nor a site URL was supplied."""


class RepositoryNotFoundError(SignalRankError):
    """The only identifier supplied was a repository that does not exist."""


class CollectorError(SignalRankError):
    """A collector exhausted its retries against an upstream service."""


class GitHubAPIError(CollectorError):
    """Repository metadata could not be fetched from the GitHub API."""


class SiteFetchError(CollectorError):
    """The target page could not be retrieved."""


class ScanTimeoutError(CollectorError):
    """The caller's deadline expired before the collector finished."""
