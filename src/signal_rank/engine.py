"""Score one entity: run the applicable collectors, then the calculator."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from datetime import UTC, datetime

from signal_rank.calculator import calculate_sr_score
from signal_rank.collectors.base import GitHubCollectorPort, SiteCollectorPort
from signal_rank.config import EngineSettings
from signal_rank.diagnostics import generate_diagnostics
from signal_rank.errors import (
    CollectorError,
    InvalidScanInputError,
    RepositoryNotFoundError,
    ScanTimeoutError,
)
from signal_rank.models import (
    EntityScore,
    GitHubScanResult,
    SaaSScanResult,
    ScanRequest,
    URLType,
)
from signal_rank.retry import RetryPolicy
from signal_rank.urls import detect_url, is_valid_url

logger = logging.getLogger(__name__)


async def _none() -> None:
    return None


class ScoringEngine:
    """Composes the two collectors and the calculator.

    Holds only the collectors and immutable settings, so one instance can
    serve many concurrent scans.
    """

    def __init__(
        self,
        github: GitHubCollectorPort,
        site: SiteCollectorPort,
        settings: EngineSettings | None = None,
    ) -> None:
        self._github = github
        self._site = site
        self._settings = settings or EngineSettings()

    async def score(
        self,
        request: ScanRequest,
        *,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
        follow_homepage: bool = True,
        now: datetime | None = None,
    ) -> EntityScore:
        """Collect both tracks concurrently and compute the entity's score.

        Args:
            request: Repository identifier and/or site URL, plus claim status.
            timeout: Seconds before in-flight fetches and backoff sleeps abort.
            cancel_event: Setting it aborts the scan with ScanTimeoutError.
            follow_homepage: For repository-only requests, also scan the
                repository's homepage when it has one.
            now: Reference time for commit recency (defaults to now, UTC).

        Raises:
            InvalidScanInputError: No usable identifier was supplied.
            RepositoryNotFoundError: The only identifier was a missing repository.
            CollectorError: Every requested track failed after retries.
            ScanTimeoutError: The deadline expired or the scan was cancelled.
        """
        _validate(request)
        policy = RetryPolicy.with_timeout(
            timeout,
            max_attempts=self._settings.max_attempts,
            base_delay=self._settings.base_delay,
            cancel_event=cancel_event,
        )

        github_task: Awaitable[GitHubScanResult | None] = (
            self._github.scan(request.repo_owner, request.repo_name, policy=policy)
            if request.has_repo
            else _none()
        )
        site_task: Awaitable[SaaSScanResult | None] = (
            self._site.scan(request.site_url, policy=policy) if request.has_site else _none()
        )
        github_outcome, site_outcome = await asyncio.gather(
            github_task, site_task, return_exceptions=True
        )

        _raise_fatal(github_outcome, site_outcome)
        github = _absorb(github_outcome, "repository", request)
        saas = _absorb(site_outcome, "site", request)

        if request.has_repo and not request.has_site:
            if github is None:
                raise RepositoryNotFoundError(
                    f"Repository {request.repo_owner}/{request.repo_name} does not exist"
                )
            if follow_homepage and github.homepage and is_valid_url(github.homepage):
                saas = await self._scan_homepage(github.homepage, policy)

        if request.has_repo and request.has_site and github is None and saas is None:
            raise CollectorError(
                f"Both tracks failed for {request.repo_owner}/{request.repo_name} "
                f"and {request.site_url}"
            )

        now = now or datetime.now(tz=UTC)
        result = calculate_sr_score(github, saas, request.is_claimed, now=now)
        logger.debug(
            "Scored entity: track=%s final=%.1f tier=%s",
            result.track,
            result.final_score,
            result.tier,
        )
        return EntityScore(
            result=result,
            github=github,
            saas=saas,
            diagnostics=generate_diagnostics(github, saas, result.breakdown, now=now),
        )

    async def score_url(
        self,
        url: str,
        *,
        is_claimed: bool = False,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
        follow_homepage: bool = True,
    ) -> EntityScore:
        """Detect whether ``url`` is a GitHub repository or a site and score it."""
        detection = detect_url(url)
        if detection.type == URLType.INVALID:
            raise InvalidScanInputError(
                f"'{url}' is not a valid URL. Supply a GitHub repository URL or a site URL."
            )
        if detection.type == URLType.GITHUB:
            request = ScanRequest(
                repo_owner=detection.github_owner,
                repo_name=detection.github_repo,
                is_claimed=is_claimed,
            )
        else:
            request = ScanRequest(site_url=detection.normalized_url, is_claimed=is_claimed)
        return await self.score(
            request,
            timeout=timeout,
            cancel_event=cancel_event,
            follow_homepage=follow_homepage,
        )

    async def _scan_homepage(self, homepage: str, policy: RetryPolicy) -> SaaSScanResult | None:
        try:
            return await self._site.scan(homepage, policy=policy)
        except ScanTimeoutError:
            raise
        except CollectorError as exc:
            logger.warning("Homepage scan failed, scoring repository only: %s", exc)
            return None


def _validate(request: ScanRequest) -> None:
    if not request.has_repo and not request.has_site:
        raise InvalidScanInputError(
            "Supply a repository owner and name, a site URL, or both."
        )
    if request.has_site and not is_valid_url(request.site_url or ""):
        raise InvalidScanInputError(f"'{request.site_url}' is not a valid http(s) URL.")


def _raise_fatal(*outcomes: object) -> None:
    """Re-raise timeouts and anything that is not a collector failure."""
    for outcome in outcomes:
        if isinstance(outcome, ScanTimeoutError):
            raise outcome
    for outcome in outcomes:
        if isinstance(outcome, BaseException) and not isinstance(outcome, CollectorError):
            raise outcome


def _absorb(outcome: object, track: str, request: ScanRequest) -> object | None:
    """Keep a collector's result, or degrade its failure to "no data".

    A failure is only absorbed when the other track was also requested.
    """
    if not isinstance(outcome, CollectorError):
        return outcome
    if not (request.has_repo and request.has_site):
        raise outcome
    logger.warning("The %s scan failed, scoring the other track only: %s", track, outcome)
    return None
