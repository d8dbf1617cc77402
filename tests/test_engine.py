"""Tests for the scoring engine (engine.py)."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from signal_rank.config import EngineSettings
from signal_rank.engine import ScoringEngine
from signal_rank.errors import (
    CollectorError,
    GitHubAPIError,
    InvalidScanInputError,
    RepositoryNotFoundError,
    ScanTimeoutError,
    SiteFetchError,
)
from signal_rank.models import GitHubScanResult, SaaSScanResult, ScanRequest, SRTrack
from signal_rank.retry import RetryPolicy

NOW = datetime(2026, 3, 1, tzinfo=UTC)

REPO = GitHubScanResult(
    owner="acme",
    repo="agent",
    stars=6000,
    forks=900,
    last_commit_date=NOW - timedelta(days=3),
    has_license=True,
    has_mcp=True,
    homepage="https://acme.dev",
)
SITE = SaaSScanResult(
    https_valid=True,
    social_links=("https://x.com/acme", "https://github.com/acme"),
    has_basic_meta=True,
    has_h1=True,
)


def _engine(
    github_result: object = REPO,
    site_result: object = SITE,
) -> tuple[ScoringEngine, MagicMock, MagicMock]:
    github = MagicMock()
    site = MagicMock()
    for collector, outcome in ((github, github_result), (site, site_result)):
        if isinstance(outcome, BaseException):
            collector.scan = AsyncMock(side_effect=outcome)
        else:
            collector.scan = AsyncMock(return_value=outcome)
    engine = ScoringEngine(github, site, EngineSettings(base_delay=0.0))
    return engine, github, site


BOTH = ScanRequest(repo_owner="acme", repo_name="agent", site_url="https://acme.dev")
REPO_ONLY = ScanRequest(repo_owner="acme", repo_name="agent")
SITE_ONLY = ScanRequest(site_url="https://acme.dev")


class TestValidation:
    async def test_empty_request_rejected(self) -> None:
        engine, github, site = _engine()
        with pytest.raises(InvalidScanInputError):
            await engine.score(ScanRequest())
        github.scan.assert_not_awaited()
        site.scan.assert_not_awaited()

    async def test_half_repo_identifier_rejected(self) -> None:
        engine, _, _ = _engine()
        with pytest.raises(InvalidScanInputError):
            await engine.score(ScanRequest(repo_owner="acme"))

    async def test_invalid_site_url_rejected(self) -> None:
        engine, _, site = _engine()
        with pytest.raises(InvalidScanInputError):
            await engine.score(ScanRequest(site_url="ftp://acme.dev"))
        site.scan.assert_not_awaited()


class TestTracks:
    async def test_hybrid(self) -> None:
        engine, github, site = _engine()
        scored = await engine.score(BOTH, now=NOW)

        assert scored.result.track == SRTrack.HYBRID
        assert scored.github == REPO
        assert scored.saas == SITE
        assert scored.result.final_score >= max(scored.result.score_a, scored.result.score_b)
        github.scan.assert_awaited_once()
        site.scan.assert_awaited_once()

    async def test_site_only(self) -> None:
        engine, github, _ = _engine()
        scored = await engine.score(SITE_ONLY, now=NOW)

        assert scored.result.track == SRTrack.SAAS
        assert scored.result.score_a == 0.0
        assert scored.result.final_score == 3.0
        github.scan.assert_not_awaited()

    async def test_repo_only_without_homepage(self) -> None:
        engine, _, site = _engine(github_result=GitHubScanResult(owner="acme", repo="agent"))
        scored = await engine.score(REPO_ONLY, now=NOW)

        assert scored.result.track == SRTrack.OPEN_SOURCE
        site.scan.assert_not_awaited()

    async def test_same_policy_shared_by_both_collectors(self) -> None:
        engine, github, site = _engine()
        await engine.score(BOTH, timeout=30, now=NOW)

        github_policy = github.scan.await_args.kwargs["policy"]
        site_policy = site.scan.await_args.kwargs["policy"]
        assert isinstance(github_policy, RetryPolicy)
        assert github_policy is site_policy
        assert github_policy.deadline is not None

    async def test_diagnostics_cover_present_tracks(self) -> None:
        engine, _, _ = _engine()
        scored = await engine.score(BOTH, now=NOW)
        assert len(scored.diagnostics) == 16
        assert scored.diagnostics[0].metric == "GitHub Stars"


class TestHomepageFollow:
    async def test_repo_homepage_scanned(self) -> None:
        engine, _, site = _engine()
        scored = await engine.score(REPO_ONLY, now=NOW)

        site.scan.assert_awaited_once()
        assert site.scan.await_args.args[0] == "https://acme.dev"
        assert scored.result.track == SRTrack.HYBRID

    async def test_follow_disabled(self) -> None:
        engine, _, site = _engine()
        scored = await engine.score(REPO_ONLY, follow_homepage=False, now=NOW)

        site.scan.assert_not_awaited()
        assert scored.result.track == SRTrack.OPEN_SOURCE

    async def test_homepage_failure_keeps_repo_score(self) -> None:
        engine, _, _ = _engine(site_result=SiteFetchError("down"))
        scored = await engine.score(REPO_ONLY, now=NOW)

        assert scored.result.track == SRTrack.OPEN_SOURCE
        assert scored.saas is None

    async def test_invalid_homepage_ignored(self) -> None:
        repo = GitHubScanResult(owner="acme", repo="agent", homepage="acme.dev")
        engine, _, site = _engine(github_result=repo)
        await engine.score(REPO_ONLY, now=NOW)
        site.scan.assert_not_awaited()


class TestDegradation:
    async def test_github_failure_degrades_to_site_only(self) -> None:
        engine, _, _ = _engine(github_result=GitHubAPIError("rate limited"))
        scored = await engine.score(BOTH, now=NOW)

        assert scored.result.track == SRTrack.SAAS
        assert scored.github is None

    async def test_missing_repo_with_site_scores_site(self) -> None:
        engine, _, _ = _engine(github_result=None)
        scored = await engine.score(BOTH, now=NOW)
        assert scored.result.track == SRTrack.SAAS

    async def test_site_failure_degrades_to_repo_only(self) -> None:
        engine, _, _ = _engine(site_result=SiteFetchError("down"))
        scored = await engine.score(BOTH, now=NOW)
        assert scored.result.track == SRTrack.OPEN_SOURCE

    async def test_both_failing_raises(self) -> None:
        engine, _, _ = _engine(
            github_result=GitHubAPIError("down"), site_result=SiteFetchError("down")
        )
        with pytest.raises(CollectorError, match="Both tracks failed"):
            await engine.score(BOTH, now=NOW)

    async def test_sole_track_failure_propagates(self) -> None:
        engine, _, _ = _engine(site_result=SiteFetchError("down"))
        with pytest.raises(SiteFetchError):
            await engine.score(SITE_ONLY, now=NOW)

    async def test_missing_sole_repository(self) -> None:
        engine, _, _ = _engine(github_result=None)
        with pytest.raises(RepositoryNotFoundError, match="acme/agent"):
            await engine.score(REPO_ONLY, now=NOW)

    async def test_timeout_is_never_absorbed(self) -> None:
        engine, _, _ = _engine(github_result=ScanTimeoutError("deadline"))
        with pytest.raises(ScanTimeoutError):
            await engine.score(BOTH, now=NOW)

    async def test_unexpected_errors_propagate(self) -> None:
        engine, _, _ = _engine(site_result=RuntimeError("bug"))
        with pytest.raises(RuntimeError):
            await engine.score(BOTH, now=NOW)


class TestCancellation:
    async def test_cancel_event_reaches_policy(self) -> None:
        engine, github, _ = _engine()
        cancel = asyncio.Event()
        await engine.score(BOTH, cancel_event=cancel, now=NOW)
        assert github.scan.await_args.kwargs["policy"].cancel_event is cancel


class TestScoreUrl:
    async def test_github_url_routes_to_repo(self) -> None:
        engine, github, _ = _engine()
        await engine.score_url("https://github.com/acme/agent.git", follow_homepage=False)
        assert github.scan.await_args.args[:2] == ("acme", "agent")

    async def test_site_url_routes_to_site(self) -> None:
        engine, github, site = _engine()
        scored = await engine.score_url("http://acme.dev/?ref=hn", is_claimed=True)

        github.scan.assert_not_awaited()
        assert site.scan.await_args.args[0] == "https://acme.dev"
        assert scored.result.is_verified is True

    async def test_invalid_url_rejected(self) -> None:
        engine, _, _ = _engine()
        with pytest.raises(InvalidScanInputError):
            await engine.score_url("not a url")
