"""Collect Track A signals for a repository from the GitHub REST API."""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import re
from datetime import datetime

import httpx

from signal_rank.config import EngineSettings
from signal_rank.errors import GitHubAPIError
from signal_rank.models import GitHubScanResult
from signal_rank.retry import RetryPolicy

logger = logging.getLogger(__name__)

_API_BASE = "https://api.github.com"

# ─── Keyword families ─────────────────────────────────────

MCP_KEYWORDS: tuple[str, ...] = (
    "mcp",
    "model context protocol",
    "mcp server",
    "mcp-server",
    "modelcontextprotocol",
)

STANDARD_INTERFACE_KEYWORDS: tuple[str, ...] = (
    "langchain",
    "vercel ai",
    "ai sdk",
    "openai",
    "anthropic",
    "llama-index",
    "llamaindex",
    "autogen",
    "crewai",
    "semantic-kernel",
)

USAGE_KEYWORDS: tuple[str, ...] = (
    "usage",
    "example",
    "getting started",
    "quick start",
    "how to use",
    "installation",
)

# ─── Root-level file candidates (compared lowercase) ──────

OPENAPI_FILES = frozenset(
    {
        "openapi.json",
        "openapi.yaml",
        "openapi.yml",
        "swagger.json",
        "swagger.yaml",
        "swagger.yml",
    }
)
MANIFEST_FILES = frozenset({"manifest.json", "package.json"})
DOCKER_FILES = frozenset(
    {
        "dockerfile",
        "docker-compose.yml",
        "docker-compose.yaml",
        "compose.yml",
        "compose.yaml",
    }
)

_CODE_BLOCK_RE = re.compile(r"```.*?```", re.DOTALL)


# ─── Pure signal helpers ──────────────────────────────────


def _contains_any(text: str, keywords: tuple[str, ...]) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


def detect_mcp(text: str) -> bool:
    """True if the text mentions the Model Context Protocol."""
    return _contains_any(text, MCP_KEYWORDS)


def detect_standard_interface(text: str) -> bool:
    """True if the text mentions a known agent framework or SDK."""
    return _contains_any(text, STANDARD_INTERFACE_KEYWORDS)


def has_usage_code_block(readme: str) -> bool:
    """A README shows usage if it has a fenced code block and a usage-intent keyword."""
    if not _CODE_BLOCK_RE.search(readme):
        return False
    return _contains_any(readme, USAGE_KEYWORDS)


def has_any_file(file_names: list[str], candidates: frozenset[str]) -> bool:
    return any(name.lower() in candidates for name in file_names)


def count_lines(text: str) -> int:
    if not text:
        return 0
    return text.count("\n") + 1


def _parse_timestamp(value: object) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Unparsable commit timestamp: %r", value)
        return None


def _int_field(data: dict, key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return max(value, 0)


def _reset_epoch(resp: httpx.Response) -> float | None:
    raw = resp.headers.get("X-RateLimit-Reset")
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _is_rate_limited(resp: httpx.Response) -> bool:
    return resp.status_code == 403 and resp.headers.get("X-RateLimit-Remaining") == "0"


# ─── Collector ────────────────────────────────────────────


class GitHubSignalCollector:
    """Adapter for GitHubCollectorPort. Holds the shared httpx client."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        settings: EngineSettings | None = None,
    ) -> None:
        self._http = http_client
        self._settings = settings or EngineSettings()

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self._settings.github_token:
            headers["Authorization"] = f"Bearer {self._settings.github_token}"
        return headers

    def _default_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self._settings.max_attempts,
            base_delay=self._settings.base_delay,
        )

    async def scan(
        self,
        owner: str,
        repo: str,
        *,
        policy: RetryPolicy | None = None,
    ) -> GitHubScanResult | None:
        """Scan a repository and derive its Track A signals.

        Returns None only when the repository does not exist (404). Raises
        GitHubAPIError when metadata cannot be fetched after all retries, and
        ScanTimeoutError when the policy's deadline or cancellation fires.
        Failures of the commit, listing, or README sub-fetches degrade those
        signals to their defaults.
        """
        policy = policy or self._default_policy()

        info = await self._get_json(f"/repos/{owner}/{repo}", policy)
        if info is None:
            return None
        if not isinstance(info, dict):
            raise GitHubAPIError(f"Unexpected repository payload for {owner}/{repo}")

        branch = info.get("default_branch") or "HEAD"
        fetched = await asyncio.gather(
            self._fetch_latest_commit(owner, repo, branch, policy),
            self._fetch_root_files(owner, repo, policy),
            self._fetch_readme(owner, repo, policy),
            return_exceptions=True,
        )
        for outcome in fetched:
            if isinstance(outcome, BaseException):
                raise outcome
        last_commit, root_files, readme = fetched

        description = info.get("description") or ""
        if not isinstance(description, str):
            description = ""
        topics_raw = info.get("topics")
        topics: tuple[str, ...] = ()
        if isinstance(topics_raw, list):
            topics = tuple(t for t in topics_raw if isinstance(t, str))
        homepage = info.get("homepage") or None
        if not isinstance(homepage, str):
            homepage = None

        combined = " ".join([description, readme, " ".join(topics)])

        return GitHubScanResult(
            owner=owner,
            repo=repo,
            stars=_int_field(info, "stargazers_count"),
            forks=_int_field(info, "forks_count"),
            last_commit_date=last_commit,
            has_license=bool(info.get("license")),
            has_openapi=has_any_file(root_files, OPENAPI_FILES),
            has_dockerfile=has_any_file(root_files, DOCKER_FILES),
            has_manifest=has_any_file(root_files, MANIFEST_FILES),
            readme_length=count_lines(readme),
            has_usage_code_block=has_usage_code_block(readme),
            has_mcp=detect_mcp(combined),
            has_standard_interface=detect_standard_interface(combined),
            homepage=homepage,
            description=description,
            topics=topics,
        )

    # ── Sub-fetches ──────────────────────────────────────────

    async def _fetch_latest_commit(
        self, owner: str, repo: str, branch: str, policy: RetryPolicy
    ) -> datetime | None:
        data = await self._get_optional(f"/repos/{owner}/{repo}/commits/{branch}", policy)
        if not isinstance(data, dict):
            return None
        commit = data.get("commit")
        committer = commit.get("committer") if isinstance(commit, dict) else None
        if not isinstance(committer, dict):
            return None
        return _parse_timestamp(committer.get("date"))

    async def _fetch_root_files(self, owner: str, repo: str, policy: RetryPolicy) -> list[str]:
        data = await self._get_optional(f"/repos/{owner}/{repo}/contents", policy)
        if not isinstance(data, list):
            return []
        return [
            item["name"]
            for item in data
            if isinstance(item, dict)
            and item.get("type") == "file"
            and isinstance(item.get("name"), str)
        ]

    async def _fetch_readme(self, owner: str, repo: str, policy: RetryPolicy) -> str:
        data = await self._get_optional(f"/repos/{owner}/{repo}/readme", policy)
        if not isinstance(data, dict):
            return ""
        content = data.get("content")
        if not isinstance(content, str) or data.get("encoding") != "base64":
            return ""
        try:
            raw = base64.b64decode(content)
        except binascii.Error:
            logger.debug("Could not decode README for %s/%s", owner, repo)
            return ""
        # Stray non-UTF-8 bytes become U+FFFD; the rest of the README still counts
        return raw.decode("utf-8", errors="replace")

    # ── HTTP ─────────────────────────────────────────────────

    async def _get_optional(self, path: str, policy: RetryPolicy) -> object | None:
        """Like _get_json, but exhausted retries degrade to None."""
        try:
            return await self._get_json(path, policy)
        except GitHubAPIError as exc:
            logger.warning("GitHub sub-fetch degraded to default: %s", exc)
            return None

    async def _get_json(self, path: str, policy: RetryPolicy) -> object | None:
        """GET an API path with rate-limit waits and exponential backoff.

        Returns None on 404. Raises GitHubAPIError once attempts are exhausted.
        """
        url = f"{_API_BASE}{path}"
        last_error = "no attempts made"

        for attempt in range(policy.max_attempts):
            policy.check()
            try:
                resp = await policy.bounded(self._http.get(url, headers=self._headers()))
            except httpx.HTTPError as exc:
                last_error = f"{type(exc).__name__}: {exc}"
            else:
                if resp.status_code == 404:
                    return None
                if _is_rate_limited(resp):
                    last_error = "rate limit exhausted"
                    if attempt + 1 < policy.max_attempts:
                        delay = policy.rate_limit_delay(attempt, _reset_epoch(resp))
                        logger.warning(
                            "GitHub API rate limit exhausted, waiting %.1fs before retrying %s",
                            delay,
                            path,
                        )
                        await policy.sleep(delay)
                    continue
                if resp.status_code == 200:
                    try:
                        return resp.json()
                    except ValueError:
                        last_error = "response body is not valid JSON"
                else:
                    last_error = f"HTTP {resp.status_code}"

            if attempt + 1 < policy.max_attempts:
                delay = policy.backoff_delay(attempt)
                logger.warning(
                    "GET %s attempt %d/%d failed (%s), retrying in %.1fs",
                    path,
                    attempt + 1,
                    policy.max_attempts,
                    last_error,
                    delay,
                )
                await policy.sleep(delay)

        raise GitHubAPIError(
            f"GET {path} failed after {policy.max_attempts} attempts: {last_error}"
        )
