"""Classify user-supplied URLs as GitHub repositories or sites."""

from __future__ import annotations

import re
from urllib.parse import urlparse

from signal_rank.models import URLDetection, URLType

_VALID_SCHEMES = frozenset({"http", "https"})

_OWNER_RE = re.compile(r"^[a-zA-Z0-9](?:[a-zA-Z0-9]|-(?=[a-zA-Z0-9])){0,38}$")
_REPO_RE = re.compile(r"^[a-zA-Z0-9._-]+$")

# Top-level github.com paths that are product pages, not users or orgs
_RESERVED_OWNERS = frozenset(
    {
        "about",
        "actions",
        "apps",
        "blog",
        "codespaces",
        "collections",
        "contact",
        "copilot",
        "discussions",
        "enterprise",
        "events",
        "explore",
        "features",
        "issues",
        "login",
        "marketplace",
        "new",
        "notifications",
        "organizations",
        "orgs",
        "packages",
        "pricing",
        "pulls",
        "security",
        "settings",
        "signup",
        "sponsors",
        "support",
        "team",
        "topics",
        "trending",
    }
)


def is_valid_url(url: str) -> bool:
    """An http(s) URL with a dotted hostname (or localhost)."""
    if not url or not url.strip():
        return False
    try:
        parsed = urlparse(url.strip())
        hostname = parsed.hostname
    except ValueError:
        return False
    if parsed.scheme.lower() not in _VALID_SCHEMES or not hostname:
        return False
    return "." in hostname or hostname == "localhost"


def normalize_url(url: str) -> str:
    """Upgrade to https (except localhost), drop query/fragment and trailing slashes."""
    trimmed = url.strip()
    try:
        parsed = urlparse(trimmed)
        hostname = parsed.hostname
        port = parsed.port
    except ValueError:
        return trimmed
    if not hostname:
        return trimmed

    scheme = parsed.scheme.lower()
    if scheme == "http" and hostname != "localhost":
        scheme = "https"

    normalized = f"{scheme}://{hostname}"
    if port:
        normalized += f":{port}"
    path = parsed.path.rstrip("/")
    return normalized + path


def extract_github_info(url: str) -> tuple[str, str] | None:
    """Extract (owner, repo) from a GitHub repository URL.

    Returns None if the URL is not a GitHub repo.
    """
    try:
        parsed = urlparse(url.strip())
        hostname = (parsed.hostname or "").lower()
    except ValueError:
        return None
    if parsed.scheme.lower() not in _VALID_SCHEMES:
        return None
    if hostname not in ("github.com", "www.github.com"):
        return None

    parts = [p for p in parsed.path.split("/") if p]
    if len(parts) < 2:
        return None
    owner, repo = parts[0], parts[1]
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]

    if owner.lower() in _RESERVED_OWNERS:
        return None
    if not _OWNER_RE.match(owner) or not repo or not _REPO_RE.match(repo):
        return None
    return owner, repo


def is_github_url(url: str) -> bool:
    return extract_github_info(url) is not None


def normalize_github_url(url: str) -> str:
    info = extract_github_info(url)
    if info is None:
        return normalize_url(url)
    owner, repo = info
    return f"https://github.com/{owner}/{repo}"


def detect_url(url: str) -> URLDetection:
    """Validate a URL and classify it as a GitHub repository or a site."""
    if not is_valid_url(url):
        return URLDetection(type=URLType.INVALID, normalized_url="")

    info = extract_github_info(url)
    if info is not None:
        owner, repo = info
        return URLDetection(
            type=URLType.GITHUB,
            normalized_url=f"https://github.com/{owner}/{repo}",
            github_owner=owner,
            github_repo=repo,
        )

    return URLDetection(type=URLType.SAAS, normalized_url=normalize_url(url))
