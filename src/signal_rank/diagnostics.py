"""Turn a score breakdown into per-metric pass/warning/fail diagnostics."""

from __future__ import annotations

from datetime import datetime

from signal_rank.calculator import calculate_protocol_score, is_recent_commit
from signal_rank.models import (
    DiagnosticItem,
    DiagnosticStatus,
    GitHubScanResult,
    SaaSScanResult,
    SRScoreBreakdown,
)

SUGGESTIONS: dict[str, str] = {
    "stars": "Grow visibility: share the project, submit it to awesome lists, write about it.",
    "forks": "Invite contributions: add CONTRIBUTING.md and label good first issues.",
    "commits": "Keep the project active: commit fixes and cut releases regularly.",
    "license": "Add a LICENSE file at the repository root (MIT or Apache-2.0 are common).",
    "openapi": "Describe the API in an openapi.json or swagger.yaml at the repository root.",
    "dockerfile": "Add a Dockerfile so the project can be run in one command.",
    "readme": "Expand the README past 200 lines with installation steps and a usage example.",
    "mcp": "Expose a Model Context Protocol server so agents can call the project directly.",
    "https": "Serve the site over HTTPS with a valid certificate.",
    "social": "Link at least two official profiles (X, GitHub, Discord, LinkedIn).",
    "jsonld": "Embed SoftwareApplication JSON-LD in the page <head>.",
    "meta": "Provide a non-empty <title>, meta description, and an <h1>.",
    "og": "Add og:title and og:image meta tags.",
    "apidocs": "Publish API documentation under /docs, /api, or /developers.",
    "integration": "Mention your SDK, webhooks, Zapier, or plugin integrations.",
    "login": "Add a visible login or get-started button.",
}


def get_status(score: float, max_score: float, threshold: float = 0.5) -> DiagnosticStatus:
    ratio = score / max_score if max_score > 0 else 0.0
    if ratio >= 1:
        return DiagnosticStatus.PASS
    if ratio >= threshold:
        return DiagnosticStatus.WARNING
    return DiagnosticStatus.FAIL


def _item(metric: str, score: float, max_score: float, key: str) -> DiagnosticItem:
    return DiagnosticItem(
        metric=metric,
        status=get_status(score, max_score),
        score=score,
        max_score=max_score,
        suggestion=SUGGESTIONS[key] if score < max_score else None,
    )


def github_diagnostics(
    scan: GitHubScanResult,
    breakdown: SRScoreBreakdown,
    *,
    now: datetime,
) -> list[DiagnosticItem]:
    recent = is_recent_commit(scan.last_commit_date, now=now)
    readme_ok = scan.readme_length > 200 and scan.has_usage_code_block
    return [
        _item("GitHub Stars", breakdown.stars_score, 2.0, "stars"),
        _item("Fork Ratio", breakdown.forks_score, 1.0, "forks"),
        _item("Recent Commits", 1.0 if recent else 0.0, 1.0, "commits"),
        _item("License", 1.0 if scan.has_license else 0.0, 1.0, "license"),
        _item("OpenAPI/Swagger", 1.5 if scan.has_openapi else 0.0, 1.5, "openapi"),
        _item("Dockerfile", 0.5 if scan.has_dockerfile else 0.0, 0.5, "dockerfile"),
        _item("README Quality", 1.0 if readme_ok else 0.0, 1.0, "readme"),
        _item(
            "MCP Support",
            calculate_protocol_score(scan.has_mcp, scan.has_standard_interface),
            2.0,
            "mcp",
        ),
    ]


def saas_diagnostics(scan: SaaSScanResult) -> list[DiagnosticItem]:
    return [
        _item("HTTPS", 1.0 if scan.https_valid else 0.0, 1.0, "https"),
        _item("Social Links", 1.0 if len(scan.social_links) >= 2 else 0.0, 1.0, "social"),
        _item("JSON-LD", 2.0 if scan.has_json_ld else 0.0, 2.0, "jsonld"),
        _item("Meta Tags", 1.0 if scan.has_basic_meta else 0.0, 1.0, "meta"),
        _item("Open Graph", 1.0 if scan.has_og_tags else 0.0, 1.0, "og"),
        _item("API Docs", 1.5 if scan.has_api_docs_path else 0.0, 1.5, "apidocs"),
        _item(
            "Integrations", 1.0 if scan.has_integration_keywords else 0.0, 1.0, "integration"
        ),
        _item("Login Entry", 0.5 if scan.has_login_button else 0.0, 0.5, "login"),
    ]


def generate_diagnostics(
    github: GitHubScanResult | None,
    saas: SaaSScanResult | None,
    breakdown: SRScoreBreakdown,
    *,
    now: datetime,
) -> list[DiagnosticItem]:
    """Diagnostics for every track present, Track A first."""
    items: list[DiagnosticItem] = []
    if github is not None:
        items.extend(github_diagnostics(github, breakdown, now=now))
    if saas is not None:
        items.extend(saas_diagnostics(saas))
    return items
