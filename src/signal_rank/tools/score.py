"""score_agent and scan_url tools -- compute Signal Rank for one entity."""

from __future__ import annotations

import logging

from mcp.server.fastmcp import Context

from signal_rank.errors import SignalRankError
from signal_rank.models import ScanRequest
from signal_rank.tools._helpers import entity_payload, get_context

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_SECONDS = 60.0


async def score_agent(
    ctx: Context,
    repo_owner: str = "",
    repo_name: str = "",
    site_url: str = "",
    is_claimed: bool = False,
) -> dict[str, object]:
    """Score an agent from its GitHub repository, its website, or both.

    Supply repo_owner + repo_name for the open-source track, site_url for
    the SaaS track, or all three for a hybrid score.

    Args:
        repo_owner: GitHub owner or organization (e.g. "modelcontextprotocol").
        repo_name: GitHub repository name (e.g. "servers").
        site_url: Product website URL (e.g. "https://example.com").
        is_claimed: Whether ownership of the entity has been verified.

    Returns:
        Dict with: success, result (scoreA, scoreB, finalScore, tier,
        track, breakdown), and per-metric diagnostics with suggestions.
    """
    request = ScanRequest(
        repo_owner=repo_owner.strip() or None,
        repo_name=repo_name.strip() or None,
        site_url=site_url.strip() or None,
        is_claimed=is_claimed,
    )
    try:
        app = get_context(ctx)
        scored = await app.engine.score(request, timeout=_DEFAULT_TIMEOUT_SECONDS)
        return entity_payload(scored)
    except SignalRankError as exc:
        return {"success": False, "error": str(exc)}
    except Exception as exc:
        logger.exception("Unexpected error in score_agent")
        await ctx.error(f"Unexpected error in score_agent: {exc}")
        return {"success": False, "error": f"Internal error: {type(exc).__name__}"}


async def scan_url(
    url: str,
    ctx: Context,
    is_claimed: bool = False,
) -> dict[str, object]:
    """Score an agent from a single URL.

    GitHub repository URLs are scored on the open-source track (plus the
    repository's homepage, if it declares one). Any other URL is scored on
    the SaaS track.

    Args:
        url: GitHub repository URL or product website URL.
        is_claimed: Whether ownership of the entity has been verified.

    Returns:
        Same shape as score_agent.
    """
    try:
        app = get_context(ctx)
        scored = await app.engine.score_url(
            url, is_claimed=is_claimed, timeout=_DEFAULT_TIMEOUT_SECONDS
        )
        return entity_payload(scored)
    except SignalRankError as exc:
        return {"success": False, "error": str(exc)}
    except Exception as exc:
        logger.exception("Unexpected error in scan_url")
        await ctx.error(f"Unexpected error in scan_url: {exc}")
        return {"success": False, "error": f"Internal error: {type(exc).__name__}"}
