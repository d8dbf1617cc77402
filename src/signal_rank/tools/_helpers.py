"""Helpers for extracting AppContext from FastMCP Context."""

from __future__ import annotations

from dataclasses import asdict
from typing import TYPE_CHECKING

from mcp.server.fastmcp import Context

from signal_rank.models import EntityScore

if TYPE_CHECKING:
    from signal_rank.server import AppContext


def get_context(ctx: Context) -> AppContext:
    """Extract AppContext from FastMCP's lifespan context.

    Raises TypeError if the lifespan context is not an AppContext instance.
    This catches misconfiguration early with a clear error message.
    """
    from signal_rank.server import AppContext

    app = ctx.request_context.lifespan_context
    if not isinstance(app, AppContext):
        msg = (
            f"Expected AppContext in lifespan_context, got {type(app).__name__}. "
            "Is the server configured with app_lifespan?"
        )
        raise TypeError(msg)
    return app


def entity_payload(scored: EntityScore) -> dict[str, object]:
    """Flatten an EntityScore into the JSON shape returned by the tools."""
    return {
        "success": True,
        "result": scored.result.to_dict(),
        "diagnostics": [
            {**asdict(item), "status": item.status.value} for item in scored.diagnostics
        ],
        "api_docs_url": scored.saas.api_docs_url if scored.saas else None,
        "homepage": scored.github.homepage if scored.github else None,
    }
