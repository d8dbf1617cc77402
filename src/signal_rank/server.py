"""MCP server that exposes the Signal Rank scoring engine as tools."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import httpx
from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations

from signal_rank.collectors.github import GitHubSignalCollector
from signal_rank.collectors.site import SiteSignalCollector
from signal_rank.config import EngineSettings
from signal_rank.engine import ScoringEngine
from signal_rank.tools.score import scan_url, score_agent


@dataclass(frozen=True, slots=True)
class AppContext:
    """Shared state across all tool invocations.

    The HTTP client is the only shared resource; it pools connections and
    is safe for concurrent scans.
    """

    http_client: httpx.AsyncClient
    settings: EngineSettings
    engine: ScoringEngine


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    """Composition root: build settings, the shared client, and the engine."""
    settings = EngineSettings.from_env()
    async with httpx.AsyncClient(
        timeout=httpx.Timeout(settings.read_timeout, connect=settings.connect_timeout),
        follow_redirects=True,
        limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
        transport=httpx.AsyncHTTPTransport(retries=3),
    ) as http_client:
        engine = ScoringEngine(
            github=GitHubSignalCollector(http_client, settings),
            site=SiteSignalCollector(http_client, settings),
            settings=settings,
        )
        yield AppContext(http_client=http_client, settings=settings, engine=engine)


mcp = FastMCP(
    "signal-rank",
    instructions=(
        "signal-rank scores how trustworthy and discoverable an AI agent is, "
        "from its GitHub repository, its website, or both.\n\n"
        "- **scan_url**: give it one URL. GitHub repository URLs are scored on the "
        "OpenSource track; other URLs on the SaaS track.\n"
        "- **score_agent**: give it repo_owner + repo_name and/or site_url. "
        "Supplying both yields a Hybrid score.\n\n"
        "Scores run from 0.0 to 10.0 with tiers S (>= 9.0), A (>= 7.5), "
        "B (>= 5.0), and C. Each result carries per-metric diagnostics; "
        "quote the failing ones and their suggestions when explaining a score."
    ),
    lifespan=app_lifespan,
)

# ─── Read-only tools ──────────────────────────────────────────
mcp.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=True))(scan_url)
mcp.tool(annotations=ToolAnnotations(readOnlyHint=True, openWorldHint=True))(score_agent)
