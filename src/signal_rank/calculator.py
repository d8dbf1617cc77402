"""Compute Signal Rank scores from collected signals.

Pure functions only: no I/O, no state. Every function is total over its
documented domain and clamps instead of raising.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from signal_rank.models import (
    GitHubScanResult,
    SaaSScanResult,
    SRResult,
    SRScoreBreakdown,
    SRTier,
    SRTrack,
)

MAX_SCORE = 10.0
HYBRID_BONUS = 0.5
RECENT_COMMIT_WINDOW = timedelta(days=30)

# (threshold, points), checked top-down
STARS_SCORE_TIERS: tuple[tuple[int, float], ...] = (
    (20_000, 2.0),
    (10_000, 1.5),
    (5_000, 1.0),
    (1_000, 0.5),
)

TIER_THRESHOLDS: tuple[tuple[float, SRTier], ...] = (
    (9.0, SRTier.S),
    (7.5, SRTier.A),
    (5.0, SRTier.B),
)

_ONE_DECIMAL = Decimal("0.1")


# ─── Score helpers ────────────────────────────────────────


def is_valid_score(score: float) -> bool:
    return math.isfinite(score) and 0.0 <= score <= MAX_SCORE


def normalize_score(score: float) -> float:
    """Clamp to [0, 10]. Non-finite input maps to 0; -0.0 maps to +0.0."""
    if not math.isfinite(score):
        return 0.0
    return max(0.0, min(score, MAX_SCORE)) + 0.0


def round_score(score: float) -> float:
    """Round half-up to one decimal. Negative or non-finite input rounds to 0."""
    if not math.isfinite(score) or score < 0:
        return 0.0
    # str() gives the shortest decimal repr, so 8.95 rounds as 8.95 and not 8.9499...
    return float(Decimal(str(score)).quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP)) + 0.0


def get_tier(score: float) -> SRTier:
    """Letter tier for a rounded final score. Invalid scores are tier C."""
    if not math.isfinite(score) or score < 0:
        return SRTier.C
    for threshold, tier in TIER_THRESHOLDS:
        if score >= threshold:
            return tier
    return SRTier.C


# ─── Track A (GitHub) ─────────────────────────────────────


def calculate_stars_score(stars: int) -> float:
    if stars < 0:
        return 0.0
    for threshold, points in STARS_SCORE_TIERS:
        if stars >= threshold:
            return points
    return 0.0


def calculate_forks_score(forks: int, stars: int) -> float:
    """1.0 when forks exceed 10% of stars (any fork counts for a starless repo)."""
    if stars == 0:
        return 1.0 if forks > 0 else 0.0
    return 1.0 if forks > stars * 0.1 else 0.0


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


def is_recent_commit(last_commit_date: datetime | None, *, now: datetime | None = None) -> bool:
    """True iff the commit is at most 30 days old. Naive datetimes are read as UTC."""
    if last_commit_date is None:
        return False
    now = _as_utc(now) if now is not None else datetime.now(tz=UTC)
    return now - _as_utc(last_commit_date) <= RECENT_COMMIT_WINDOW


def calculate_vitality_score(
    last_commit_date: datetime | None,
    has_license: bool,
    *,
    now: datetime | None = None,
) -> float:
    score = 0.0
    if is_recent_commit(last_commit_date, now=now):
        score += 1.0
    if has_license:
        score += 1.0
    return score


def calculate_readiness_score(
    has_openapi: bool,
    has_dockerfile: bool,
    readme_length: int,
    has_usage_code_block: bool,
) -> float:
    score = 0.0
    if has_openapi:
        score += 1.5
    if has_dockerfile:
        score += 0.5
    if readme_length > 200 and has_usage_code_block:
        score += 1.0
    return score


def calculate_protocol_score(has_mcp: bool, has_standard_interface: bool) -> float:
    """MCP takes precedence over a standard framework mention; not additive."""
    if has_mcp:
        return 2.0
    if has_standard_interface:
        return 1.0
    return 0.0


def calculate_track_a_score(
    scan: GitHubScanResult,
    *,
    now: datetime | None = None,
) -> tuple[float, SRScoreBreakdown]:
    breakdown = SRScoreBreakdown(
        stars_score=calculate_stars_score(scan.stars),
        forks_score=calculate_forks_score(scan.forks, scan.stars),
        vitality_score=calculate_vitality_score(
            scan.last_commit_date, scan.has_license, now=now
        ),
        readiness_score=calculate_readiness_score(
            scan.has_openapi,
            scan.has_dockerfile,
            scan.readme_length,
            scan.has_usage_code_block,
        ),
        protocol_score=calculate_protocol_score(scan.has_mcp, scan.has_standard_interface),
    )
    return normalize_score(breakdown.track_a_total), breakdown


# ─── Track B (SaaS) ───────────────────────────────────────


def calculate_trust_score(https_valid: bool, social_links_count: int, is_claimed: bool) -> float:
    score = 0.0
    if https_valid:
        score += 1.0
    if social_links_count >= 2:
        score += 1.0
    if is_claimed:
        score += 1.0
    return score


def calculate_aeo_score(has_basic_meta: bool, has_json_ld: bool, has_og_tags: bool) -> float:
    score = 0.0
    if has_basic_meta:
        score += 1.0
    if has_json_ld:
        score += 2.0
    if has_og_tags:
        score += 1.0
    return score


def calculate_interop_score(
    has_api_docs_path: bool,
    has_integration_keywords: bool,
    has_login_button: bool,
) -> float:
    score = 0.0
    if has_api_docs_path:
        score += 1.5
    if has_integration_keywords:
        score += 1.0
    if has_login_button:
        score += 0.5
    return score


def calculate_track_b_score(
    scan: SaaSScanResult,
    is_claimed: bool = False,
) -> tuple[float, SRScoreBreakdown]:
    breakdown = SRScoreBreakdown(
        trust_score=calculate_trust_score(
            scan.https_valid, len(set(scan.social_links)), is_claimed
        ),
        aeo_score=calculate_aeo_score(scan.has_basic_meta, scan.has_json_ld, scan.has_og_tags),
        interop_score=calculate_interop_score(
            scan.has_api_docs_path,
            scan.has_integration_keywords,
            scan.has_login_button,
        ),
    )
    return normalize_score(breakdown.track_b_total), breakdown


# ─── Merge ────────────────────────────────────────────────


def calculate_hybrid_score(score_a: float, score_b: float) -> float:
    """max(A, B) plus a fixed breadth bonus, capped at 10."""
    safe_a = score_a if math.isfinite(score_a) and score_a >= 0 else 0.0
    safe_b = score_b if math.isfinite(score_b) and score_b >= 0 else 0.0
    return min(max(safe_a, safe_b) + HYBRID_BONUS, MAX_SCORE)


def determine_track(has_github: bool, has_saas: bool) -> SRTrack:
    """Track for the supplied data. No data at all scores as an empty SaaS entity."""
    if has_github and has_saas:
        return SRTrack.HYBRID
    if has_github:
        return SRTrack.OPEN_SOURCE
    return SRTrack.SAAS


def calculate_sr_score(
    github: GitHubScanResult | None = None,
    saas: SaaSScanResult | None = None,
    is_claimed: bool = False,
    *,
    now: datetime | None = None,
) -> SRResult:
    """Combine whichever tracks are present into one rounded, tiered result.

    ``now`` pins the recency window; it defaults to the current UTC time.
    """
    score_a = score_b = 0.0
    breakdown_a = breakdown_b = SRScoreBreakdown()

    if github is not None:
        score_a, breakdown_a = calculate_track_a_score(github, now=now)
    if saas is not None:
        score_b, breakdown_b = calculate_track_b_score(saas, is_claimed)

    breakdown = SRScoreBreakdown(
        stars_score=breakdown_a.stars_score,
        forks_score=breakdown_a.forks_score,
        vitality_score=breakdown_a.vitality_score,
        readiness_score=breakdown_a.readiness_score,
        protocol_score=breakdown_a.protocol_score,
        trust_score=breakdown_b.trust_score,
        aeo_score=breakdown_b.aeo_score,
        interop_score=breakdown_b.interop_score,
    )

    track = determine_track(github is not None, saas is not None)
    match track:
        case SRTrack.HYBRID:
            final = calculate_hybrid_score(score_a, score_b)
        case SRTrack.OPEN_SOURCE:
            final = score_a
        case SRTrack.SAAS:
            final = score_b

    final = round_score(normalize_score(final))

    return SRResult(
        score_a=round_score(score_a),
        score_b=round_score(score_b),
        final_score=final,
        tier=get_tier(final),
        track=track,
        breakdown=breakdown,
        is_mcp=github.has_mcp if github is not None else False,
        is_verified=is_claimed,
    )
