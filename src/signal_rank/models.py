"""Domain models for signal-rank. All frozen dataclasses -- no mutation after creation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

# ─── Enumerations ─────────────────────────────────────────────


class SRTier(StrEnum):
    S = "S"
    A = "A"
    B = "B"
    C = "C"


class SRTrack(StrEnum):
    OPEN_SOURCE = "OpenSource"
    SAAS = "SaaS"
    HYBRID = "Hybrid"


class URLType(StrEnum):
    GITHUB = "github"
    SAAS = "saas"
    INVALID = "invalid"


class DiagnosticStatus(StrEnum):
    PASS = "pass"
    WARNING = "warning"
    FAIL = "fail"


# ─── Collector Models ─────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class GitHubScanResult:
    """Signals derived from one repository on the code-hosting API."""

    owner: str
    repo: str
    stars: int = 0
    forks: int = 0
    last_commit_date: datetime | None = None
    has_license: bool = False
    has_openapi: bool = False
    has_dockerfile: bool = False
    has_manifest: bool = False
    readme_length: int = 0
    has_usage_code_block: bool = False
    has_mcp: bool = False
    has_standard_interface: bool = False
    homepage: str | None = None
    description: str = ""
    topics: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class JsonLdParse:
    """Outcome of parsing one ``application/ld+json`` block.

    ``ok`` is False for malformed JSON; ``content`` is then None.
    """

    ok: bool
    content: object | None = None

    @classmethod
    def malformed(cls) -> JsonLdParse:
        return cls(ok=False)


@dataclass(frozen=True, slots=True)
class SaaSScanResult:
    """Signals derived from the rendered HTML of one site page."""

    https_valid: bool = False
    ssl_valid_months: int = 0
    social_links: tuple[str, ...] = ()
    has_json_ld: bool = False
    json_ld_content: object | None = None
    has_basic_meta: bool = False
    meta_title: str | None = None
    meta_description: str | None = None
    has_h1: bool = False
    has_og_tags: bool = False
    og_image: str | None = None
    og_title: str | None = None
    has_api_docs_path: bool = False
    api_docs_url: str | None = None
    has_integration_keywords: bool = False
    integration_keywords: tuple[str, ...] = ()
    has_login_button: bool = False
    page_content: str = ""


# ─── Scoring Models ───────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class SRScoreBreakdown:
    """Per-axis sub-scores. Axes of an absent track stay at 0."""

    stars_score: float = 0.0
    forks_score: float = 0.0
    vitality_score: float = 0.0
    readiness_score: float = 0.0
    protocol_score: float = 0.0
    trust_score: float = 0.0
    aeo_score: float = 0.0
    interop_score: float = 0.0

    @property
    def track_a_total(self) -> float:
        return (
            self.stars_score
            + self.forks_score
            + self.vitality_score
            + self.readiness_score
            + self.protocol_score
        )

    @property
    def track_b_total(self) -> float:
        return self.trust_score + self.aeo_score + self.interop_score

    def to_dict(self) -> dict[str, float]:
        return {
            "starsScore": self.stars_score,
            "forksScore": self.forks_score,
            "vitalityScore": self.vitality_score,
            "readinessScore": self.readiness_score,
            "protocolScore": self.protocol_score,
            "trustScore": self.trust_score,
            "aeoScore": self.aeo_score,
            "interopScore": self.interop_score,
        }


@dataclass(frozen=True, slots=True)
class SRResult:
    """The engine's sole output for one entity."""

    score_a: float
    score_b: float
    final_score: float
    tier: SRTier
    track: SRTrack
    breakdown: SRScoreBreakdown = field(default_factory=SRScoreBreakdown)
    is_mcp: bool = False
    is_verified: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "scoreA": self.score_a,
            "scoreB": self.score_b,
            "finalScore": self.final_score,
            "tier": self.tier.value,
            "track": self.track.value,
            "breakdown": self.breakdown.to_dict(),
            "isMcp": self.is_mcp,
            "isVerified": self.is_verified,
        }


@dataclass(frozen=True, slots=True)
class DiagnosticItem:
    """One metric's status with an improvement hint when below its max."""

    metric: str
    status: DiagnosticStatus
    score: float
    max_score: float
    suggestion: str | None = None


# ─── Engine I/O Models ────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ScanRequest:
    """Identifiers for one entity. At least a repo pair or a site URL is required."""

    repo_owner: str | None = None
    repo_name: str | None = None
    site_url: str | None = None
    is_claimed: bool = False

    @property
    def has_repo(self) -> bool:
        return bool(self.repo_owner and self.repo_name)

    @property
    def has_site(self) -> bool:
        return bool(self.site_url)


@dataclass(frozen=True, slots=True)
class URLDetection:
    """Classification of a user-supplied URL."""

    type: URLType
    normalized_url: str
    github_owner: str | None = None
    github_repo: str | None = None


@dataclass(frozen=True, slots=True)
class EntityScore:
    """Engine output bundle: the score plus the raw collector results behind it."""

    result: SRResult
    github: GitHubScanResult | None = None
    saas: SaaSScanResult | None = None
    diagnostics: list[DiagnosticItem] = field(default_factory=list)
