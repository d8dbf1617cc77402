"""Collect Track B signals from a site's rendered HTML."""

from __future__ import annotations

import asyncio
import json
import logging
import ssl
import time
from dataclasses import dataclass
from html.parser import HTMLParser
from urllib.parse import urljoin, urlparse

import httpx

from signal_rank.config import EngineSettings
from signal_rank.errors import SiteFetchError
from signal_rank.models import JsonLdParse, SaaSScanResult
from signal_rank.retry import RetryPolicy

logger = logging.getLogger(__name__)

# ─── Fixed signal tables ──────────────────────────────────

SOCIAL_DOMAINS: tuple[str, ...] = (
    "twitter.com",
    "x.com",
    "github.com",
    "discord.com",
    "discord.gg",
    "linkedin.com",
)

API_DOCS_PATHS: tuple[str, ...] = ("/docs", "/api", "/developers")

INTEGRATION_KEYWORDS: tuple[str, ...] = ("sdk", "webhook", "zapier", "plugin")

LOGIN_PHRASES: tuple[str, ...] = (
    "login",
    "log in",
    "sign in",
    "signin",
    "sign up",
    "signup",
    "get started",
)

_JSON_LD_TYPE = "application/ld+json"
_SKIP_TEXT_TAGS = frozenset({"script", "style", "noscript", "template"})
_VOID_TAGS = frozenset(
    {"area", "base", "br", "col", "embed", "hr", "img", "input", "link", "meta", "source", "wbr"}
)
_SECONDS_PER_MONTH = 30 * 24 * 3600


# ─── HTML parsing ─────────────────────────────────────────


@dataclass
class _Link:
    href: str | None = None
    text: str = ""


class _PageParser(HTMLParser):
    """Single-pass collector of the tags the extraction rules look at."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.title = ""
        self.h1_count = 0
        self.metas: list[dict[str, str]] = []
        self.links: list[_Link] = []
        self.button_texts: list[str] = []
        self.json_ld_blocks: list[str] = []
        self.text_parts: list[str] = []
        self._stack: list[str] = []
        self._in_title = False
        self._json_ld: list[str] | None = None
        self._open_link: _Link | None = None
        self._open_button: list[str] | None = None

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        attr_map = {name.lower(): (value or "") for name, value in attrs}
        if tag == "title":
            self._in_title = True
        elif tag == "h1":
            self.h1_count += 1
        elif tag == "meta":
            self.metas.append(attr_map)
        elif tag == "a":
            href = attr_map["href"].strip() if "href" in attr_map else None
            self._open_link = _Link(href=href)
            self.links.append(self._open_link)
        elif tag == "button":
            self._open_button = []
        elif tag == "input" and attr_map.get("type", "").lower() in ("submit", "button"):
            self.button_texts.append(attr_map.get("value", ""))
        elif tag == "script" and attr_map.get("type", "").strip().lower() == _JSON_LD_TYPE:
            self._json_ld = []
        if tag not in _VOID_TAGS:
            self._stack.append(tag)

    def handle_endtag(self, tag: str) -> None:
        if tag == "title":
            self._in_title = False
        elif tag == "a":
            self._open_link = None
        elif tag == "button" and self._open_button is not None:
            self.button_texts.append("".join(self._open_button))
            self._open_button = None
        elif tag == "script" and self._json_ld is not None:
            self.json_ld_blocks.append("".join(self._json_ld))
            self._json_ld = None
        if tag in self._stack:
            while self._stack and self._stack.pop() != tag:
                pass

    def handle_data(self, data: str) -> None:
        if self._json_ld is not None:
            self._json_ld.append(data)
            return
        if self._stack and self._stack[-1] in _SKIP_TEXT_TAGS:
            return
        if self._in_title:
            self.title += data
        if self._open_link is not None:
            self._open_link.text += data
        if self._open_button is not None:
            self._open_button.append(data)
        self.text_parts.append(data)

    def meta_content(self, attr: str, value: str) -> str | None:
        """Non-empty content of the first meta tag whose ``attr`` equals ``value``."""
        for meta in self.metas:
            if meta.get(attr, "").strip().lower() == value:
                content = meta.get("content", "").strip()
                if content:
                    return content
        return None

    @property
    def text(self) -> str:
        return " ".join(part.strip() for part in self.text_parts if part.strip())


def _parse_page(html: str) -> _PageParser:
    parser = _PageParser()
    try:
        parser.feed(html)
        parser.close()
    except (AssertionError, ValueError) as exc:
        logger.debug("HTML parsing stopped early: %s", exc)
    return parser


# ─── Extraction rules ─────────────────────────────────────


def is_https_url(url: str) -> bool:
    return urlparse(url).scheme.lower() == "https"


def _is_social_host(hostname: str) -> bool:
    return any(hostname == d or hostname.endswith("." + d) for d in SOCIAL_DOMAINS)


def extract_social_links(hrefs: list[str]) -> tuple[str, ...]:
    """Hrefs pointing at a known social platform, deduplicated in page order."""
    found: list[str] = []
    for href in hrefs:
        try:
            hostname = (urlparse(href).hostname or "").lower()
        except ValueError:
            continue
        if hostname and _is_social_host(hostname) and href not in found:
            found.append(href)
    return tuple(found)


def parse_json_ld(body: str) -> JsonLdParse:
    """Parse one JSON-LD block. Malformed JSON never raises."""
    try:
        return JsonLdParse(ok=True, content=json.loads(body.strip()))
    except (ValueError, RecursionError):
        logger.debug("Ignoring malformed JSON-LD block")
        return JsonLdParse.malformed()


def detect_json_ld(blocks: list[str]) -> JsonLdParse:
    """First successfully parsed JSON-LD block, or Malformed if none parse."""
    for block in blocks:
        parsed = parse_json_ld(block)
        if parsed.ok:
            return parsed
    return JsonLdParse.malformed()


def detect_api_docs_path(hrefs: list[str], base_url: str) -> str | None:
    """Absolute URL of the first link whose path contains an API-docs segment."""
    for href in hrefs:
        try:
            resolved = urljoin(base_url, href)
            parsed = urlparse(resolved)
        except ValueError:
            continue
        if parsed.scheme not in ("http", "https"):
            continue
        path = parsed.path.lower()
        if any(marker in path for marker in API_DOCS_PATHS):
            return resolved
    return None


def detect_integration_keywords(text: str) -> tuple[str, ...]:
    lowered = text.lower()
    return tuple(keyword for keyword in INTEGRATION_KEYWORDS if keyword in lowered)


def detect_login_affordance(labels: list[str]) -> bool:
    for label in labels:
        lowered = " ".join(label.lower().split())
        if any(phrase in lowered for phrase in LOGIN_PHRASES):
            return True
    return False


def parse_saas_scan_result(
    html: str,
    url: str,
    *,
    https_valid: bool | None = None,
    ssl_valid_months: int = 0,
) -> SaaSScanResult:
    """Derive all Track B signals from fetched HTML and its resolved URL.

    Pure function: each rule degrades to its negative default on bad markup.
    """
    page = _parse_page(html)
    hrefs = [link.href for link in page.links if link.href is not None]

    json_ld = detect_json_ld(page.json_ld_blocks)
    title = page.title.strip() or None
    description = page.meta_content("name", "description")
    og_title = page.meta_content("property", "og:title") or page.meta_content("name", "og:title")
    og_image = page.meta_content("property", "og:image") or page.meta_content("name", "og:image")
    api_docs_url = detect_api_docs_path(hrefs, url)
    keywords = detect_integration_keywords(page.text)
    labels = [link.text for link in page.links] + page.button_texts

    return SaaSScanResult(
        https_valid=is_https_url(url) if https_valid is None else https_valid,
        ssl_valid_months=max(ssl_valid_months, 0),
        social_links=extract_social_links(hrefs),
        has_json_ld=json_ld.ok,
        json_ld_content=json_ld.content,
        has_basic_meta=bool(title and description and page.h1_count > 0),
        meta_title=title,
        meta_description=description,
        has_h1=page.h1_count > 0,
        has_og_tags=bool(og_title and og_image),
        og_image=og_image,
        og_title=og_title,
        has_api_docs_path=api_docs_url is not None,
        api_docs_url=api_docs_url,
        has_integration_keywords=bool(keywords),
        integration_keywords=keywords,
        has_login_button=detect_login_affordance(labels),
        page_content=html,
    )


# ─── TLS certificate probe ────────────────────────────────


def months_until(not_after_epoch: float, now: float | None = None) -> int:
    now = time.time() if now is None else now
    return max(int((not_after_epoch - now) // _SECONDS_PER_MONTH), 0)


async def fetch_certificate_months(host: str, port: int = 443, timeout: float = 10.0) -> int:
    """Whole months left on the host's TLS certificate; 0 if unobtainable."""
    context = ssl.create_default_context()
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port, ssl=context, server_hostname=host),
            timeout=timeout,
        )
    except (OSError, TimeoutError) as exc:
        logger.debug("TLS probe failed for %s: %s", host, exc)
        return 0
    try:
        cert = writer.get_extra_info("peercert") or {}
        not_after = cert.get("notAfter")
        if not not_after:
            return 0
        return months_until(ssl.cert_time_to_seconds(not_after))
    except ValueError:
        logger.debug("Unparsable certificate expiry for %s", host)
        return 0
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass


# ─── Collector ────────────────────────────────────────────


class SiteSignalCollector:
    """Adapter for SiteCollectorPort. Holds the shared httpx client."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        settings: EngineSettings | None = None,
        *,
        probe_certificate: bool = True,
    ) -> None:
        self._http = http_client
        self._settings = settings or EngineSettings()
        self._probe_certificate = probe_certificate

    async def scan(
        self,
        url: str,
        *,
        policy: RetryPolicy | None = None,
    ) -> SaaSScanResult:
        """Fetch a page and derive its Track B signals.

        Raises SiteFetchError if the page cannot be retrieved after all
        retries, and ScanTimeoutError on deadline or cancellation.
        """
        policy = policy or RetryPolicy(
            max_attempts=self._settings.max_attempts,
            base_delay=self._settings.base_delay,
        )
        html, final_url = await self._fetch_page(url, policy)

        https_valid = is_https_url(final_url)
        months = 0
        parsed = urlparse(final_url)
        hostname = parsed.hostname
        if https_valid and hostname and self._probe_certificate:
            policy.check()
            months = await policy.bounded(fetch_certificate_months(hostname, parsed.port or 443))

        return parse_saas_scan_result(
            html,
            final_url,
            https_valid=https_valid,
            ssl_valid_months=months,
        )

    async def _fetch_page(self, url: str, policy: RetryPolicy) -> tuple[str, str]:
        headers = {"User-Agent": self._settings.user_agent}
        last_error = "no attempts made"

        for attempt in range(policy.max_attempts):
            policy.check()
            try:
                resp = await policy.bounded(
                    self._http.get(url, headers=headers, follow_redirects=True)
                )
            except httpx.HTTPError as exc:
                last_error = f"{type(exc).__name__}: {exc}"
            else:
                if resp.status_code < 500:
                    return resp.text, str(resp.url)
                last_error = f"HTTP {resp.status_code}"

            if attempt + 1 < policy.max_attempts:
                delay = policy.backoff_delay(attempt)
                logger.warning(
                    "Fetching %s attempt %d/%d failed (%s), retrying in %.1fs",
                    url,
                    attempt + 1,
                    policy.max_attempts,
                    last_error,
                    delay,
                )
                await policy.sleep(delay)

        raise SiteFetchError(
            f"Could not fetch {url} after {policy.max_attempts} attempts: {last_error}"
        )
