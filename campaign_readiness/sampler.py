"""HTTP evidence sampler.

Issues a fixed sequence of "no-cache" and "cache" GET probes against one URL,
follows redirects by hand and aggregates time-to-first-byte and cache signals
into a :class:`WebsiteEvidence`. Probes run one after another so the scan
itself never adds a burst of load to the target.
"""
from __future__ import annotations

import logging
import re
import secrets
import time
from urllib.parse import urlparse

import httpx

from .models import (
    CacheMode,
    CacheStats,
    DeviceVitals,
    HttpEvidence,
    HttpSummary,
    RedirectStats,
    Sample,
    SampleSummary,
    TtfbP95,
    VitalsP95,
    WebsiteAggregates,
    WebsiteEvidence,
)
from .stats import compute_stability, p95

logger = logging.getLogger(__name__)

MAX_HOPS = 10
CACHE_BUST_PARAM = "__crs_cb"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 CampaignReadiness/1.0"
)

_CACHE_HEADERS = ("cf-cache-status", "x-cache", "age", "cache-control", "via")

_NO_CACHE_HEADERS = {
    "cache-control": "no-cache, no-store, must-revalidate",
    "pragma": "no-cache",
}


def _validate_url(raw: str) -> str:
    value = (raw or "").strip()
    if not re.match(r"^[a-zA-Z][a-zA-Z\d+.-]*://", value):
        raise ValueError(f"Not an absolute URL: {raw!r}")
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ValueError(f"Not an http(s) URL: {raw!r}")
    return value


def with_cache_bust(url: str) -> str:
    token = f"{int(time.time() * 1000)}_{secrets.token_hex(6)}"
    return str(httpx.URL(url).copy_merge_params({CACHE_BUST_PARAM: token}))


def detect_cache_hit(headers: httpx.Headers) -> tuple[bool | None, dict[str, str | None]]:
    snapshot = {name: headers.get(name) for name in _CACHE_HEADERS}

    cf = snapshot["cf-cache-status"]
    x_cache = snapshot["x-cache"]
    age = snapshot["age"]

    hit: bool | None = None
    if cf:
        hit = "HIT" in cf.upper()
    elif x_cache:
        hit = "HIT" in x_cache.upper()
    elif age:
        try:
            hit = float(age) > 0
        except ValueError:
            hit = False

    return hit, snapshot


def _elapsed_ms(started: float) -> int:
    return round((time.perf_counter() - started) * 1000)


def probe_once(client: httpx.Client, url: str, mode: CacheMode, user_agent: str = DEFAULT_USER_AGENT) -> Sample:
    target = with_cache_bust(url) if mode == "no-cache" else url
    headers = {"user-agent": user_agent, "accept": "text/html,application/xhtml+xml,*/*;q=0.8"}
    if mode == "no-cache":
        headers.update(_NO_CACHE_HEADERS)

    current = target
    redirects = 0
    started = time.perf_counter()

    try:
        for _ in range(MAX_HOPS):
            # Only the headers are needed; the body is never read.
            with client.stream("GET", current, headers=headers) as res:
                ttfb = _elapsed_ms(started)
                hit, snapshot = detect_cache_hit(res.headers)
                status = res.status_code
                location = res.headers.get("location")

            if 300 <= status < 400:
                redirects += 1
                if not location:
                    return Sample(
                        mode=mode, url=current, status=status, ok=False, redirects=redirects,
                        ttfb_ms=ttfb, cache_hit=hit, cache_headers=snapshot,
                        error="Redirect without Location header",
                    )
                current = str(httpx.URL(current).join(location))
                continue

            return Sample(
                mode=mode, url=current, status=status, ok=200 <= status < 400, redirects=redirects,
                ttfb_ms=ttfb, cache_hit=hit, cache_headers=snapshot,
            )

        return Sample(mode=mode, url=current, redirects=redirects, error="Too many redirects")
    except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
        logger.debug("Probe %s %s failed: %r", mode, current, e)
        return Sample(mode=mode, url=current, redirects=redirects, error=str(e) or e.__class__.__name__)


def _ok_ttfbs(samples: list[Sample]) -> list[int]:
    return [s.ttfb_ms for s in samples if s.ok and s.ttfb_ms is not None]


def summarize(samples: list[Sample]) -> SampleSummary:
    ttfbs = _ok_ttfbs(samples)
    ok_count = sum(1 for s in samples if s.ok)
    value = p95(ttfbs)
    return SampleSummary(
        p95=TtfbP95(ttfb_ms=int(value) if value is not None else None),
        stability=compute_stability(ttfbs, ok_count, len(samples)),
        ok_count=ok_count,
        total=len(samples),
    )


def aggregate_samples(samples: list[Sample]) -> WebsiteEvidence:
    no_cache = [s for s in samples if s.mode == "no-cache"]
    cache = [s for s in samples if s.mode == "cache"]

    overall = summarize(samples)

    known = [s.cache_hit for s in cache if s.cache_hit is not None]
    sample_hits = sum(1 for hit in known if hit)

    # The HTTP-only scan has no browser, so only TTFB is filled in and
    # desktop mirrors mobile.
    vitals = VitalsP95(ttfb_ms=overall.p95.ttfb_ms)

    return WebsiteEvidence(
        aggregates=WebsiteAggregates(
            mobile=DeviceVitals(p95=vitals),
            desktop=DeviceVitals(p95=vitals.model_copy()),
            redirects=RedirectStats(count=max((s.redirects for s in samples), default=0)),
            stability=overall.stability,
            cache=CacheStats(
                consistent_hit=bool(known) and sample_hits == len(known),
                sample_hits=sample_hits,
                sample_total=len(known),
                notes=["HTTP-only scan (no browser metrics). Mobile LCP/CLS/INP not measured."],
            ),
            http=HttpEvidence(
                samples=samples,
                summary=HttpSummary(overall=overall, no_cache=summarize(no_cache), cache=summarize(cache)),
            ),
        )
    )


def sample_website(
    url: str,
    no_cache_count: int = 3,
    cache_count: int = 3,
    timeout_ms: int = 15000,
    *,
    user_agent: str = DEFAULT_USER_AGENT,
    client: httpx.Client | None = None,
) -> WebsiteEvidence:
    url = _validate_url(url)
    if no_cache_count < 0 or cache_count < 0:
        raise ValueError("Sample counts must be >= 0.")

    owns_client = client is None
    if client is None:
        client = httpx.Client(timeout=timeout_ms / 1000, follow_redirects=False)

    samples: list[Sample] = []
    try:
        for _ in range(no_cache_count):
            samples.append(probe_once(client, url, "no-cache", user_agent))
        for _ in range(cache_count):
            samples.append(probe_once(client, url, "cache", user_agent))
    finally:
        if owns_client:
            client.close()

    failed = sum(1 for s in samples if not s.ok)
    logger.info("Sampled %s: %d probes, %d failed", url, len(samples), failed)
    return aggregate_samples(samples)
