"""Shared pytest fixtures."""

from __future__ import annotations

import copy
from collections.abc import Callable

import httpx
import pytest

from campaign_readiness.config import Settings
from campaign_readiness.store import ScanStore


@pytest.fixture
def store(tmp_path) -> ScanStore:
    return ScanStore(tmp_path / "scans")


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        store_dir=tmp_path / "scans",
        no_cache_samples=2,
        cache_samples=2,
        timeout_ms=2000,
        inbound_domain="inbound.example.com",
    )


@pytest.fixture
def mock_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.Client]:
    """Build an httpx client whose requests are answered by ``handler``."""

    clients: list[httpx.Client] = []

    def factory(handler):
        client = httpx.Client(transport=httpx.MockTransport(handler), follow_redirects=False)
        clients.append(client)
        return client

    yield factory
    for client in clients:
        client.close()


_GOOD_EMAIL = {
    "checks": {
        "spf": {"present": True, "result": "pass", "alignment": "aligned", "dns_lookup_count": 4},
        "dkim": {"present": True, "result": "pass", "alignment": "aligned", "selectors_checked": ["s1", "s2"]},
        "dmarc": {"present": True, "policy": "reject", "pct": 100, "alignment_mode": "strict"},
        "mx": {"tls": {"supported": True}},
        "mta_sts": {"present": True, "policy_mode": "enforce"},
        "tlsrpt": {"present": True},
        "bimi": {"present": True},
        "blacklists": {"listed": False, "hits": []},
    }
}


@pytest.fixture
def good_email() -> dict:
    """Email evidence that passes every check and earns the full bonus."""
    return copy.deepcopy(_GOOD_EMAIL)


@pytest.fixture
def make_scan() -> Callable[..., dict]:
    """Build a minimal scan document around the given evidence."""

    def factory(email_scan=None, aggregates=None, send_window=False, scan_id="scan-1") -> dict:
        return {
            "scan_id": scan_id,
            "created_at": "2026-01-01T00:00:00+00:00",
            "inputs": {
                "website_url": "https://shop.example.com/",
                "sending_email": "news@example.com",
                "send_window": {"enabled": send_window},
            },
            "email_scan": email_scan if email_scan is not None else {},
            "website_scan": {"aggregates": aggregates} if aggregates is not None else {},
        }

    return factory
