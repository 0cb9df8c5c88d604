from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlparse

import httpx

from .auth_results import (
    email_evidence_patch,
    extract_scan_id_from_recipient,
    extract_scan_token_from_headers,
    parse_authentication_results,
)
from .config import Settings
from .models import (
    EmailEvidence,
    InboundMessage,
    Report,
    RiskSlot,
    ScanDocument,
    ScanInputs,
    ScanMeta,
    ScanRequest,
    ScanScores,
    ScoreSlot,
    SendWindow,
)
from .report import compute_scores, generate_report
from .sampler import DEFAULT_USER_AGENT, sample_website
from .store import ScanNotFoundError, ScanStore

logger = logging.getLogger(__name__)


def normalize_website_url(raw: str) -> str:
    value = (raw or "").strip()
    if not value:
        raise ValueError("Please provide a website URL.")
    if not value.lower().startswith(("http://", "https://")):
        value = "https://" + value
    parsed = urlparse(value)
    if not parsed.hostname or "." not in parsed.hostname:
        raise ValueError("Please enter a valid website domain.")
    return parsed._replace(fragment="").geturl()


def sending_domain(email: str) -> str:
    _, sep, domain = (email or "").strip().lower().rpartition("@")
    return domain if sep else ""


def make_initial_scan(
    scan_id: str,
    website_url: str,
    sending_email: str = "",
    contact_email: str = "",
    send_window: SendWindow | None = None,
    scanner_region: str = "local",
) -> ScanDocument:
    return ScanDocument(
        scan_id=scan_id,
        created_at=datetime.now(timezone.utc).isoformat(),
        inputs=ScanInputs(
            website_url=normalize_website_url(website_url),
            sending_email=sending_email or "",
            contact_email=contact_email or "",
            send_window=send_window or SendWindow(),
        ),
        meta=ScanMeta(scanner_region=scanner_region),
    )


def _scores_patch(scan: ScanDocument) -> ScanScores:
    email, website, risk = compute_scores(scan)
    return ScanScores(
        email_readiness=ScoreSlot(score=email.score),
        website_readiness=ScoreSlot(score=website.score),
        campaign_risk=RiskSlot(level=risk.level, score=risk.score),
    )


def _index(store: ScanStore, scan: ScanDocument) -> None:
    email = scan.inputs.sending_email
    if email:
        store.index_by_email(email, scan.scan_id)
        domain = sending_domain(email)
        if domain:
            store.index_by_domain(domain, scan.scan_id)
    host = urlparse(scan.inputs.website_url).hostname
    if host:
        store.index_by_domain(host, scan.scan_id)


def run_scan(
    request: ScanRequest,
    store: ScanStore,
    settings: Settings,
    *,
    scan_id: str | None = None,
    client: httpx.Client | None = None,
) -> tuple[ScanDocument, Report]:
    """Collect website evidence, score it with the supplied email evidence and persist everything."""
    t0 = time.perf_counter()
    scan_id = scan_id or str(uuid.uuid4())

    scan = make_initial_scan(
        scan_id,
        request.website_url,
        sending_email=request.sending_email,
        contact_email=request.contact_email,
        send_window=request.send_window,
        scanner_region=settings.scanner_region,
    )
    scan.email_scan = EmailEvidence.model_validate(request.email_scan)
    store.save(scan_id, scan)
    _index(store, scan)
    store.append_event(scan_id, {"type": "scan.created", "website_url": scan.inputs.website_url})
    logger.info("Scan %s created for %s", scan_id, scan.inputs.website_url)

    scan.website_scan = sample_website(
        scan.inputs.website_url,
        no_cache_count=request.no_cache_samples if request.no_cache_samples is not None else settings.no_cache_samples,
        cache_count=request.cache_samples if request.cache_samples is not None else settings.cache_samples,
        timeout_ms=request.timeout_ms or settings.timeout_ms,
        user_agent=settings.user_agent or DEFAULT_USER_AGENT,
        client=client,
    )
    scan.scores = _scores_patch(scan)
    scan.meta.runtime_ms = int((time.perf_counter() - t0) * 1000)

    store.update(
        scan_id,
        {
            "website_scan": scan.website_scan.model_dump(mode="json"),
            "scores": scan.scores.model_dump(mode="json"),
            "meta": {"runtime_ms": scan.meta.runtime_ms},
        },
    )

    report = generate_report(scan)
    store.save_report(scan_id, report)
    store.append_event(
        scan_id,
        {
            "type": "scan.completed",
            "verdict": report.verdict,
            "ready_to_send": report.ready_to_send,
            "runtime_ms": scan.meta.runtime_ms,
        },
    )
    logger.info("Scan %s completed: verdict=%s ready=%s", scan_id, report.verdict, report.ready_to_send)
    return scan, report


def load_scan(store: ScanStore, scan_id: str) -> ScanDocument:
    data = store.load(scan_id)
    if data is None:
        raise ScanNotFoundError(scan_id)
    return ScanDocument.model_validate(data)


def rescore_scan(store: ScanStore, scan_id: str) -> Report:
    scan = load_scan(store, scan_id)
    store.update(scan_id, {"scores": _scores_patch(scan).model_dump(mode="json")})
    report = generate_report(scan)
    store.save_report(scan_id, report)
    store.append_event(scan_id, {"type": "scan.rescored", "verdict": report.verdict})
    return report


def resolve_inbound_scan_id(message: InboundMessage, inbound_domain: str) -> str | None:
    if message.recipient:
        scan_id = extract_scan_id_from_recipient(message.recipient, inbound_domain)
        if scan_id:
            return scan_id
    return extract_scan_token_from_headers(message.headers, inbound_domain)


def apply_inbound_message(store: ScanStore, message: InboundMessage, inbound_domain: str) -> tuple[str, Report]:
    scan_id = resolve_inbound_scan_id(message, inbound_domain)
    if not scan_id:
        raise ValueError("No scan token found in recipient headers.")

    header = message.authentication_results
    if header is None:
        header = {k.lower(): v for k, v in message.headers.items()}.get("authentication-results")
    parsed = parse_authentication_results(header)
    patch: dict[str, Any] = email_evidence_patch(parsed)

    if patch:
        store.update(scan_id, {"email_scan": patch})
    elif store.load(scan_id) is None:
        raise ScanNotFoundError(scan_id)

    store.append_event(scan_id, {"type": "inbound.received", "auth": parsed})
    logger.info("Inbound verification received for scan %s", scan_id)
    return scan_id, rescore_scan(store, scan_id)
