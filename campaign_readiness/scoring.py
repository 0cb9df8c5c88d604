"""Deterministic readiness scoring.

Every scorer starts at 100, subtracts capped per-category penalties, adds a
capped bonus and clamps the result to 0..100. Scores are pure functions of
their evidence and are recomputed on every call.
"""
from __future__ import annotations

from typing import Any

from .models import (
    CampaignPenalties,
    CampaignRiskResult,
    EmailEvidence,
    EmailPenalties,
    EmailScoreResult,
    EmailSignals,
    ReadinessStatus,
    RiskLevel,
    WebsiteEvidence,
    WebsitePenalties,
    WebsiteScoreResult,
    WebsiteSignals,
)

EMAIL_BONUS_CAP = 5
WEBSITE_BONUS_CAP = 5
TTFB_PENALTY_CAP = 30
CWV_PENALTY_CAP = 40
BLOCKING_PENALTY_CAP = 10
DESKTOP_PENALTY_CAP = 10
HARD_STOP_SCORE_CAP = 59


def clamp_score(score: float) -> int:
    return max(0, min(100, int(score)))


def status_for(score: int) -> ReadinessStatus:
    if score >= 90:
        return "strong"
    if score >= 75:
        return "good"
    if score >= 60:
        return "needs_improvement"
    return "high_risk"


def level_for(risk_score: int) -> RiskLevel:
    if risk_score >= 80:
        return "low"
    if risk_score >= 60:
        return "medium"
    return "high"


def _email_evidence(evidence: EmailEvidence | dict[str, Any] | None) -> EmailEvidence:
    if isinstance(evidence, EmailEvidence):
        return evidence
    return EmailEvidence.model_validate(evidence if isinstance(evidence, dict) else {})


def _website_evidence(evidence: WebsiteEvidence | dict[str, Any] | None) -> WebsiteEvidence:
    if isinstance(evidence, WebsiteEvidence):
        return evidence
    return WebsiteEvidence.model_validate(evidence if isinstance(evidence, dict) else {})


# --- email

def score_email(evidence: EmailEvidence | dict[str, Any] | None) -> EmailScoreResult:
    checks = _email_evidence(evidence).checks

    dmarc = checks.dmarc
    dmarc_present = dmarc is not None and dmarc.present is True
    dmarc_policy = (dmarc.policy if dmarc else None) or "unknown"

    dmarc_penalty = 0
    if not dmarc_present:
        dmarc_penalty += 30
    else:
        if dmarc_policy == "none":
            dmarc_penalty += 20
        elif dmarc_policy == "quarantine":
            dmarc_penalty += 10
        pct = dmarc.pct if dmarc.pct is not None else 100
        if pct < 100:
            dmarc_penalty += 5

    dkim = checks.dkim
    dkim_present = dkim is not None and dkim.present is True
    dkim_result = (dkim.result if dkim else None) or "unknown"

    dkim_penalty = 0
    if not dkim_present:
        dkim_penalty += 20
    else:
        if dkim_result == "fail":
            dkim_penalty += 20
        if dkim.alignment == "not_aligned":
            dkim_penalty += 10

    spf = checks.spf
    spf_present = spf is not None and spf.present is True
    spf_result = (spf.result if spf else None) or "unknown"

    spf_penalty = 0
    if not spf_present:
        spf_penalty += 15
    else:
        if spf_result in ("fail", "permerror"):
            spf_penalty += 15
        elif spf_result in ("softfail", "neutral"):
            spf_penalty += 5
        if spf.alignment == "not_aligned":
            spf_penalty += 5
        if (spf.dns_lookup_count or 0) > 10:
            spf_penalty += 5

    transport_penalty = 0
    mx_tls = checks.mx.tls if checks.mx and checks.mx.tls else None
    if mx_tls is not None and mx_tls.supported is False:
        transport_penalty += 10
    mta_sts = checks.mta_sts
    if not (mta_sts is not None and mta_sts.present is True):
        transport_penalty += 5

    listed = checks.blacklists is not None and checks.blacklists.listed is True
    reputation_penalty = 30 if listed else 0

    bonus = 0
    if dmarc is not None and dmarc.alignment_mode == "strict":
        bonus += 3
    if dkim is not None and len(dkim.selectors_checked) >= 2:
        bonus += 2
    if mta_sts is not None and mta_sts.policy_mode == "enforce":
        bonus += 2
    if checks.tlsrpt is not None and checks.tlsrpt.present is True:
        bonus += 1
    if checks.bimi is not None and checks.bimi.present is True:
        bonus += 2
    bonus = min(bonus, EMAIL_BONUS_CAP)

    penalties = EmailPenalties(
        spf=spf_penalty,
        dkim=dkim_penalty,
        dmarc=dmarc_penalty,
        transport=transport_penalty,
        reputation=reputation_penalty,
    )
    total = spf_penalty + dkim_penalty + dmarc_penalty + transport_penalty + reputation_penalty
    score = clamp_score(100 - total + bonus)

    auth_critical = (
        not dmarc_present
        or dmarc_policy == "none"
        or (dkim_present and dkim_result == "fail")
        or (spf_present and spf_result in ("fail", "permerror"))
    )

    return EmailScoreResult(
        score=score,
        status=status_for(score),
        bonus_applied=bonus,
        penalties=penalties,
        signals=EmailSignals(
            dmarc_enforced=dmarc_present and dmarc_policy in ("quarantine", "reject"),
            auth_critical=auth_critical,
            blacklisted=listed,
        ),
    )


# --- website

def _penalty_ttfb(ttfb_ms: float | None) -> int:
    if ttfb_ms is None or ttfb_ms <= 600:
        return 0
    if ttfb_ms <= 900:
        return 5
    if ttfb_ms <= 1200:
        return 10
    if ttfb_ms <= 1800:
        return 20
    return 30


def _penalty_lcp(lcp_ms: float | None) -> int:
    if lcp_ms is None:
        return 0
    seconds = lcp_ms / 1000
    if seconds <= 2.5:
        return 0
    if seconds <= 3.0:
        return 5
    if seconds <= 4.0:
        return 15
    return 25


def _penalty_cls(cls: float | None) -> int:
    if cls is None or cls <= 0.1:
        return 0
    if cls <= 0.25:
        return 5
    return 10


def _penalty_inp(inp_ms: float | None) -> int:
    if inp_ms is None or inp_ms <= 200:
        return 0
    if inp_ms <= 500:
        return 5
    return 10


def score_website(
    evidence: WebsiteEvidence | dict[str, Any] | None,
    send_window_enabled: bool = False,
) -> WebsiteScoreResult:
    aggr = _website_evidence(evidence).aggregates
    mobile = aggr.mobile.p95
    desktop = aggr.desktop.p95

    consistent_hit = aggr.cache.consistent_hit

    ttfb_penalty = _penalty_ttfb(mobile.ttfb_ms)
    if consistent_hit is False:
        ttfb_penalty += 5
    if aggr.redirects.count > 1:
        ttfb_penalty += 3
    ttfb_penalty = min(ttfb_penalty, TTFB_PENALTY_CAP)

    cwv_penalty = min(
        _penalty_lcp(mobile.lcp_ms) + _penalty_cls(mobile.cls) + _penalty_inp(mobile.inp_ms),
        CWV_PENALTY_CAP,
    )

    stability_penalty = 0
    if send_window_enabled:
        if aggr.stability == "unstable":
            stability_penalty = 20
        elif aggr.stability == "variable":
            stability_penalty = 10

    blockers = aggr.blockers
    blocking_penalty = 0
    if blockers.render_blocking_js:
        blocking_penalty += 5
    if blockers.consent_blocks_interaction:
        blocking_penalty += 3
    if blockers.excessive_third_parties:
        blocking_penalty += 2
    blocking_penalty = min(blocking_penalty, BLOCKING_PENALTY_CAP)

    # Desktop only counts when it is materially worse than mobile.
    desktop_penalty = 0
    if desktop.lcp_ms is not None and mobile.lcp_ms is not None and desktop.lcp_ms > mobile.lcp_ms * 1.25:
        desktop_penalty += 5
    if desktop.ttfb_ms is not None and mobile.ttfb_ms is not None and desktop.ttfb_ms > mobile.ttfb_ms * 1.3:
        desktop_penalty += 5
    desktop_penalty = min(desktop_penalty, DESKTOP_PENALTY_CAP)

    bonus = 2 if consistent_hit is True else 0
    bonus = min(bonus, WEBSITE_BONUS_CAP)

    total = ttfb_penalty + cwv_penalty + stability_penalty + blocking_penalty + desktop_penalty
    score = clamp_score(100 - total + bonus)

    return WebsiteScoreResult(
        score=score,
        status=status_for(score),
        bonus_applied=bonus,
        penalties=WebsitePenalties(
            ttfb=ttfb_penalty,
            cwv=cwv_penalty,
            stability=stability_penalty,
            blocking=blocking_penalty,
            desktop=desktop_penalty,
        ),
        signals=WebsiteSignals(
            stability=aggr.stability,
            send_window_enabled=send_window_enabled,
            mobile_lcp_p95_ms=mobile.lcp_ms,
            mobile_ttfb_p95_ms=mobile.ttfb_ms,
        ),
    )


# --- campaign risk

def hard_stop_reasons(
    email: EmailScoreResult,
    website: WebsiteScoreResult,
    dmarc_present: bool | None = None,
    dmarc_policy: str | None = None,
) -> list[str]:
    reasons: list[str] = []
    if dmarc_present is False:
        reasons.append("dmarc_missing")
    if dmarc_policy == "none":
        reasons.append("dmarc_policy_none")
    if email.signals.blacklisted:
        reasons.append("blacklisted")
    if website.signals.stability == "unstable":
        reasons.append("website_unstable")
    lcp = website.signals.mobile_lcp_p95_ms
    if website.signals.send_window_enabled and lcp is not None and lcp > 4000:
        reasons.append("mobile_lcp_gt_4s_during_send_window")
    if website.score < 50:
        reasons.append("website_score_lt_50")
    return reasons


def score_campaign_risk(
    email: EmailScoreResult,
    website: WebsiteScoreResult,
    dmarc_present: bool | None = None,
    dmarc_policy: str | None = None,
) -> CampaignRiskResult:
    """Combine the component scores into a campaign risk score (higher is safer).

    ``dmarc_present``/``dmarc_policy`` are the raw DMARC facts; hard stops only
    fire on explicit values, never on missing ones.
    """
    reasons = hard_stop_reasons(email, website, dmarc_present, dmarc_policy)

    penalties = CampaignPenalties()

    if email.score < 60:
        penalties.email = 30
    elif email.score < 75:
        penalties.email = 20
    elif email.score < 90:
        penalties.email = 10

    if email.signals.auth_critical:
        penalties.auth = 20

    if website.score < 60:
        penalties.website = 25
    elif website.score < 75:
        penalties.website = 15
    elif website.score < 90:
        penalties.website = 5

    lcp = website.signals.mobile_lcp_p95_ms
    if lcp is not None and lcp > 3000:
        penalties.lcp = 10
    ttfb = website.signals.mobile_ttfb_p95_ms
    if ttfb is not None and ttfb > 1200:
        penalties.ttfb = 10

    if website.signals.stability == "variable":
        penalties.stability = 10
    elif website.signals.stability == "unstable":
        penalties.stability = 20

    total = (
        penalties.email + penalties.auth + penalties.website
        + penalties.lcp + penalties.ttfb + penalties.stability
    )
    risk_score = clamp_score(100 - total)

    if reasons:
        return CampaignRiskResult(
            score=min(risk_score, HARD_STOP_SCORE_CAP),
            level="high",
            hard_stop_applied=True,
            hard_stop_reasons=reasons,
            penalties=penalties,
        )

    return CampaignRiskResult(
        score=risk_score,
        level=level_for(risk_score),
        hard_stop_applied=False,
        hard_stop_reasons=[],
        penalties=penalties,
    )
