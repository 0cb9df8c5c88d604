"""Report derivation: blockers, rationale, ranked actions and the send verdict.

The report is a pure function of the scan's evidence and inputs; the only
non-deterministic field is ``generated_at``, which callers may pin.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from .actions import ACTIONS
from .models import (
    Action,
    Blocker,
    CampaignRiskResult,
    Confidence,
    EmailScoreResult,
    PriorityAction,
    Report,
    ReportScores,
    RiskLevel,
    ScanDocument,
    WebsiteScoreResult,
)
from .scoring import score_campaign_risk, score_email, score_website

MAX_BLOCKERS = 8
MAX_WHY = 5
MAX_ACTIONS = 5


@dataclass(frozen=True)
class _Facts:
    dmarc_present: bool
    dmarc_policy: str
    dkim_present: bool
    dkim_result: str
    spf_present: bool
    spf_result: str
    spf_lookups: int
    listed: bool
    lcp_ms: float | None
    ttfb_ms: float | None
    stability: str
    send_window_enabled: bool
    render_blocking: bool
    consent_blocking: bool
    third_parties: bool
    consistent_hit: bool | None


def _facts(scan: ScanDocument) -> _Facts:
    checks = scan.email_scan.checks
    aggr = scan.website_scan.aggregates
    dmarc, dkim, spf = checks.dmarc, checks.dkim, checks.spf
    return _Facts(
        dmarc_present=dmarc is not None and dmarc.present is True,
        dmarc_policy=(dmarc.policy if dmarc else None) or "unknown",
        dkim_present=dkim is not None and dkim.present is True,
        dkim_result=(dkim.result if dkim else None) or "unknown",
        spf_present=spf is not None and spf.present is True,
        spf_result=(spf.result if spf else None) or "unknown",
        spf_lookups=(spf.dns_lookup_count if spf else None) or 0,
        listed=checks.blacklists is not None and checks.blacklists.listed is True,
        lcp_ms=aggr.mobile.p95.lcp_ms,
        ttfb_ms=aggr.mobile.p95.ttfb_ms,
        stability=aggr.stability,
        send_window_enabled=scan.inputs.send_window.enabled,
        render_blocking=aggr.blockers.render_blocking_js,
        consent_blocking=aggr.blockers.consent_blocks_interaction,
        third_parties=aggr.blockers.excessive_third_parties,
        consistent_hit=aggr.cache.consistent_hit,
    )


def _scan(scan: ScanDocument | dict[str, Any]) -> ScanDocument:
    if isinstance(scan, ScanDocument):
        return scan
    return ScanDocument.model_validate(scan)


def compute_scores(
    scan: ScanDocument | dict[str, Any],
) -> tuple[EmailScoreResult, WebsiteScoreResult, CampaignRiskResult]:
    scan = _scan(scan)
    email = score_email(scan.email_scan)
    website = score_website(scan.website_scan, send_window_enabled=scan.inputs.send_window.enabled)

    dmarc = scan.email_scan.checks.dmarc
    risk = score_campaign_risk(
        email,
        website,
        dmarc_present=dmarc.present if dmarc else None,
        dmarc_policy=dmarc.policy if dmarc else None,
    )
    return email, website, risk


def derive_confidence(scan: ScanDocument) -> Confidence:
    checks = scan.email_scan.checks
    mobile = scan.website_scan.aggregates.mobile.p95

    auth_signals = checks.dmarc is not None or checks.spf is not None
    vitals_signals = mobile.lcp_ms is not None or mobile.ttfb_ms is not None

    if auth_signals and vitals_signals:
        return "high"
    if auth_signals or vitals_signals:
        return "medium"
    return "low"


def derive_blockers(scan: ScanDocument, email_score: int, web_score: int) -> list[Blocker]:
    f = _facts(scan)
    blockers: list[Blocker] = []

    if not f.dkim_present:
        blockers.append(Blocker(id="auth_critical", severity="hard", message="DKIM record not detected via DNS."))

    if not f.spf_present:
        blockers.append(Blocker(id="auth_critical", severity="hard", message="SPF record is missing."))
    elif f.spf_result in ("softfail", "neutral"):
        blockers.append(Blocker(id="auth_critical", severity="soft", message="SPF is weak (softfail/neutral)."))

    if f.listed:
        blockers.append(Blocker(id="blacklisted", severity="hard", message="Blacklist signal detected."))

    if not f.dmarc_present:
        blockers.append(Blocker(id="dmarc_missing", severity="hard", message="DMARC is missing."))
    elif f.dmarc_policy == "none":
        blockers.append(
            Blocker(id="dmarc_policy_none", severity="soft", message="DMARC policy is not enforced (policy=none).")
        )

    if f.send_window_enabled and f.stability == "unstable":
        blockers.append(
            Blocker(
                id="website_unstable",
                severity="hard",
                message="Website is unstable during the planned send window.",
            )
        )

    if f.send_window_enabled and f.lcp_ms is not None and f.lcp_ms > 4000:
        blockers.append(
            Blocker(id="mobile_lcp_gt_4s", severity="soft", message="Mobile LCP exceeds 4 seconds during send window.")
        )

    if web_score < 50:
        blockers.append(
            Blocker(id="website_score_lt_50", severity="soft", message="Website readiness score is below 50.")
        )

    return blockers[:MAX_BLOCKERS]


def is_ready_to_send(verdict: RiskLevel, blockers: list[Blocker]) -> bool:
    if verdict == "high":
        return False
    return not any(b.severity == "hard" for b in blockers)


def build_why_list(scan: ScanDocument, email_score: int, web_score: int, verdict: RiskLevel) -> list[str]:
    f = _facts(scan)
    why: list[str] = []

    if not f.dmarc_present:
        why.append("DMARC is missing (no policy enforcement possible).")
    elif f.dmarc_policy == "none":
        why.append("DMARC policy is not enforced (policy=none).")

    if not f.dkim_present:
        why.append("DKIM signing is missing.")

    if not f.spf_present:
        why.append("SPF record is missing.")
    elif f.spf_result in ("softfail", "neutral"):
        why.append("SPF is weak (softfail/neutral).")
    elif f.spf_result in ("fail", "permerror"):
        why.append("SPF is failing (fail/permerror).")

    if f.listed:
        why.append("Blacklist signal detected (needs immediate investigation).")

    if f.send_window_enabled and f.stability == "unstable":
        why.append("Website is unstable during the planned send window.")
    if f.send_window_enabled and f.lcp_ms is not None and f.lcp_ms > 4000:
        why.append("Mobile LCP exceeds 4 seconds during send window.")
    if f.ttfb_ms is not None and f.ttfb_ms > 1200:
        why.append("High server response time (TTFB).")

    if why:
        return why[:MAX_WHY]

    if verdict == "low":
        return ["No critical blockers detected. Keep monitoring and iterate on small wins."]
    return [
        f"Email readiness: {email_score}/100, Website readiness: {web_score}/100.",
        "Address the top issues below before your next send.",
    ]


class ActionBuilder:
    """Collects action ids with the best priority seen for each."""

    def __init__(self) -> None:
        self._priorities: dict[str, int] = {}

    def add(self, action_id: str, priority: int) -> None:
        current = self._priorities.get(action_id)
        if current is None or priority > current:
            self._priorities[action_id] = priority

    def build(self, limit: int = MAX_ACTIONS) -> list[PriorityAction]:
        ranked = sorted(self._priorities.items(), key=lambda kv: kv[1], reverse=True)
        return [
            PriorityAction(**ACTIONS[action_id].model_dump(), priority=priority)
            for action_id, priority in ranked[:limit]
        ]


def select_top_actions(scan: ScanDocument, email_score: int, web_score: int) -> list[PriorityAction]:
    f = _facts(scan)
    actions = ActionBuilder()

    if not f.dmarc_present:
        actions.add("dmarc_add", 100)
    elif f.dmarc_policy == "none":
        actions.add("dmarc_enforce", 95)

    if not f.dkim_present:
        actions.add("dkim_add", 90)
    elif f.dkim_result == "fail":
        actions.add("dkim_fix", 90)

    if not f.spf_present:
        actions.add("spf_add", 70)
    elif f.spf_result in ("fail", "permerror"):
        actions.add("spf_fix", 70)
    elif f.spf_result in ("softfail", "neutral"):
        actions.add("spf_fix", 55)
    if f.spf_lookups > 10:
        actions.add("spf_fix", 60)

    if f.listed:
        actions.add("blacklist_cleanup", 110)

    if f.send_window_enabled and f.stability == "unstable":
        actions.add("stabilize_send_window", 100)

    if f.lcp_ms is not None and f.lcp_ms > 4000:
        actions.add("reduce_lcp", 85)
    elif f.lcp_ms is not None and f.lcp_ms > 3000:
        actions.add("reduce_lcp", 70)

    if f.ttfb_ms is not None and f.ttfb_ms > 1800:
        actions.add("reduce_ttfb", 85)
    elif f.ttfb_ms is not None and f.ttfb_ms > 1200:
        actions.add("reduce_ttfb", 70)

    if f.render_blocking or f.consent_blocking or f.third_parties:
        actions.add("reduce_render_blocking", 60)
    if f.consistent_hit is False:
        actions.add("cache_consistency", 55)

    if web_score < 40:
        actions.add("reduce_ttfb", 90)
        actions.add("reduce_lcp", 90)
    if email_score < 60:
        if not f.dmarc_present:
            actions.add("dmarc_add", 100)
        if f.dmarc_policy == "none":
            actions.add("dmarc_enforce", 98)
        if not f.dkim_present:
            actions.add("dkim_add", 95)

    return actions.build()


def headline_for(verdict: RiskLevel, email_score: int, web_score: int) -> str:
    if verdict == "high":
        return "High risk: fix authentication and stability before sending."
    if verdict == "medium":
        return "Moderate risk: address key issues to improve deliverability and performance."
    if email_score >= 80 and web_score >= 80:
        return "Looks good: you're close to send-ready."
    return "Low risk: a few improvements will make this even stronger."


def generate_report(scan: ScanDocument | dict[str, Any], generated_at: str | None = None) -> Report:
    scan = _scan(scan)
    email, website, risk = compute_scores(scan)
    verdict = risk.level

    blockers = derive_blockers(scan, email.score, website.score)
    actions = select_top_actions(scan, email.score, website.score)

    return Report(
        generated_at=generated_at or datetime.now(timezone.utc).isoformat(),
        scan_id=scan.scan_id,
        headline=headline_for(verdict, email.score, website.score),
        verdict=verdict,
        confidence=derive_confidence(scan),
        ready_to_send=is_ready_to_send(verdict, blockers),
        blockers=blockers,
        scores=ReportScores(email=email, website=website, campaign=risk),
        why=build_why_list(scan, email.score, website.score, verdict),
        top_actions=[Action(**a.model_dump(exclude={"priority"})) for a in actions],
    )


def _clean(value: Any) -> str:
    return str(value if value is not None else "").replace("\r", "").strip()


def format_report_markdown(report: Report) -> str:
    lines: list[str] = [
        "# Campaign Readiness Report",
        "",
        f"- **Scan ID:** {_clean(report.scan_id)}",
        f"- **Generated:** {_clean(report.generated_at)}",
        f"- **Verdict:** {report.verdict.upper()}",
        f"- **Confidence:** {report.confidence}",
        f"- **Ready to send:** {'Yes' if report.ready_to_send else 'No'}",
        "",
        "## Summary",
        _clean(report.headline),
        "",
        "## Scores",
        f"- Email readiness: **{report.scores.email.score}/100** ({report.scores.email.status})",
        f"- Website readiness: **{report.scores.website.score}/100** ({report.scores.website.status})",
        f"- Campaign risk: **{report.scores.campaign.level.upper()}** ({report.scores.campaign.score}/100)",
        "",
        "## Why this verdict",
    ]
    if report.why:
        lines.extend(f"- {_clean(w)}" for w in report.why)
    else:
        lines.append("- No additional reasoning available.")
    lines.append("")

    lines.append("## Blockers")
    if report.blockers:
        for b in report.blockers:
            lines.append(f"- **{b.severity}** · {_clean(b.message)} _(id: {b.id})_")
    else:
        lines.append("- None")
    lines.append("")

    lines.append("## Recommended actions")
    if not report.top_actions:
        lines.extend(["- None", ""])
    for i, a in enumerate(report.top_actions, start=1):
        lines.append(f"### {i}. {_clean(a.title)}")
        lines.append(f"- **Impact:** {a.impact} · **Effort:** {a.effort}")
        lines.append(f"- **Why:** {_clean(a.why)}")
        if a.steps:
            lines.extend(["", "Steps:"])
            lines.extend(f"- {_clean(s)}" for s in a.steps)
        lines.append("")

    return "\n".join(lines)
