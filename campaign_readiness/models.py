from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, ValidationError, field_validator

ReadinessStatus = Literal["strong", "good", "needs_improvement", "high_risk"]
RiskLevel = Literal["low", "medium", "high"]
Confidence = Literal["high", "medium", "low"]
Stability = Literal["stable", "variable", "unstable", "unknown"]
CacheMode = Literal["no-cache", "cache"]

SpfResult = Literal["pass", "fail", "softfail", "neutral", "permerror", "temperror", "unknown"]
DmarcPolicy = Literal["none", "quarantine", "reject", "unknown"]
Alignment = Literal["aligned", "not_aligned", "unknown"]

BlockerId = Literal[
    "blacklisted",
    "dmarc_missing",
    "dmarc_policy_none",
    "auth_critical",
    "website_unstable",
    "mobile_lcp_gt_4s",
    "website_score_lt_50",
]
Severity = Literal["hard", "soft"]

# Evidence numbers must be real finite JSON numbers; numeric strings and NaN are ignored.
Number = Annotated[float, Field(strict=True, allow_inf_nan=False)]


class _Evidence(BaseModel):
    """Evidence arrives as loosely shaped JSON from external collectors.

    Unknown keys are dropped and a value that does not validate falls back to
    the field default, so scoring never has to deal with a malformed payload.
    """

    model_config = ConfigDict(extra="ignore")

    @field_validator("*", mode="wrap")
    @classmethod
    def _default_on_error(cls, value: Any, handler, info):
        try:
            return handler(value)
        except ValidationError:
            field = cls.model_fields[info.field_name]
            if field.is_required():
                raise
            return field.get_default(call_default_factory=True)


# --- email evidence

class SpfCheck(_Evidence):
    present: StrictBool | None = None
    result: SpfResult | None = None
    alignment: Alignment | None = None
    dns_lookup_count: StrictInt | None = None


class DkimCheck(_Evidence):
    present: StrictBool | None = None
    result: Literal["pass", "fail", "unknown"] | None = None
    alignment: Alignment | None = None
    selectors_checked: list[str] = Field(default_factory=list)


class DmarcCheck(_Evidence):
    present: StrictBool | None = None
    policy: DmarcPolicy | None = None
    # Missing pct means full enforcement.
    pct: Number | None = None
    alignment_mode: Literal["relaxed", "strict", "unknown"] | None = None


class TransportTLS(_Evidence):
    supported: StrictBool | None = None


class MxCheck(_Evidence):
    tls: TransportTLS | None = None


class MtaStsCheck(_Evidence):
    present: StrictBool | None = None
    policy_mode: Literal["enforce", "testing", "none", "unknown"] | None = None


class PresenceCheck(_Evidence):
    present: StrictBool | None = None


class BlacklistHit(_Evidence):
    list: str = ""
    evidence: str | None = None


class BlacklistCheck(_Evidence):
    listed: StrictBool | None = None
    hits: list[BlacklistHit] = Field(default_factory=list)


class EmailChecks(_Evidence):
    spf: SpfCheck | None = None
    dkim: DkimCheck | None = None
    dmarc: DmarcCheck | None = None
    mx: MxCheck | None = None
    mta_sts: MtaStsCheck | None = None
    tlsrpt: PresenceCheck | None = None
    bimi: PresenceCheck | None = None
    blacklists: BlacklistCheck | None = None


class EmailEvidence(_Evidence):
    checks: EmailChecks = Field(default_factory=EmailChecks)


# --- website evidence

class Sample(_Evidence):
    mode: CacheMode
    url: str
    status: int | None = None
    ok: bool = False
    redirects: int = 0
    ttfb_ms: int | None = None
    cache_hit: bool | None = None
    cache_headers: dict[str, str | None] = Field(default_factory=dict)
    error: str | None = None


class VitalsP95(_Evidence):
    ttfb_ms: Number | None = None
    lcp_ms: Number | None = None
    cls: Number | None = None
    inp_ms: Number | None = None


class DeviceVitals(_Evidence):
    p95: VitalsP95 = Field(default_factory=VitalsP95)


class RedirectStats(_Evidence):
    count: StrictInt = 0


class CacheStats(_Evidence):
    consistent_hit: StrictBool | None = None
    sample_hits: int = 0
    sample_total: int = 0
    notes: list[str] = Field(default_factory=list)


class TtfbP95(_Evidence):
    ttfb_ms: int | None = None


class SampleSummary(_Evidence):
    p95: TtfbP95 = Field(default_factory=TtfbP95)
    stability: Stability = "unknown"
    ok_count: int = 0
    total: int = 0


class HttpSummary(_Evidence):
    overall: SampleSummary = Field(default_factory=SampleSummary)
    no_cache: SampleSummary = Field(default_factory=SampleSummary)
    cache: SampleSummary = Field(default_factory=SampleSummary)


class HttpEvidence(_Evidence):
    samples: list[Sample] = Field(default_factory=list)
    summary: HttpSummary | None = None


class PageBlockers(_Evidence):
    render_blocking_js: StrictBool = False
    consent_blocks_interaction: StrictBool = False
    excessive_third_parties: StrictBool = False


class WebsiteAggregates(_Evidence):
    mobile: DeviceVitals = Field(default_factory=DeviceVitals)
    desktop: DeviceVitals = Field(default_factory=DeviceVitals)
    redirects: RedirectStats = Field(default_factory=RedirectStats)
    stability: Stability = "unknown"
    cache: CacheStats = Field(default_factory=CacheStats)
    http: HttpEvidence = Field(default_factory=HttpEvidence)
    blockers: PageBlockers = Field(default_factory=PageBlockers)


class WebsiteEvidence(_Evidence):
    aggregates: WebsiteAggregates = Field(default_factory=WebsiteAggregates)


# --- scores

class EmailPenalties(BaseModel):
    spf: int = 0
    dkim: int = 0
    dmarc: int = 0
    transport: int = 0
    reputation: int = 0


class EmailSignals(BaseModel):
    dmarc_enforced: bool
    auth_critical: bool
    blacklisted: bool


class EmailScoreResult(BaseModel):
    score: int
    status: ReadinessStatus
    bonus_applied: int
    penalties: EmailPenalties
    signals: EmailSignals


class WebsitePenalties(BaseModel):
    ttfb: int = 0
    cwv: int = 0
    stability: int = 0
    blocking: int = 0
    desktop: int = 0


class WebsiteSignals(BaseModel):
    stability: Stability
    send_window_enabled: bool
    mobile_lcp_p95_ms: float | None
    mobile_ttfb_p95_ms: float | None


class WebsiteScoreResult(BaseModel):
    score: int
    status: ReadinessStatus
    bonus_applied: int
    penalties: WebsitePenalties
    signals: WebsiteSignals


class CampaignPenalties(BaseModel):
    email: int = 0
    auth: int = 0
    website: int = 0
    lcp: int = 0
    ttfb: int = 0
    stability: int = 0


class CampaignRiskResult(BaseModel):
    score: int
    level: RiskLevel
    hard_stop_applied: bool
    hard_stop_reasons: list[str]
    penalties: CampaignPenalties


# --- report

class Blocker(BaseModel):
    id: BlockerId
    severity: Severity
    message: str


class Action(BaseModel):
    id: str
    title: str
    why: str
    impact: Literal["high", "medium", "low"]
    effort: Literal["low", "medium", "high"]
    steps: list[str]


class PriorityAction(Action):
    # Higher sorts first; never exposed on the report.
    priority: int


class ReportScores(BaseModel):
    email: EmailScoreResult
    website: WebsiteScoreResult
    campaign: CampaignRiskResult


class Report(BaseModel):
    report_version: Literal["1.0"] = "1.0"
    generated_at: str
    scan_id: str
    headline: str
    verdict: RiskLevel
    confidence: Confidence
    ready_to_send: bool
    blockers: list[Blocker]
    scores: ReportScores
    why: list[str]
    top_actions: list[Action]


# --- persisted scan

class SendWindow(BaseModel):
    enabled: bool = False
    timezone: str = "Europe/Amsterdam"
    scheduled_send_at: str | None = None


class ScanInputs(BaseModel):
    website_url: str
    sending_email: str = ""
    contact_email: str = ""
    send_window: SendWindow = Field(default_factory=SendWindow)


class ScoreSlot(BaseModel):
    score: int = 0
    max: Literal[100] = 100


class RiskSlot(BaseModel):
    level: RiskLevel = "low"
    score: int = 0
    max: Literal[100] = 100


class ScanScores(BaseModel):
    email_readiness: ScoreSlot = Field(default_factory=ScoreSlot)
    website_readiness: ScoreSlot = Field(default_factory=ScoreSlot)
    campaign_risk: RiskSlot = Field(default_factory=RiskSlot)


class ScanMeta(BaseModel):
    run_mode: Literal["single", "scheduled_window"] = "single"
    scanner_region: str = "local"
    runtime_ms: int = 0


class ScanDocument(BaseModel):
    schema_version: Literal["1.0"] = "1.0"
    scan_id: str
    created_at: str
    inputs: ScanInputs
    email_scan: EmailEvidence = Field(default_factory=EmailEvidence)
    website_scan: WebsiteEvidence = Field(default_factory=WebsiteEvidence)
    scores: ScanScores = Field(default_factory=ScanScores)
    meta: ScanMeta = Field(default_factory=ScanMeta)

    @field_validator("email_scan", "website_scan", mode="before")
    @classmethod
    def _evidence_or_empty(cls, value: Any):
        # A null or non-object blob is treated as "no evidence collected".
        if isinstance(value, (dict, BaseModel)):
            return value
        return {}


# --- API requests

class ScanRequest(BaseModel):
    website_url: str = Field(..., min_length=1)
    sending_email: str = ""
    contact_email: str = ""
    send_window: SendWindow = Field(default_factory=SendWindow)
    email_scan: dict[str, Any] = Field(default_factory=dict)
    no_cache_samples: int | None = Field(None, ge=0, le=20)
    cache_samples: int | None = Field(None, ge=0, le=20)
    timeout_ms: int | None = Field(None, ge=1000, le=60000)


class InboundMessage(BaseModel):
    recipient: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    authentication_results: str | None = None


class ScanCreated(BaseModel):
    scan_id: str
    report: Report
