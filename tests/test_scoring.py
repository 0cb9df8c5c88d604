"""Tests for the email, website and campaign risk scorers."""

import random

import pytest

from campaign_readiness.models import (
    EmailPenalties,
    EmailScoreResult,
    EmailSignals,
    WebsitePenalties,
    WebsiteScoreResult,
    WebsiteSignals,
)
from campaign_readiness.scoring import (
    clamp_score,
    score_campaign_risk,
    score_email,
    score_website,
    status_for,
)


def _email(score, auth_critical=False, blacklisted=False):
    return EmailScoreResult(
        score=score,
        status=status_for(score),
        bonus_applied=0,
        penalties=EmailPenalties(),
        signals=EmailSignals(dmarc_enforced=not auth_critical, auth_critical=auth_critical, blacklisted=blacklisted),
    )


def _web(score, stability="stable", send_window=False, lcp=2000, ttfb=300):
    return WebsiteScoreResult(
        score=score,
        status=status_for(score),
        bonus_applied=0,
        penalties=WebsitePenalties(),
        signals=WebsiteSignals(
            stability=stability,
            send_window_enabled=send_window,
            mobile_lcp_p95_ms=lcp,
            mobile_ttfb_p95_ms=ttfb,
        ),
    )


class TestStatus:
    @pytest.mark.parametrize(
        "score,status",
        [(100, "strong"), (90, "strong"), (89, "good"), (75, "good"), (74, "needs_improvement"),
         (60, "needs_improvement"), (59, "high_risk"), (0, "high_risk")],
    )
    def test_buckets(self, score, status):
        assert status_for(score) == status

    def test_clamp(self):
        assert clamp_score(-12) == 0
        assert clamp_score(130) == 100
        assert clamp_score(42) == 42


class TestEmailScore:
    def test_dmarc_missing(self):
        r = score_email({"checks": {"dmarc": {"present": False}}})
        assert r.score < 80
        assert r.penalties.dmarc == 30
        assert r.signals.auth_critical
        assert not r.signals.dmarc_enforced

    def test_dmarc_policy_none(self):
        r = score_email({"checks": {"dmarc": {"present": True, "policy": "none", "pct": 100}}})
        assert r.penalties.dmarc == 20
        assert r.signals.auth_critical

    def test_quarantine_with_partial_pct(self):
        r = score_email({"checks": {"dmarc": {"present": True, "policy": "quarantine", "pct": 50}}})
        assert r.penalties.dmarc == 15
        assert r.signals.dmarc_enforced
        assert not r.signals.auth_critical

    def test_reject_full_enforcement_has_no_dmarc_penalty(self):
        r = score_email({"checks": {"dmarc": {"present": True, "policy": "reject"}}})
        assert r.penalties.dmarc == 0

    def test_dkim_missing(self):
        r = score_email({"checks": {"dkim": {"present": False}, "dmarc": {"present": True, "policy": "reject", "pct": 100}}})
        assert r.penalties.dkim == 20

    def test_dkim_failing_and_misaligned(self):
        r = score_email({"checks": {"dkim": {"present": True, "result": "fail", "alignment": "not_aligned"}}})
        assert r.penalties.dkim == 30
        assert r.signals.auth_critical

    def test_spf_permerror(self):
        r = score_email({
            "checks": {
                "spf": {"present": True, "result": "permerror"},
                "dmarc": {"present": True, "policy": "reject", "pct": 100},
                "dkim": {"present": True, "result": "pass"},
            }
        })
        assert r.penalties.spf == 15
        assert r.signals.auth_critical

    def test_spf_softfail_misaligned_and_too_many_lookups(self):
        r = score_email({"checks": {"spf": {"present": True, "result": "softfail", "alignment": "not_aligned", "dns_lookup_count": 12}}})
        assert r.penalties.spf == 15

    def test_transport(self):
        r = score_email({"checks": {"mx": {"tls": {"supported": False}}}})
        assert r.penalties.transport == 15
        r = score_email({"checks": {"mx": {"tls": {"supported": True}}, "mta_sts": {"present": True}}})
        assert r.penalties.transport == 0

    def test_blacklist_hit(self):
        r = score_email({"checks": {"blacklists": {"listed": True, "hits": [{"list": "zen.spamhaus.org"}]}}})
        assert r.penalties.reputation == 30
        assert r.signals.blacklisted

    def test_bonus_is_capped(self, good_email):
        r = score_email(good_email)
        assert r.bonus_applied == 5
        assert r.score == 100
        assert r.status == "strong"
        assert r.penalties == EmailPenalties()

    def test_empty_and_malformed_evidence(self):
        expected = 100 - (30 + 20 + 15 + 5)
        assert score_email(None).score == expected
        assert score_email({}).score == expected
        r = score_email({"checks": {"dmarc": "yes", "spf": {"present": "maybe", "result": 3}}, "extra": 1})
        assert r.score == expected
        assert r.signals.auth_critical


class TestWebsiteScore:
    def test_lcp_over_four_seconds(self):
        r = score_website({"aggregates": {"mobile": {"p95": {"lcp_ms": 4500}}}})
        assert r.penalties.cwv >= 25
        assert r.score < 90

    def test_ttfb_breakpoints(self):
        expected = {500: 0, 700: 5, 1000: 10, 1500: 20, 2200: 30}
        for ttfb, penalty in expected.items():
            r = score_website({"aggregates": {"mobile": {"p95": {"ttfb_ms": ttfb}}}})
            assert r.penalties.ttfb == penalty, ttfb

    def test_ttfb_modifiers_are_capped(self):
        r = score_website({
            "aggregates": {
                "mobile": {"p95": {"ttfb_ms": 2000}},
                "cache": {"consistent_hit": False},
                "redirects": {"count": 3},
            }
        })
        assert r.penalties.ttfb == 30

    def test_cache_inconsistency_and_redirects(self):
        r = score_website({"aggregates": {"cache": {"consistent_hit": False}, "redirects": {"count": 2}}})
        assert r.penalties.ttfb == 8

    def test_cwv_cap(self):
        r = score_website({"aggregates": {"mobile": {"p95": {"lcp_ms": 5000, "cls": 0.3, "inp_ms": 600}}}})
        assert r.penalties.cwv == 40

    def test_stability_only_counts_in_send_window(self):
        unstable = {"aggregates": {"stability": "unstable", "mobile": {"p95": {"lcp_ms": 2000}}}}
        assert score_website(unstable, send_window_enabled=True).penalties.stability == 20
        assert score_website(unstable).penalties.stability == 0
        variable = {"aggregates": {"stability": "variable"}}
        assert score_website(variable, send_window_enabled=True).penalties.stability == 10

    def test_blocking_cap(self):
        r = score_website({
            "aggregates": {
                "blockers": {
                    "render_blocking_js": True,
                    "consent_blocks_interaction": True,
                    "excessive_third_parties": True,
                }
            }
        })
        assert r.penalties.blocking == 10

    def test_desktop_parity(self):
        r = score_website({
            "aggregates": {
                "mobile": {"p95": {"lcp_ms": 2000, "ttfb_ms": 500}},
                "desktop": {"p95": {"lcp_ms": 2600, "ttfb_ms": 700}},
            }
        })
        assert r.penalties.desktop == 10
        assert r.score == 90

    def test_consistent_cache_bonus(self):
        r = score_website({"aggregates": {"cache": {"consistent_hit": True}}})
        assert r.bonus_applied == 2
        assert r.score == 100

    def test_signals(self):
        r = score_website({"aggregates": {"mobile": {"p95": {"lcp_ms": 3100, "ttfb_ms": 800}}}}, send_window_enabled=True)
        assert r.signals.mobile_lcp_p95_ms == 3100
        assert r.signals.mobile_ttfb_p95_ms == 800
        assert r.signals.send_window_enabled
        assert r.signals.stability == "unknown"


class TestCampaignRisk:
    def test_dmarc_none_forces_high_despite_good_components(self):
        r = score_campaign_risk(_email(95, auth_critical=True), _web(95), dmarc_present=True, dmarc_policy="none")
        assert r.level == "high"
        assert r.hard_stop_applied
        assert "dmarc_policy_none" in r.hard_stop_reasons
        assert r.score <= 59

    def test_blacklisted_is_hard_stop(self):
        r = score_campaign_risk(_email(90, blacklisted=True), _web(90), dmarc_present=True, dmarc_policy="reject")
        assert r.level == "high"
        assert r.hard_stop_reasons == ["blacklisted"]

    def test_unstable_is_hard_stop(self):
        r = score_campaign_risk(_email(90), _web(80, stability="unstable", send_window=True))
        assert r.level == "high"
        assert "website_unstable" in r.hard_stop_reasons

    def test_lcp_over_four_seconds_only_in_send_window(self):
        r = score_campaign_risk(_email(95), _web(70, send_window=True, lcp=4500, ttfb=800))
        assert "mobile_lcp_gt_4s_during_send_window" in r.hard_stop_reasons
        r = score_campaign_risk(_email(95), _web(70, send_window=False, lcp=4500, ttfb=800))
        assert not r.hard_stop_applied

    def test_low_website_score_is_hard_stop(self):
        r = score_campaign_risk(_email(95), _web(45))
        assert r.hard_stop_reasons == ["website_score_lt_50"]

    def test_explicitly_missing_dmarc_is_hard_stop(self):
        r = score_campaign_risk(_email(95, auth_critical=True), _web(95), dmarc_present=False)
        assert r.hard_stop_reasons == ["dmarc_missing"]

    def test_unknown_dmarc_is_not_a_hard_stop(self):
        r = score_campaign_risk(_email(50, auth_critical=True), _web(70))
        assert not r.hard_stop_applied
        # 100 - 30 - 20 - 15
        assert r.score == 35
        assert r.level == "high"

    def test_good_components_without_hard_stop(self):
        r = score_campaign_risk(_email(85), _web(82, lcp=2800, ttfb=700), dmarc_present=True, dmarc_policy="reject")
        assert not r.hard_stop_applied
        assert r.level in ("low", "medium")
        assert r.score == 85

    def test_medium_band(self):
        r = score_campaign_risk(_email(70), _web(80))
        assert r.score == 75
        assert r.level == "medium"
        assert r.penalties.email == 20
        assert r.penalties.website == 5

    def test_slow_vitals_and_variable_stability(self):
        r = score_campaign_risk(_email(95), _web(95, stability="variable", lcp=3200, ttfb=1300))
        assert r.score == 70
        assert r.penalties.lcp == 10
        assert r.penalties.ttfb == 10
        assert r.penalties.stability == 10


def _random_email(rng: random.Random) -> dict:
    def maybe(value):
        return value if rng.random() < 0.8 else None

    return {
        "checks": {
            "spf": maybe({
                "present": rng.choice([True, False, None]),
                "result": rng.choice(["pass", "fail", "softfail", "neutral", "permerror", "temperror", "bogus"]),
                "alignment": rng.choice(["aligned", "not_aligned", "unknown"]),
                "dns_lookup_count": rng.randint(0, 20),
            }),
            "dkim": maybe({
                "present": rng.choice([True, False]),
                "result": rng.choice(["pass", "fail", "unknown"]),
                "alignment": rng.choice(["aligned", "not_aligned"]),
                "selectors_checked": ["s"] * rng.randint(0, 3),
            }),
            "dmarc": maybe({
                "present": rng.choice([True, False]),
                "policy": rng.choice(["none", "quarantine", "reject", "unknown"]),
                "pct": rng.randint(0, 100),
                "alignment_mode": rng.choice(["relaxed", "strict"]),
            }),
            "mx": maybe({"tls": {"supported": rng.choice([True, False])}}),
            "mta_sts": maybe({"present": rng.choice([True, False]), "policy_mode": rng.choice(["enforce", "testing"])}),
            "tlsrpt": maybe({"present": rng.choice([True, False])}),
            "bimi": maybe({"present": rng.choice([True, False])}),
            "blacklists": maybe({"listed": rng.choice([True, False])}),
        }
    }


def _random_website(rng: random.Random) -> dict:
    def vitals():
        return {
            "ttfb_ms": rng.choice([None, rng.uniform(50, 5000)]),
            "lcp_ms": rng.choice([None, rng.uniform(500, 9000)]),
            "cls": rng.choice([None, rng.uniform(0, 1)]),
            "inp_ms": rng.choice([None, rng.uniform(10, 1500)]),
        }

    return {
        "aggregates": {
            "mobile": {"p95": vitals()},
            "desktop": {"p95": vitals()},
            "stability": rng.choice(["stable", "variable", "unstable", "unknown"]),
            "cache": {"consistent_hit": rng.choice([True, False, None])},
            "redirects": {"count": rng.randint(0, 5)},
            "blockers": {
                "render_blocking_js": rng.random() < 0.5,
                "consent_blocks_interaction": rng.random() < 0.5,
                "excessive_third_parties": rng.random() < 0.5,
            },
        }
    }


def test_scores_stay_in_bounds_for_random_evidence():
    rng = random.Random(1337)
    for _ in range(500):
        email = score_email(_random_email(rng))
        web = score_website(_random_website(rng), send_window_enabled=rng.random() < 0.5)
        dmarc_present = rng.choice([True, False, None])
        risk = score_campaign_risk(email, web, dmarc_present=dmarc_present, dmarc_policy=rng.choice(["none", "reject", None]))
        for score in (email.score, web.score, risk.score):
            assert 0 <= score <= 100
        assert 0 <= email.bonus_applied <= 5
        assert 0 <= web.bonus_applied <= 5
        if risk.hard_stop_applied:
            assert risk.level == "high"
            assert risk.score <= 59


class TestStrictEvidenceValues:
    @pytest.mark.parametrize("flag", [1, "true", "yes"])
    def test_presence_needs_literal_true(self, flag):
        r = score_email({"checks": {"dmarc": {"present": flag, "policy": "reject"}}})
        assert r.penalties.dmarc == 30
        assert r.signals.auth_critical

    def test_blacklist_needs_literal_true(self):
        assert score_email({"checks": {"blacklists": {"listed": "true"}}}).penalties.reputation == 0

    @pytest.mark.parametrize("value", ["1500", float("nan"), float("inf")])
    def test_vitals_must_be_finite_numbers(self, value):
        r = score_website({"aggregates": {"mobile": {"p95": {"ttfb_ms": value, "lcp_ms": value}}}})
        assert r.penalties.ttfb == 0
        assert r.penalties.cwv == 0
        assert r.signals.mobile_ttfb_p95_ms is None

    def test_integer_vitals_are_accepted(self):
        r = score_website({"aggregates": {"mobile": {"p95": {"ttfb_ms": 1500}}}})
        assert r.penalties.ttfb == 20


def test_stacked_deductions_can_reach_high_without_hard_stop():
    # 100 - 10 (email<90) - 20 (auth) - 5 (web<90) - 10 (lcp) - 10 (variable)
    r = score_campaign_risk(_email(85, auth_critical=True), _web(85, stability="variable", lcp=3100))
    assert not r.hard_stop_applied
    assert r.score == 45
    assert r.level == "high"
