"""Tests for inbound verification parsing."""

import pytest

from campaign_readiness.auth_results import (
    email_evidence_patch,
    extract_scan_id_from_recipient,
    extract_scan_token_from_headers,
    parse_authentication_results,
)

GMAIL_HEADER = (
    "mx.google.com; dkim=pass header.i=@example.com header.s=s1 header.d=example.com; "
    "spf=softfail (google.com: domain of transitioning news@example.com) "
    "smtp.mailfrom=news@example.com client-ip=203.0.113.5; "
    "dmarc=pass (p=REJECT sp=REJECT dis=NONE) header.from=example.com"
)


class TestParseAuthenticationResults:
    def test_full_header(self):
        parsed = parse_authentication_results(GMAIL_HEADER)
        assert parsed["dkim"] == {"result": "pass", "domain": "example.com", "selector": "s1"}
        assert parsed["spf"] == {"result": "softfail", "ip": "203.0.113.5"}
        assert parsed["dmarc"] == {"result": "pass", "policy": "reject"}

    def test_policy_p_form(self):
        parsed = parse_authentication_results("dmarc=fail action=none header.from=example.com policy.p=quarantine")
        assert parsed["dmarc"] == {"result": "fail", "policy": "quarantine"}

    def test_results_are_kept_verbatim(self):
        parsed = parse_authentication_results("spf=TempError; dkim=permerror")
        assert parsed["spf"] == {"result": "temperror"}
        assert parsed["dkim"] == {"result": "permerror"}

    def test_missing_keys_are_omitted(self):
        parsed = parse_authentication_results("mx.example.net; spf=pass smtp.mailfrom=example.com")
        assert set(parsed) == {"spf"}

    @pytest.mark.parametrize("header", [None, ""])
    def test_empty(self, header):
        assert parse_authentication_results(header) == {}


class TestRecipient:
    def test_extracts_scan_id(self):
        assert extract_scan_id_from_recipient("Verify+Abc-123@Inbound.Example.com", "inbound.example.com") == "abc-123"

    @pytest.mark.parametrize(
        "recipient",
        [
            "verify+abc@other.example.com",
            "verify+@inbound.example.com",
            "hello@inbound.example.com",
            "not-an-address",
            "",
        ],
    )
    def test_rejects(self, recipient):
        assert extract_scan_id_from_recipient(recipient, "inbound.example.com") is None

    def test_headers(self):
        headers = {"To": "Shop <verify+scan_9@inbound.example.com>", "Subject": "hi"}
        assert extract_scan_token_from_headers(headers, "inbound.example.com") == "scan_9"

    def test_headers_checks_delivered_to_first(self):
        headers = {
            "Delivered-To": "verify+first@inbound.example.com",
            "To": "verify+second@inbound.example.com",
        }
        assert extract_scan_token_from_headers(headers, "inbound.example.com") == "first"

    def test_headers_without_token(self):
        assert extract_scan_token_from_headers({"To": "someone@example.com"}, "inbound.example.com") is None
        assert extract_scan_token_from_headers({"To": "verify+x@inbound.example.com"}, "") is None


class TestEvidencePatch:
    def test_from_full_header(self):
        patch = email_evidence_patch(parse_authentication_results(GMAIL_HEADER))
        assert patch == {
            "checks": {
                "dkim": {"present": True, "result": "pass", "selectors_checked": ["s1"]},
                "spf": {"present": True, "result": "softfail"},
                "dmarc": {"present": True, "policy": "reject"},
            }
        }

    def test_unevaluated_mechanisms_are_absent(self):
        patch = email_evidence_patch(parse_authentication_results("spf=none; dkim=none; dmarc=none"))
        assert patch["checks"]["spf"] == {"present": False}
        assert patch["checks"]["dkim"] == {"present": False}
        assert patch["checks"]["dmarc"] == {"present": False}

    def test_dkim_failure(self):
        patch = email_evidence_patch(parse_authentication_results("dkim=fail header.d=example.com"))
        assert patch["checks"]["dkim"] == {"present": True, "result": "fail"}

    def test_empty(self):
        assert email_evidence_patch({}) == {}

    def test_missing_mechanism_leaves_evidence_alone(self):
        patch = email_evidence_patch(parse_authentication_results("dkim=pass header.s=s1"))
        assert set(patch["checks"]) == {"dkim"}

    @pytest.mark.parametrize("result", ["temperror", "permerror", "bestguesspass"])
    def test_inconclusive_dmarc_is_skipped(self, result):
        patch = email_evidence_patch(parse_authentication_results(f"spf=pass; dmarc={result}"))
        assert "dmarc" not in patch["checks"]

    @pytest.mark.parametrize("result", ["temperror", "permerror"])
    def test_inconclusive_dkim_is_skipped(self, result):
        assert email_evidence_patch(parse_authentication_results(f"dkim={result}")) == {}

    def test_spf_temperror_is_skipped(self):
        assert email_evidence_patch(parse_authentication_results("spf=temperror")) == {}

    def test_spf_permerror_means_broken_record(self):
        patch = email_evidence_patch(parse_authentication_results("spf=permerror"))
        assert patch["checks"]["spf"] == {"present": True, "result": "permerror"}
