"""Helpers for the inbound verification mail.

A customer sends a test message to ``verify+<scan_id>@<inbound domain>``; the
receiving side hands us the recipient and the ``Authentication-Results``
header, which we turn into an ``email_scan`` patch for that scan.
"""
from __future__ import annotations

import re
from typing import Any

# Results that mean the receiver evaluated the mechanism against a published record.
_EVALUATED = {"pass", "fail", "softfail", "neutral"}

_RECIPIENT_HEADERS = ("delivered-to", "to", "x-original-to", "envelope-to", "received")


def _pick(header: str, key: str) -> str | None:
    m = re.search(rf"\b{key}=([a-zA-Z]+)", header, flags=re.IGNORECASE)
    return m.group(1).lower() if m else None


def parse_authentication_results(header: str | None) -> dict[str, dict[str, str]]:
    """Extract dkim/spf/dmarc results from an ``Authentication-Results`` header.

    A mechanism appears in the result only when the header carries its
    ``<mech>=`` key; the result is kept verbatim (lowercased).
    """
    h = str(header or "")
    if not h:
        return {}

    parsed: dict[str, dict[str, str]] = {}

    result = _pick(h, "dkim")
    if result:
        dkim = {"result": result}
        d = re.search(r"header\.d=([^\s;]+)", h, flags=re.IGNORECASE)
        if d:
            dkim["domain"] = d.group(1)
        s = re.search(r"header\.s=([^\s;]+)", h, flags=re.IGNORECASE)
        if s:
            dkim["selector"] = s.group(1)
        parsed["dkim"] = dkim

    result = _pick(h, "spf")
    if result:
        spf = {"result": result}
        ip = re.search(r"client-ip=([0-9a-fA-F.:]+)", h, flags=re.IGNORECASE)
        if ip:
            spf["ip"] = ip.group(1)
        parsed["spf"] = spf

    result = _pick(h, "dmarc")
    if result:
        dmarc = {"result": result}
        m = re.search(r"\bpolicy\.p=(none|quarantine|reject)\b", h, flags=re.IGNORECASE) or re.search(
            r"\bp=([A-Z0-9_-]+)", h, flags=re.IGNORECASE
        )
        if m:
            dmarc["policy"] = m.group(1).lower()
        parsed["dmarc"] = dmarc

    return parsed


def extract_scan_id_from_recipient(recipient: str, inbound_domain: str) -> str | None:
    r = (recipient or "").strip().lower()
    domain = (inbound_domain or "").strip().lower()

    local, sep, host = r.rpartition("@")
    if not sep or host != domain:
        return None
    if not local.startswith("verify+"):
        return None
    return local[len("verify+"):] or None


def extract_scan_token_from_headers(headers: dict[str, str], inbound_domain: str) -> str | None:
    lowered = {k.lower(): v for k, v in (headers or {}).items()}
    joined = "\n".join(lowered[k] for k in _RECIPIENT_HEADERS if lowered.get(k)).lower()
    domain = re.escape((inbound_domain or "").strip().lower())
    if not domain:
        return None
    m = re.search(rf"verify\+([a-z0-9._-]+)@{domain}", joined)
    return m.group(1) if m else None


def email_evidence_patch(parsed: dict[str, dict[str, str]]) -> dict[str, Any]:
    """Translate parsed authentication results into an ``email_scan`` patch.

    ``<mech>=none`` reports the mechanism as absent. Evaluated results report
    it as present; DMARC additionally carries the observed policy. Anything
    else (a missing key, ``temperror``, vendor-specific results) says nothing
    about the published record and leaves the stored evidence untouched. SPF
    ``permerror`` is kept, as it means the published record is broken.
    """
    checks: dict[str, Any] = {}

    dkim = parsed.get("dkim") or {}
    result = dkim.get("result")
    if result == "none":
        checks["dkim"] = {"present": False}
    elif result in _EVALUATED:
        entry: dict[str, Any] = {"present": True, "result": "pass" if result == "pass" else "fail"}
        if dkim.get("selector"):
            entry["selectors_checked"] = [dkim["selector"]]
        checks["dkim"] = entry

    spf = parsed.get("spf") or {}
    result = spf.get("result")
    if result == "none":
        checks["spf"] = {"present": False}
    elif result in _EVALUATED or result == "permerror":
        checks["spf"] = {"present": True, "result": result}

    dmarc = parsed.get("dmarc") or {}
    result = dmarc.get("result")
    if result == "none":
        checks["dmarc"] = {"present": False}
    elif result in _EVALUATED:
        entry = {"present": True}
        if dmarc.get("policy") in ("none", "quarantine", "reject"):
            entry["policy"] = dmarc["policy"]
        checks["dmarc"] = entry

    return {"checks": checks} if checks else {}
