from __future__ import annotations

from .models import Action

ACTIONS: dict[str, Action] = {
    a.id: a
    for a in (
        Action(
            id="dmarc_enforce",
            title="Enforce DMARC (policy=quarantine, then reject)",
            why="Without enforcement, mailbox providers can't reliably protect your domain from spoofing, and your sending reputation stays fragile.",
            impact="high",
            effort="low",
            steps=[
                "Set DMARC policy to quarantine (keep pct=100 if possible).",
                "Monitor DMARC rua reports for 7-14 days and fix misaligned sources.",
                "Move policy to reject once the legitimate sources are stable.",
            ],
        ),
        Action(
            id="dmarc_add",
            title="Publish a DMARC record",
            why="DMARC is the control plane for email authentication. No DMARC means no policy and weak domain protection.",
            impact="high",
            effort="low",
            steps=[
                "Start with policy=none and rua reporting enabled.",
                "Confirm all legitimate sources are aligned (SPF/DKIM).",
                "Then move to quarantine/reject.",
            ],
        ),
        Action(
            id="dkim_add",
            title="Enable DKIM signing for your sending domain",
            why="DKIM is required for stable inbox placement and for DMARC alignment.",
            impact="high",
            effort="medium",
            steps=[
                "Enable DKIM in your ESP (generate selector + DNS records).",
                "Publish the DKIM DNS records and verify they resolve publicly.",
                "Send a test to multiple mailbox providers and confirm DKIM=pass.",
            ],
        ),
        Action(
            id="dkim_fix",
            title="Fix DKIM failures and alignment",
            why="DKIM failures are treated as authentication breakage and can cause spam placement or rejection under DMARC enforcement.",
            impact="high",
            effort="medium",
            steps=[
                "Verify the correct DKIM selector is published in DNS.",
                "Confirm the ESP is signing with the same selector/domain.",
                "Check for message modification in transit (forwarders, gateways).",
            ],
        ),
        Action(
            id="spf_add",
            title="Publish an SPF record for your sending domain",
            why="SPF helps mailbox providers validate your sending sources and supports DMARC alignment.",
            impact="medium",
            effort="low",
            steps=[
                "List only your legitimate sending sources (ESP, CRM, transactional).",
                "End with ~all initially if you're unsure, then move to -all when stable.",
                "Keep DNS lookups at 10 or fewer.",
            ],
        ),
        Action(
            id="spf_fix",
            title="Fix SPF failures and reduce DNS lookups",
            why="SPF fail/permerror increases spam risk. Excessive DNS lookups can invalidate SPF entirely.",
            impact="medium",
            effort="low",
            steps=[
                "Remove obsolete includes and flatten where needed.",
                "Ensure lookups stay at 10 or fewer (includes + redirects + a/mx).",
                "Validate with a known-good SPF checker after changes.",
            ],
        ),
        Action(
            id="blacklist_cleanup",
            title="Investigate blacklist listings and remediate",
            why="Blacklist hits are a direct deliverability blocker. Fixing this comes before sending any campaign.",
            impact="high",
            effort="high",
            steps=[
                "Identify which IP/domain is listed and why (abuse, open relay, poor list hygiene).",
                "Fix the root cause (authentication, list hygiene, consent, complaint rates).",
                "Request delisting only after remediation and monitoring.",
            ],
        ),
        Action(
            id="reduce_lcp",
            title="Improve mobile LCP (largest contentful paint)",
            why="Slow mobile LCP reduces conversion and amplifies the impact of a campaign spike.",
            impact="high",
            effort="medium",
            steps=[
                "Optimize the hero image (size, format, preload) and reduce layout shifts.",
                "Remove or defer non-critical JS and third-party tags on landing pages.",
                "Use server-side caching/CDN for above-the-fold resources.",
            ],
        ),
        Action(
            id="reduce_ttfb",
            title="Reduce TTFB (server response time)",
            why="High TTFB means your origin can't respond fast enough, and campaign traffic will amplify the issue.",
            impact="high",
            effort="medium",
            steps=[
                "Enable full-page caching where possible and verify consistent cache hits.",
                "Reduce redirects and expensive origin work (DB queries, heavy middleware).",
                "Use a CDN and keep the origin close to users and properly sized.",
            ],
        ),
        Action(
            id="stabilize_send_window",
            title="Stabilize the website during the send window",
            why="If the site becomes unstable during send time, you pay for traffic you can't convert.",
            impact="high",
            effort="medium",
            steps=[
                "Run a load test for expected peak traffic around send time.",
                "Scale up critical services (origin, DB, cache) or add queueing/backpressure.",
                "Temporarily reduce heavy scripts and non-essential integrations.",
            ],
        ),
        Action(
            id="reduce_render_blocking",
            title="Remove render-blocking scripts on landing pages",
            why="Render-blocking JS delays first meaningful paint and increases bounce, especially on mobile.",
            impact="medium",
            effort="medium",
            steps=[
                "Defer non-critical scripts; load critical CSS first.",
                "Audit tag manager/consent tooling for blocking behavior.",
                "Reduce third-party tags to the minimum required.",
            ],
        ),
        Action(
            id="cache_consistency",
            title="Fix cache inconsistency",
            why="Inconsistent cache hits create unpredictable performance, especially under campaign load.",
            impact="medium",
            effort="low",
            steps=[
                "Confirm CDN/page cache is enabled for landing pages.",
                "Fix cache keys (cookies/headers) that prevent caching.",
                "Verify hit ratio across geos and during peak.",
            ],
        ),
    )
}
