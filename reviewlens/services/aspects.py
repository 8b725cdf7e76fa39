"""Keyword aspect tagging for theme prompts and deterministic theme fallbacks."""

import unicodedata
from collections import Counter
from typing import Dict, Iterable, List, Optional, Sequence

# Keywords are matched case-insensitively against the normalized review body.
ASPECT_LEXICON: Dict[str, List[str]] = {
    "pricing": [
        "price", "pricing", "expensive", "cost", "costly", "overpriced", "billing",
        "invoice", "subscription", "plan", "tier", "charged", "refund", "cheap",
    ],
    "onboarding": [
        "onboarding", "setup", "set up", "getting started", "learning curve",
        "tutorial", "documentation", "docs", "training", "first week",
    ],
    "support": [
        "support", "customer service", "help desk", "ticket", "response time",
        "no response", "agent", "account manager", "contacted",
    ],
    "performance": [
        "slow", "lag", "laggy", "loading", "load time", "speed", "performance",
        "sluggish", "takes forever", "timeout",
    ],
    "integrations": [
        "integration", "integrations", "integrate", "api", "webhook", "zapier",
        "salesforce", "slack", "sync", "export", "import",
    ],
    "reporting": [
        "report", "reports", "reporting", "dashboard", "analytics", "metrics",
        "chart", "charts", "insights",
    ],
    "usability": [
        "confusing", "intuitive", "easy to use", "hard to use", "interface", "ui",
        "ux", "navigation", "clunky", "user friendly", "cluttered",
    ],
    "reliability": [
        "crash", "crashes", "crashed", "bug", "buggy", "outage", "down", "downtime",
        "error", "errors", "broken", "data loss", "unstable", "glitch",
    ],
    "feature_gap": [
        "missing", "wish", "lacks", "lacking", "feature request", "would be nice",
        "no way to", "doesn't support", "does not support", "need a", "roadmap",
    ],
}

ASPECT_TITLES: Dict[str, str] = {
    "pricing": "Pricing clarity",
    "onboarding": "Team onboarding",
    "support": "Customer support",
    "performance": "Performance issues",
    "integrations": "Integrations",
    "reporting": "Reporting & analytics",
    "usability": "Usability",
    "reliability": "Reliability",
    "feature_gap": "Feature gaps",
}

DEFAULT_ASPECT = "usability"
SEVERITY_ORDER = ("low", "medium", "high")


def _padded(text: str) -> str:
    folded = unicodedata.normalize("NFKC", text or "").casefold()
    cleaned = "".join(ch if ch.isalnum() or ch == "'" else " " for ch in folded)
    return f" {' '.join(cleaned.split())} "


def tag_aspects(text: str) -> List[str]:
    """Aspects mentioned in ``text``, in lexicon order. Untagged text gets ``usability``."""

    haystack = _padded(text)
    found = [
        aspect
        for aspect, keywords in ASPECT_LEXICON.items()
        if any(f" {keyword} " in haystack for keyword in keywords)
    ]
    return found or [DEFAULT_ASPECT]


def top_aspects(aspects: Iterable[str], k: int = 5) -> List[str]:
    """Most frequent aspects first; ties keep first-seen order."""

    counts = Counter(aspects)
    first_seen = {aspect: index for index, aspect in enumerate(counts)}
    ranked = sorted(counts, key=lambda aspect: (-counts[aspect], first_seen[aspect]))
    return ranked[:k]


def majority_severity(severities: Sequence[str]) -> str:
    """Most common severity; a tie goes to the more severe level."""

    if not severities:
        return "medium"
    counts = Counter(s for s in severities if s in SEVERITY_ORDER)
    if not counts:
        return "medium"
    return max(SEVERITY_ORDER, key=lambda level: (counts.get(level, 0), SEVERITY_ORDER.index(level)))


def title_from_aspects(aspects: Sequence[str]) -> Optional[str]:
    if not aspects:
        return None
    head = aspects[0]
    return ASPECT_TITLES.get(head, head.replace("_", " "))
