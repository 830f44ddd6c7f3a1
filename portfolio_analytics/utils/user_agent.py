"""
User-Agent classification

Pattern-based device and browser detection for demographic tallies.
"""

import re

TABLET_PATTERN = re.compile(r"iPad|Tablet|PlayBook|Silk|Kindle", re.IGNORECASE)
MOBILE_PATTERN = re.compile(r"Mobile|iPhone|iPod|Android|Windows Phone", re.IGNORECASE)
ANDROID_PATTERN = re.compile(r"Android", re.IGNORECASE)

# Order matters: Edge and Opera embed "Chrome", Chrome embeds "Safari"
BROWSER_PATTERNS: list[tuple[str, re.Pattern]] = [
    ("Edge", re.compile(r"Edg(e|A|iOS)?/")),
    ("Opera", re.compile(r"OPR/|Opera")),
    ("Firefox", re.compile(r"Firefox/|FxiOS/")),
    ("Chrome", re.compile(r"Chrome/|CriOS/")),
    ("Safari", re.compile(r"Safari/")),
]


def classify_device(user_agent: str) -> str:
    """Return ``tablet``, ``mobile`` or ``desktop``."""
    if TABLET_PATTERN.search(user_agent):
        return "tablet"
    # Android tablets omit the "Mobile" token
    if ANDROID_PATTERN.search(user_agent) and "Mobile" not in user_agent:
        return "tablet"
    if MOBILE_PATTERN.search(user_agent):
        return "mobile"
    return "desktop"


def classify_browser(user_agent: str) -> str:
    """Return the browser family name, or ``unknown``."""
    for name, pattern in BROWSER_PATTERNS:
        if pattern.search(user_agent):
            return name
    return "unknown"
