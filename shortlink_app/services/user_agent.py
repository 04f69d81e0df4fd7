"""
User-agent classification for click analytics.

Ordered pattern tables, first match wins per category. The order matters:
"edg" has to be tried before "chrome" (Edge advertises Chrome too) and
"chrome" before "safari" for the same reason. iPhone user agents contain
"like Mac OS X" and therefore classify as macOS; that is what the table says.
"""

import re
from typing import NamedTuple, Optional


class UserAgentInfo(NamedTuple):
    device: Optional[str]
    browser: Optional[str]
    os: Optional[str]


DEVICE_PATTERNS = (
    (re.compile(r"mobile", re.IGNORECASE), "Mobile"),
    (re.compile(r"tablet|ipad", re.IGNORECASE), "Tablet"),
)

BROWSER_PATTERNS = (
    (re.compile(r"edg", re.IGNORECASE), "Edge"),
    (re.compile(r"chrome", re.IGNORECASE), "Chrome"),
    (re.compile(r"firefox", re.IGNORECASE), "Firefox"),
    (re.compile(r"safari", re.IGNORECASE), "Safari"),
)

OS_PATTERNS = (
    (re.compile(r"windows", re.IGNORECASE), "Windows"),
    (re.compile(r"mac", re.IGNORECASE), "macOS"),
    (re.compile(r"linux", re.IGNORECASE), "Linux"),
    (re.compile(r"android", re.IGNORECASE), "Android"),
    (re.compile(r"ios|iphone|ipad", re.IGNORECASE), "iOS"),
)


def _first_match(user_agent: str, patterns, default: str) -> str:
    for pattern, value in patterns:
        if pattern.search(user_agent):
            return value
    return default


def classify_user_agent(user_agent: Optional[str]) -> UserAgentInfo:
    """
    Classify a raw User-Agent header into (device, browser, os).

    Pure function. A missing or empty header gives all-None so analytics can
    tell "no header" apart from "unrecognised".
    """
    if not user_agent:
        return UserAgentInfo(device=None, browser=None, os=None)

    return UserAgentInfo(
        device=_first_match(user_agent, DEVICE_PATTERNS, "Desktop"),
        browser=_first_match(user_agent, BROWSER_PATTERNS, "Unknown"),
        os=_first_match(user_agent, OS_PATTERNS, "Unknown"),
    )
