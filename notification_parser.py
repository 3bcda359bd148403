"""
Parser for HR onboarding notifications posted to Slack.

The upstream HR system emits a fixed set of ``Label: value`` lines with no
machine-readable schema, so each attribute gets one rigid pattern. A label
may follow an emoji, a bullet or punctuation on its line, but not a word:
``Preferred Name:`` never counts as ``Name:``. The first match per attribute
wins and line order does not matter.
"""

import logging
import re
from typing import Dict, List, Match, Optional, Pattern, Tuple

logger = logging.getLogger(__name__)

ATTRIBUTE_LABELS: List[Tuple[str, List[str]]] = [
    ("name", ["New Hire", "Employee Name", "Full Name", "Name"]),
    ("preferred_name", ["Preferred Name", "Preferred First Name"]),
    ("start_date", ["Start Date", "Employment Start Date"]),
    ("title", ["Job Title", "Title", "Position"]),
    ("department", ["Department"]),
    ("manager", ["Manager", "Reports To"]),
    ("employment_type", ["Employment Type", "Employee Type"]),
    ("work_location", ["Work Location", "Location"]),
    ("email", ["Work Email", "Email"]),
]

ATTRIBUTE_KEYS: List[str] = [key for key, _labels in ATTRIBUTE_LABELS]

NOTIFICATION_MARKERS: List[str] = ["new hire:", "start date:"]

# Slack bold/italic/strike wrappers around a label.
_LABEL_PREFIX = r"(?<!\w)[*_~]*"
_LABEL_SUFFIX = r"[*_~]*[ \t]*:[*_~]*[ \t]*"
# A label directly after another word on its line is part of a longer label.
_WORD_BEFORE_LABEL = re.compile(r"\w[ \t*_~]*$")
SLACK_LINK_PATTERN = re.compile(r"<(?:mailto:)?([^|>]+)\|([^>]+)>")
SLACK_BARE_LINK_PATTERN = re.compile(r"<(?:mailto:)?([^|>]+)>")


def _compile(labels: List[str]) -> Pattern[str]:
    alternatives = "|".join(re.escape(label) for label in labels)
    return re.compile(
        _LABEL_PREFIX + r"(?:" + alternatives + r")" + _LABEL_SUFFIX + r"(\S[^\n]*?)[ \t*_~]*$",
        re.IGNORECASE | re.MULTILINE,
    )


ATTRIBUTE_PATTERNS: Dict[str, Pattern[str]] = {
    key: _compile(labels) for key, labels in ATTRIBUTE_LABELS
}


def parse_notification(text: str) -> Dict[str, str]:
    """Extract onboarding attributes from ``Label: value`` lines.

    Only attributes whose pattern matched are present in the result.
    """
    attributes: Dict[str, str] = {}
    if not text:
        return attributes

    for key in ATTRIBUTE_KEYS:
        match = _first_label_match(ATTRIBUTE_PATTERNS[key], text)
        if not match:
            continue
        value = _clean_value(match.group(1))
        if value:
            attributes[key] = value

    logger.debug("notification_parsed", extra={"attributes": sorted(attributes)})
    return attributes


def looks_like_notification(text: str) -> bool:
    lowered = (text or "").lower()
    return any(marker in lowered for marker in NOTIFICATION_MARKERS)


def _first_label_match(pattern: Pattern[str], text: str) -> Optional[Match[str]]:
    for match in pattern.finditer(text):
        line_start = text.rfind("\n", 0, match.start()) + 1
        if not _WORD_BEFORE_LABEL.search(text[line_start:match.start()]):
            return match
    return None


def _clean_value(raw: str) -> str:
    value = SLACK_LINK_PATTERN.sub(lambda match: match.group(2), raw)
    value = SLACK_BARE_LINK_PATTERN.sub(lambda match: match.group(1), value)
    return value.strip()
