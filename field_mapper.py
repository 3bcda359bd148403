"""Map parsed onboarding attributes onto discovered Jira fields."""

import logging
import re
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from notification_parser import ATTRIBUTE_KEYS
from schema_discovery import DestinationField

logger = logging.getLogger(__name__)

# Candidate display-name substrings per attribute, most specific first.
FIELD_ALIASES: Dict[str, List[str]] = {
    "name": ["Employee Name", "New Hire Name", "Full Name", "Name"],
    "preferred_name": ["Preferred Name", "Preferred First Name", "Nickname"],
    "start_date": ["Start Date", "Start date", "Employment Start Date"],
    "title": ["Job Title", "Title", "Position", "Role"],
    "department": ["Department", "Team"],
    "manager": ["Manager", "Reports To", "Supervisor"],
    "employment_type": ["Employment Type", "Employee Type", "Worker Type"],
    "work_location": ["Work Location", "Location", "Office"],
    "email": ["Work Email", "Email"],
}

# Fields composed by the submitter itself.
RESERVED_FIELD_IDS = {"project", "issuetype", "summary", "description"}

ORDINAL_SUFFIX = re.compile(r"(\d)(?:st|nd|rd|th)\b", re.IGNORECASE)

DATE_FORMATS: List[str] = [
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%m-%d-%Y",
    "%m-%d-%y",
    "%m.%d.%Y",
    "%B %d, %Y",
    "%B %d %Y",
    "%b %d, %Y",
    "%b %d %Y",
    "%b. %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%A, %B %d, %Y",
    "%a, %b %d, %Y",
    "%Y/%m/%d",
]


def map_fields(
    attributes: Dict[str, str], schema: Iterable[DestinationField]
) -> Dict[str, Any]:
    """Return ``{field_id: value}`` for every attribute that found a target field.

    Schema order decides ties: the first field whose name contains any of an
    attribute's candidates is used. Attributes with no target, or whose
    target is a user picker, are dropped.
    """
    fields = [field for field in schema if field.field_id not in RESERVED_FIELD_IDS]
    mapped: Dict[str, Any] = {}

    for key in _ordered_keys(attributes):
        value = (attributes.get(key) or "").strip()
        if not value:
            continue

        target = _find_target(_candidates(key), fields)
        if target is None:
            logger.debug("attribute_unmapped", extra={"attribute": key})
            continue
        if target.field_id in mapped:
            logger.debug(
                "attribute_target_taken",
                extra={"attribute": key, "field_id": target.field_id},
            )
            continue
        if target.value_type == "user":
            logger.debug(
                "attribute_skipped_user_field",
                extra={"attribute": key, "field_id": target.field_id},
            )
            continue

        if target.value_type == "date":
            mapped[target.field_id] = format_date(value)
        else:
            mapped[target.field_id] = value

    logger.info("fields_mapped", extra={"field_ids": sorted(mapped)})
    return mapped


def format_date(value: str) -> str:
    """Normalize a human date to ``YYYY-MM-DD``; return ``value`` unchanged if unparseable."""
    parsed = _parse_date(value)
    if parsed is None:
        return value
    return parsed.strftime("%Y-%m-%d")


def _parse_date(value: str) -> Optional[datetime]:
    cleaned = ORDINAL_SUFFIX.sub(r"\1", value)
    cleaned = " ".join(cleaned.replace(",", ", ").split())
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt)
        except ValueError:
            continue
    return None


def _ordered_keys(attributes: Dict[str, str]) -> List[str]:
    known = [key for key in ATTRIBUTE_KEYS if key in attributes]
    extra = [key for key in attributes if key not in ATTRIBUTE_KEYS]
    return known + extra


def _candidates(key: str) -> List[str]:
    return [alias.lower() for alias in FIELD_ALIASES.get(key, [key])]


def _find_target(
    candidates: List[str], fields: List[DestinationField]
) -> Optional[DestinationField]:
    for field in fields:
        name = field.name.lower()
        if any(candidate in name for candidate in candidates):
            return field
    return None
