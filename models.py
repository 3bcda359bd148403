"""Plain data containers passed between the pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


@dataclass(frozen=True)
class ReactionEvent:
    channel_id: str
    message_ts: str
    user_id: str
    reaction: str

    @classmethod
    def from_slack(cls, event: dict[str, Any]) -> ReactionEvent:
        item = event.get("item") or {}
        return cls(
            channel_id=str(item.get("channel", "")),
            message_ts=str(item.get("ts", "")),
            user_id=str(event.get("user", "")),
            reaction=str(event.get("reaction", "")),
        )


@dataclass
class SourceMessage:
    author_id: Optional[str]
    text: str = ""
    blocks: list[dict[str, Any]] = field(default_factory=list)
    attachments: list[dict[str, Any]] = field(default_factory=list)
    ts: Optional[str] = None

    @classmethod
    def from_slack(cls, message: dict[str, Any]) -> SourceMessage:
        return cls(
            author_id=message.get("user"),
            text=message.get("text") or "",
            blocks=list(message.get("blocks") or []),
            attachments=list(message.get("attachments") or []),
            ts=message.get("ts"),
        )


@dataclass
class MessageData:
    text: str
    user_name: str
    message_link: str
    user_id: Optional[str] = None
    timestamp: Optional[str] = None


@dataclass(frozen=True)
class TicketResult:
    key: str
    id: Optional[str] = None
    path: str = "generic"


def slack_ts_to_iso(ts: str) -> Optional[str]:
    """Render a Slack ``ts`` ("1700000000.123456") as an ISO-8601 UTC string."""
    try:
        seconds = float(ts)
    except (TypeError, ValueError):
        return None
    return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat()
