"""Flatten a Slack message (text, blocks, attachments) into one text blob."""

from __future__ import annotations

from typing import Any

from models import SourceMessage

NO_CONTENT = "no content available"
PARAGRAPH = "\n\n"

_RICH_TEXT_CONTAINERS = {
    "rich_text_section",
    "rich_text_list",
    "rich_text_quote",
    "rich_text_preformatted",
}


def extract_text(message: SourceMessage) -> str:
    sections = [
        (message.text or "").strip(),
        _join_nonempty(_block_text(block) for block in message.blocks),
        _join_nonempty(_attachment_text(attachment) for attachment in message.attachments),
    ]
    combined = _join_nonempty(sections)
    return combined or NO_CONTENT


def _join_nonempty(parts: Any) -> str:
    return PARAGRAPH.join(part for part in parts if part)


def _block_text(block: dict[str, Any]) -> str:
    block_type = block.get("type")
    if block_type == "section":
        text = block.get("text") or {}
        return str(text.get("text") or "").strip()
    if block_type == "rich_text":
        lines = [_rich_text_element(element) for element in block.get("elements") or []]
        return "\n".join(line for line in lines if line).strip()
    return ""


def _rich_text_element(element: dict[str, Any]) -> str:
    element_type = element.get("type")
    if element_type in _RICH_TEXT_CONTAINERS:
        children = element.get("elements") or []
        if element_type == "rich_text_list":
            # Each list item is its own rich_text_section.
            return "\n".join(filter(None, (_rich_text_element(child) for child in children)))
        return "".join(_rich_text_element(child) for child in children)
    if element_type == "text":
        return str(element.get("text") or "")
    if element_type == "link":
        return str(element.get("text") or element.get("url") or "")
    if element_type == "user":
        return f"<@{element.get('user_id', '')}>"
    if element_type == "emoji":
        return f":{element.get('name', '')}:"
    return ""


def _attachment_text(attachment: dict[str, Any]) -> str:
    parts: list[str] = []
    for key in ("pretext", "text"):
        value = str(attachment.get(key) or "").strip()
        if value:
            parts.append(value)
    for field in attachment.get("fields") or []:
        title = str(field.get("title") or "").strip()
        value = str(field.get("value") or "").strip()
        if title and value:
            parts.append(f"{title}: {value}")
        elif title or value:
            parts.append(title or value)
    return "\n".join(parts)
