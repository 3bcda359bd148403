"""Create the Jira ticket for a reacted Slack message.

Two paths are tried in order: the Jira Service Management request API (when
configured) and the generic issue API. Only a failure of the generic path is
raised to the caller.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Optional

from field_mapper import map_fields
from jira_client import JiraClient
from models import MessageData, TicketResult
from notification_parser import looks_like_notification, parse_notification
from schema_discovery import (
    SchemaDiscoveryError,
    discover_generic_fields,
    discover_service_desk_fields,
)
from settings import JiraSettings

logger = logging.getLogger(__name__)

DESCRIPTION_PREAMBLE = "Onboarding request from Slack:"


class TicketCreationError(Exception):
    def __init__(self, stage: str, http_status: Optional[int], detail: str) -> None:
        super().__init__(detail)
        self.stage = stage
        self.http_status = http_status
        self.detail = detail


class TicketSubmitter:
    def __init__(
        self,
        client: JiraClient,
        settings: JiraSettings,
        *,
        today: Callable[[], date] = date.today,
    ) -> None:
        self.client = client
        self.settings = settings
        self._today = today

    def submit(self, message_data: MessageData) -> TicketResult:
        attributes = (
            parse_notification(message_data.text)
            if looks_like_notification(message_data.text)
            else {}
        )
        summary = build_summary(attributes, self._today())
        description = build_description_text(message_data)
        logger.info(
            "ticket_submitting",
            extra={
                "author": message_data.user_id,
                "message_time": message_data.timestamp,
                "attributes": sorted(attributes),
            },
        )

        if self.settings.use_service_desk:
            result = self._submit_service_desk(attributes, summary, description)
            if result is not None:
                return result

        return self._submit_generic(attributes, summary, description)

    def _submit_service_desk(
        self, attributes: dict[str, str], summary: str, description: str
    ) -> Optional[TicketResult]:
        try:
            schema = discover_service_desk_fields(
                self.client, self.settings.project_key, self.settings.request_type
            )
        except SchemaDiscoveryError as exc:
            logger.warning(
                "service_desk_fallback",
                extra={"reason": "schema_discovery", "error": str(exc)},
            )
            return None

        field_values: dict[str, Any] = {}
        if self.settings.schema_mapping and attributes:
            field_values.update(map_fields(attributes, schema.fields))
        field_values["summary"] = summary
        field_values["description"] = description

        response = self.client.create_customer_request(
            schema.service_desk_id, schema.request_type_id, field_values
        )
        key = response.get("issueKey")
        if "error" in response or not key:
            logger.warning(
                "service_desk_fallback",
                extra={
                    "reason": "create_request",
                    "status": response.get("status"),
                    "error": response.get("error", "missing issueKey"),
                },
            )
            return None

        logger.info("ticket_created", extra={"key": key, "path": "service_desk"})
        return TicketResult(
            key=str(key), id=_optional_str(response.get("issueId")), path="service_desk"
        )

    def _submit_generic(
        self, attributes: dict[str, str], summary: str, description: str
    ) -> TicketResult:
        fields: dict[str, Any] = {
            "project": {"key": self.settings.project_key},
            "summary": summary,
            "description": self._format_description(description),
            "issuetype": {"name": self.settings.issue_type},
        }
        if self.settings.schema_mapping and attributes:
            try:
                schema = discover_generic_fields(
                    self.client, self.settings.project_key, self.settings.issue_type
                )
            except SchemaDiscoveryError as exc:
                logger.warning(
                    "generic_schema_unavailable",
                    extra={"error": str(exc), "status": exc.status},
                )
            else:
                fields.update(map_fields(attributes, schema))

        # Operator-supplied static fields win over everything mapped above.
        fields.update(self.settings.custom_fields)

        response = self.client.create_issue(fields)
        key = response.get("key")
        if "error" in response or not key:
            detail = str(response.get("error") or "Jira did not return an issue key.")
            raise TicketCreationError("create_issue", response.get("status"), detail)

        logger.info("ticket_created", extra={"key": key, "path": "generic"})
        return TicketResult(key=str(key), id=_optional_str(response.get("id")), path="generic")

    def _format_description(self, text: str) -> Any:
        if self.settings.api_version == "2":
            return text
        return to_adf(text)


def build_summary(attributes: dict[str, str], today: date) -> str:
    name = attributes.get("name")
    if name:
        return f"Onboarding: {name}"
    return f"Onboarding Request - {today.strftime('%m/%d/%Y')}"


def build_description_text(message_data: MessageData) -> str:
    return "\n\n".join(
        [
            DESCRIPTION_PREAMBLE,
            message_data.text,
            f"Requested by: {message_data.user_name}",
            f"Slack Message Link: {message_data.message_link}",
        ]
    )


def to_adf(text: str) -> dict[str, Any]:
    """Render plain text as an Atlassian Document Format doc.

    Blank lines start a new paragraph; single newlines become hard breaks.
    """
    paragraphs: list[dict[str, Any]] = []
    for block in text.split("\n\n"):
        if not block.strip():
            continue
        content: list[dict[str, Any]] = []
        for index, line in enumerate(block.split("\n")):
            if index:
                content.append({"type": "hardBreak"})
            if line:
                content.append({"type": "text", "text": line})
        paragraphs.append({"type": "paragraph", "content": content})
    return {"type": "doc", "version": 1, "content": paragraphs}


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)
