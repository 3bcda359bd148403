"""Live discovery of the fields a Jira destination accepts on create.

Nothing here is cached: every call re-fetches so the schema reflects the
destination project as it is right now.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from jira_client import JiraClient

logger = logging.getLogger(__name__)


class SchemaDiscoveryError(Exception):
    """Jira could not be queried for create metadata."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class SchemaNotFoundError(SchemaDiscoveryError):
    """No project, service desk, issue type or request type matched."""


@dataclass(frozen=True)
class DestinationField:
    field_id: str
    name: str
    value_type: str = "string"
    required: bool = False


@dataclass
class ServiceDeskSchema:
    service_desk_id: str
    request_type_id: str
    request_type_name: str
    fields: list[DestinationField] = field(default_factory=list)


def discover_generic_fields(
    client: JiraClient, project_key: str, issue_type_name: str
) -> list[DestinationField]:
    """Return the create-screen fields for ``project_key`` / ``issue_type_name``."""
    issue_types = _values(client.get_create_issue_types(project_key), stage="issue_types")
    wanted = issue_type_name.strip().lower()
    issue_type = next(
        (item for item in issue_types if str(item.get("name", "")).lower() == wanted),
        None,
    )
    if issue_type is None:
        raise SchemaNotFoundError(
            f"Issue type '{issue_type_name}' not found in project {project_key}"
        )

    raw_fields = _values(
        client.get_create_fields(project_key, str(issue_type.get("id"))), stage="create_fields"
    )
    fields = [_generic_field(item) for item in raw_fields if item.get("fieldId") or item.get("key")]
    logger.info(
        "generic_schema_discovered",
        extra={"project": project_key, "issue_type": issue_type_name, "fields": len(fields)},
    )
    return fields


def discover_service_desk_fields(
    client: JiraClient, project_key: str, request_type_name: str
) -> ServiceDeskSchema:
    """Resolve the service desk and request type, then list the request fields.

    ``request_type_name`` is matched as a case-insensitive substring of the
    request type's display name; the first match in server order wins.
    """
    desks = _values(client.list_service_desks(), stage="service_desks")
    desk = next((item for item in desks if item.get("projectKey") == project_key), None)
    if desk is None:
        raise SchemaNotFoundError(f"No service desk found for project {project_key}")
    service_desk_id = str(desk.get("id"))

    request_types = _values(client.list_request_types(service_desk_id), stage="request_types")
    wanted = request_type_name.strip().lower()
    request_type = next(
        (item for item in request_types if wanted in str(item.get("name", "")).lower()),
        None,
    )
    if request_type is None:
        raise SchemaNotFoundError(
            f"No request type matching '{request_type_name}' in service desk {service_desk_id}"
        )
    request_type_id = str(request_type.get("id"))

    raw_fields = _values(
        client.get_request_type_fields(service_desk_id, request_type_id),
        stage="request_type_fields",
    )
    schema = ServiceDeskSchema(
        service_desk_id=service_desk_id,
        request_type_id=request_type_id,
        request_type_name=str(request_type.get("name", "")),
        fields=[_service_desk_field(item) for item in raw_fields if item.get("fieldId")],
    )
    logger.info(
        "service_desk_schema_discovered",
        extra={
            "project": project_key,
            "service_desk_id": service_desk_id,
            "request_type": schema.request_type_name,
            "fields": len(schema.fields),
        },
    )
    return schema


def _values(result: dict[str, Any], *, stage: str) -> list[dict[str, Any]]:
    if "error" in result:
        status = result.get("status")
        if status == 404:
            raise SchemaNotFoundError(f"{stage}: {result['error']}", status=status)
        raise SchemaDiscoveryError(f"{stage}: {result['error']}", status=status)
    return list(result.get("values", []))


def _generic_field(item: dict[str, Any]) -> DestinationField:
    schema = item.get("schema") or {}
    return DestinationField(
        field_id=str(item.get("fieldId") or item.get("key")),
        name=str(item.get("name", "")),
        value_type=str(schema.get("type") or "string"),
        required=bool(item.get("required", False)),
    )


def _service_desk_field(item: dict[str, Any]) -> DestinationField:
    schema = item.get("jiraSchema") or {}
    return DestinationField(
        field_id=str(item["fieldId"]),
        name=str(item.get("name", "")),
        value_type=str(schema.get("type") or "string"),
        required=bool(item.get("required", False)),
    )
