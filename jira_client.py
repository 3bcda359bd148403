# jira_client.py
"""Jira platform and Jira Service Management REST helpers."""

from __future__ import annotations

import logging
import time
from typing import Any, Optional, cast

import requests  # type: ignore[import-untyped]

from settings import JiraSettings

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT_SECONDS = 10
PAGE_SIZE = 50


class JiraClient:
    def __init__(
        self,
        settings: JiraSettings,
        *,
        max_rate_limit_retries: int = 3,
        backoff: float = 2.0,
    ) -> None:
        self.base_url = settings.base_url
        self.api_version = settings.api_version
        self.auth = (settings.email, settings.api_token)
        self.headers: dict[str, str] = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        self.max_rate_limit_retries = max_rate_limit_retries
        self.backoff = backoff

    @property
    def api_root(self) -> str:
        return f"{self.base_url}/rest/api/{self.api_version}"

    @property
    def service_desk_root(self) -> str:
        return f"{self.base_url}/rest/servicedeskapi"

    # Generic issue API

    def create_issue(self, fields: dict[str, Any]) -> dict[str, Any]:
        payload = {"fields": _sanitize_fields(fields)}
        response = self._request("POST", f"{self.api_root}/issue", json=payload)
        if isinstance(response, dict):
            return response

        if response.status_code == 201:
            logger.info("jira_issue_created", extra={"status": response.status_code})
            return cast(dict[str, Any], response.json())

        return self._handle_error(response)

    def get_create_issue_types(self, project_key: str) -> dict[str, Any]:
        url = f"{self.api_root}/issue/createmeta/{project_key}/issuetypes"
        return self._get_paginated(url, items_key="issueTypes")

    def get_create_fields(self, project_key: str, issue_type_id: str) -> dict[str, Any]:
        url = f"{self.api_root}/issue/createmeta/{project_key}/issuetypes/{issue_type_id}"
        return self._get_paginated(url, items_key="fields")

    # Service desk API

    def list_service_desks(self) -> dict[str, Any]:
        return self._get_paginated(f"{self.service_desk_root}/servicedesk")

    def list_request_types(self, service_desk_id: str) -> dict[str, Any]:
        url = f"{self.service_desk_root}/servicedesk/{service_desk_id}/requesttype"
        return self._get_paginated(url)

    def get_request_type_fields(self, service_desk_id: str, request_type_id: str) -> dict[str, Any]:
        url = (
            f"{self.service_desk_root}/servicedesk/{service_desk_id}"
            f"/requesttype/{request_type_id}/field"
        )
        response = self._request("GET", url)
        if isinstance(response, dict):
            return response
        if response.status_code != 200:
            return self._handle_error(response)
        payload_obj = self._json_dict(response)
        if "error" in payload_obj:
            return payload_obj
        fields_raw = payload_obj.get("requestTypeFields", [])
        return {"values": [item for item in fields_raw if isinstance(item, dict)]}

    def create_customer_request(
        self,
        service_desk_id: str,
        request_type_id: str,
        field_values: dict[str, Any],
    ) -> dict[str, Any]:
        payload = {
            "serviceDeskId": service_desk_id,
            "requestTypeId": request_type_id,
            "requestFieldValues": _sanitize_fields(field_values),
        }
        response = self._request("POST", f"{self.service_desk_root}/request", json=payload)
        if isinstance(response, dict):
            return response

        if response.status_code in (200, 201):
            logger.info("jira_request_created", extra={"status": response.status_code})
            return self._json_dict(response)

        return self._handle_error(response)

    # Transport

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response | dict[str, Any]:
        """Send a request, waiting out HTTP 429 responses.

        Returns the response, or an error dict when the request itself failed
        or Jira kept rate limiting us.
        """
        delay = self.backoff
        for attempt in range(1, self.max_rate_limit_retries + 1):
            try:
                response = requests.request(
                    method,
                    url,
                    headers=self.headers,
                    auth=self.auth,
                    timeout=REQUEST_TIMEOUT_SECONDS,
                    **kwargs,
                )
            except requests.RequestException as exc:
                logger.error(
                    "jira_request_failed",
                    extra={"method": method, "url": url, "error": str(exc)},
                )
                return {"error": f"Could not reach Jira: {exc}", "status": None}

            if response.status_code != 429:
                return response

            wait = _retry_after(response, default=delay)
            logger.warning(
                "jira_rate_limited",
                extra={"attempt": attempt, "retry_in_seconds": wait, "url": url},
            )
            if attempt < self.max_rate_limit_retries:
                time.sleep(wait)
                delay *= 2

        return {"error": "Jira rate limit exceeded, giving up.", "status": 429}

    def _get_paginated(self, url: str, items_key: str = "values") -> dict[str, Any]:
        items: list[dict[str, Any]] = []
        start = 0
        while True:
            response = self._request("GET", url, params={"startAt": start, "maxResults": PAGE_SIZE})
            if isinstance(response, dict):
                return response
            if response.status_code != 200:
                return self._handle_error(response)

            payload_obj = self._json_dict(response)
            if "error" in payload_obj:
                return payload_obj

            # Older create-meta responses use "values" instead of the typed key.
            page = payload_obj.get(items_key, payload_obj.get("values", []))
            if not isinstance(page, list):
                page = []
            items.extend(item for item in page if isinstance(item, dict))

            if not page or _is_last_page(payload_obj, start, len(page)):
                return {"values": items}
            start += len(page)

    def _json_dict(self, response: requests.Response) -> dict[str, Any]:
        try:
            payload_obj = response.json()
        except ValueError:
            logger.error("jira_invalid_json", extra={"status": response.status_code})
            return {"error": "Invalid response from Jira.", "status": response.status_code}
        if not isinstance(payload_obj, dict):
            logger.error(
                "jira_unexpected_format",
                extra={"status": response.status_code, "body_type": type(payload_obj).__name__},
            )
            return {
                "error": f"Unexpected response format from Jira ({type(payload_obj).__name__}).",
                "status": response.status_code,
            }
        return payload_obj

    def _handle_error(self, response: requests.Response) -> dict[str, Any]:
        try:
            payload_obj = response.json()
        except ValueError:
            message = f"Jira error {response.status_code}: {response.text}"
            logger.error(
                "jira_error_response",
                extra={"status": response.status_code, "body": response.text},
            )
            return {"error": message, "status": response.status_code}

        if not isinstance(payload_obj, dict):
            logger.error(
                "jira_error_non_dict_response",
                extra={"status": response.status_code, "body_type": type(payload_obj).__name__},
            )
            return {
                "error": f"Unexpected response format from Jira ({type(payload_obj).__name__}).",
                "status": response.status_code,
            }

        messages: list[str] = []
        error_messages_val = payload_obj.get("errorMessages", [])
        if isinstance(error_messages_val, list):
            messages.extend(str(msg) for msg in error_messages_val)

        field_errors_val = payload_obj.get("errors", {})
        if isinstance(field_errors_val, dict):
            for field, msg in field_errors_val.items():
                messages.append(f"{field}: {msg}")

        # Service desk endpoints report a single errorMessage string.
        single_message = payload_obj.get("errorMessage")
        if isinstance(single_message, str) and single_message:
            messages.append(single_message)

        message = (
            f"Jira rejected the request: {'; '.join(messages)}"
            if messages
            else f"Jira error {response.status_code}: {response.text}"
        )
        logger.error(
            "jira_validation_failed",
            extra={"status": response.status_code, "errors": messages},
        )
        return {"error": message, "status": response.status_code}


def _sanitize_fields(fields: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in fields.items() if value not in (None, [], "")}


def _is_last_page(payload_obj: dict[str, Any], start: int, page_len: int) -> bool:
    if "isLastPage" in payload_obj:
        return bool(payload_obj["isLastPage"])
    total = payload_obj.get("total")
    if isinstance(total, int):
        return start + page_len >= total
    return True


def _retry_after(response: requests.Response, *, default: float) -> float:
    header: Optional[str] = response.headers.get("Retry-After")
    if header:
        try:
            return max(float(header), 0.0)
        except (TypeError, ValueError):
            pass
    return default
