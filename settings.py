# settings.py
"""Centralized configuration using Pydantic settings."""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

load_dotenv()


class SlackSettings(BaseSettings):
    bot_token: str = Field(alias="SLACK_BOT_TOKEN")
    app_token: str = Field(alias="SLACK_APP_TOKEN")
    signing_secret: Optional[str] = Field(alias="SLACK_SIGNING_SECRET", default=None)


class TriggerSettings(BaseSettings):
    emoji: str = Field(alias="TRIGGER_EMOJI", default="eyes")
    channel_name: str = Field(alias="ONBOARDING_CHANNEL", default="eel-onboarding")

    @field_validator("emoji", "channel_name")
    @classmethod
    def _strip_decorations(cls, value: str) -> str:
        # Accept ":eyes:" and "#eel-onboarding" as well as the bare names.
        return value.strip().strip(":").lstrip("#")


class JiraSettings(BaseSettings):
    base_url: str = Field(alias="JIRA_BASE_URL")
    email: str = Field(alias="JIRA_EMAIL")
    api_token: str = Field(alias="JIRA_API_TOKEN")
    project_key: str = Field(alias="JIRA_PROJECT_KEY")
    issue_type: str = Field(alias="JIRA_ISSUE_TYPE", default="Task")
    use_service_desk: bool = Field(alias="JIRA_USE_SERVICE_DESK", default=False)
    request_type: str = Field(alias="JIRA_REQUEST_TYPE", default="Onboard")
    api_version: str = Field(alias="JIRA_API_VERSION", default="3")
    schema_mapping: bool = Field(alias="JIRA_SCHEMA_MAPPING", default=True)
    custom_fields_json: Optional[str] = Field(alias="JIRA_CUSTOM_FIELDS", default=None)

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("api_version")
    @classmethod
    def _check_api_version(cls, value: str) -> str:
        if value not in ("2", "3"):
            raise ValueError("JIRA_API_VERSION must be 2 or 3")
        return value

    @field_validator("custom_fields_json")
    @classmethod
    def _check_custom_fields(cls, value: Optional[str]) -> Optional[str]:
        if not value or not value.strip():
            return None
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError as exc:
            raise ValueError(f"JIRA_CUSTOM_FIELDS is not valid JSON: {exc}") from exc
        if not isinstance(decoded, dict):
            raise ValueError("JIRA_CUSTOM_FIELDS must be a JSON object")
        return value

    @property
    def custom_fields(self) -> dict[str, Any]:
        if not self.custom_fields_json:
            return {}
        return dict(json.loads(self.custom_fields_json))


class DedupSettings(BaseSettings):
    ttl_seconds: float = Field(alias="DEDUP_TTL_SECONDS", default=86400.0, ge=0)
    max_entries: int = Field(alias="DEDUP_MAX_ENTRIES", default=10000, ge=0)


class LoggingSettings(BaseSettings):
    level: str = Field(alias="BOT_LOG_LEVEL", default="INFO")
    json_enabled: bool = Field(alias="BOT_LOG_JSON", default=False)


class BotSettings(BaseSettings):
    slack: SlackSettings
    trigger: TriggerSettings
    jira: JiraSettings
    dedup: DedupSettings
    logging: LoggingSettings

    @classmethod
    def load(cls) -> BotSettings:
        try:
            return cls(
                slack=SlackSettings(),  # type: ignore[call-arg]
                trigger=TriggerSettings(),  # type: ignore[call-arg]
                jira=JiraSettings(),  # type: ignore[call-arg]
                dedup=DedupSettings(),  # type: ignore[call-arg]
                logging=LoggingSettings(),  # type: ignore[call-arg]
            )
        except ValidationError as exc:  # pragma: no cover - surfaced on startup
            missing = [error["loc"][0] for error in exc.errors() if error.get("type") == "missing"]
            if not missing:
                raise RuntimeError(f"Invalid configuration: {exc}") from exc
            msg = "Missing required configuration values: " + ", ".join(
                sorted({str(loc) for loc in missing})
            )
            raise RuntimeError(msg) from exc


@lru_cache(maxsize=1)
def get_settings() -> BotSettings:
    return BotSettings.load()
