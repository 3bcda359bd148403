"""Turn a trigger-emoji reaction into a Jira ticket and a threaded reply."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional

from dedup import ReactionDedupStore, dedup_key
from message_text import extract_text
from models import MessageData, ReactionEvent, SourceMessage, slack_ts_to_iso
from settings import TriggerSettings
from ticket_submitter import TicketSubmitter

logger = logging.getLogger(__name__)

UNKNOWN_USER = "Unknown User"
LINK_UNAVAILABLE = "Link unavailable"


class PipelineOutcome(str, Enum):
    DONE = "done"
    SKIPPED = "skipped"
    FAILED = "failed"


class ReactionPipeline:
    def __init__(
        self,
        slack_client: Any,
        submitter: TicketSubmitter,
        dedup_store: ReactionDedupStore,
        trigger: TriggerSettings,
        jira_base_url: str,
    ) -> None:
        self.slack = slack_client
        self.submitter = submitter
        self.dedup_store = dedup_store
        self.trigger = trigger
        self.jira_base_url = jira_base_url.rstrip("/")

    def handle(self, event: ReactionEvent) -> PipelineOutcome:
        key = dedup_key(event)
        log_extra = {"channel": event.channel_id, "ts": event.message_ts, "user": event.user_id}

        if self.dedup_store.seen(key):
            logger.info("reaction_skipped", extra={**log_extra, "reason": "duplicate"})
            return PipelineOutcome.SKIPPED

        if event.reaction != self.trigger.emoji:
            logger.debug(
                "reaction_skipped",
                extra={**log_extra, "reason": "emoji", "reaction": event.reaction},
            )
            return PipelineOutcome.SKIPPED

        channel_name = self._channel_name(event.channel_id)
        if channel_name != self.trigger.channel_name:
            logger.info(
                "reaction_skipped",
                extra={**log_extra, "reason": "channel", "channel_name": channel_name},
            )
            return PipelineOutcome.SKIPPED

        if not self.dedup_store.check_and_record(key):
            logger.info("reaction_skipped", extra={**log_extra, "reason": "duplicate_in_flight"})
            return PipelineOutcome.SKIPPED

        logger.info("reaction_processing", extra={**log_extra, "channel_name": channel_name})

        try:
            message = self._fetch_message(event)
            if message is None:
                logger.error("source_message_not_found", extra=log_extra)
                return PipelineOutcome.FAILED

            message_data = MessageData(
                text=extract_text(message),
                user_name=self._user_name(message.author_id),
                user_id=message.author_id,
                message_link=self._permalink(event),
                timestamp=slack_ts_to_iso(event.message_ts),
            )
            result = self.submitter.submit(message_data)
        except Exception as exc:
            logger.exception("reaction_failed", extra={**log_extra, "error": str(exc)})
            self._post_reply(event, f"❌ Error creating Jira ticket: {exc}")
            return PipelineOutcome.FAILED

        ticket_url = f"{self.jira_base_url}/browse/{result.key}"
        self._post_reply(event, f"✅ Jira ticket created: {ticket_url}")
        logger.info("reaction_done", extra={**log_extra, "key": result.key, "path": result.path})
        return PipelineOutcome.DONE

    def _fetch_message(self, event: ReactionEvent) -> Optional[SourceMessage]:
        response = self.slack.conversations_history(
            channel=event.channel_id,
            latest=event.message_ts,
            limit=1,
            inclusive=True,
        )
        messages = response.get("messages") or []
        if not messages:
            return None
        message = messages[0]
        # Reactions on thread replies are not in channel history; the nearest
        # older top-level message must not be mistaken for the reacted one.
        if message.get("ts") and message.get("ts") != event.message_ts:
            return None
        return SourceMessage.from_slack(message)

    def _channel_name(self, channel_id: str) -> Optional[str]:
        try:
            response = self.slack.conversations_info(channel=channel_id)
        except Exception as exc:
            logger.error("channel_lookup_failed", extra={"channel": channel_id, "error": str(exc)})
            return None
        channel = response.get("channel") or {}
        return channel.get("name")

    def _user_name(self, user_id: Optional[str]) -> str:
        if not user_id:
            return UNKNOWN_USER
        try:
            response = self.slack.users_info(user=user_id)
        except Exception as exc:
            logger.warning("user_lookup_failed", extra={"user": user_id, "error": str(exc)})
            return UNKNOWN_USER
        user = response.get("user") or {}
        return user.get("real_name") or user.get("name") or UNKNOWN_USER

    def _permalink(self, event: ReactionEvent) -> str:
        try:
            response = self.slack.chat_getPermalink(
                channel=event.channel_id, message_ts=event.message_ts
            )
        except Exception as exc:
            logger.warning(
                "permalink_lookup_failed",
                extra={"channel": event.channel_id, "ts": event.message_ts, "error": str(exc)},
            )
            return LINK_UNAVAILABLE
        return response.get("permalink") or LINK_UNAVAILABLE

    def _post_reply(self, event: ReactionEvent, text: str) -> None:
        try:
            self.slack.chat_postMessage(
                channel=event.channel_id, thread_ts=event.message_ts, text=text
            )
        except Exception as exc:
            logger.error(
                "reply_post_failed",
                extra={"channel": event.channel_id, "ts": event.message_ts, "error": str(exc)},
            )
