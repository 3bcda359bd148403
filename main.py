"""Onboarding bot entry point: Slack reactions in, Jira tickets out."""

import logging

from slack_bolt import App
from slack_bolt.adapter.socket_mode import SocketModeHandler

from dedup import ReactionDedupStore
from jira_client import JiraClient
from logging_utils import configure_logging
from models import ReactionEvent
from reaction_pipeline import ReactionPipeline
from settings import BotSettings, get_settings
from ticket_submitter import TicketSubmitter

logger = logging.getLogger(__name__)


def build_pipeline(settings: BotSettings, slack_client) -> ReactionPipeline:
    jira_client = JiraClient(settings.jira)
    return ReactionPipeline(
        slack_client=slack_client,
        submitter=TicketSubmitter(jira_client, settings.jira),
        dedup_store=ReactionDedupStore(
            ttl_seconds=settings.dedup.ttl_seconds,
            max_entries=settings.dedup.max_entries,
        ),
        trigger=settings.trigger,
        jira_base_url=settings.jira.base_url,
    )


def create_app(settings: BotSettings) -> App:
    app = App(token=settings.slack.bot_token, signing_secret=settings.slack.signing_secret)
    pipeline = build_pipeline(settings, app.client)

    @app.event("reaction_added")
    def handle_reaction_added(event):
        outcome = pipeline.handle(ReactionEvent.from_slack(event))
        logger.debug("reaction_handled", extra={"outcome": outcome.value})

    # Registered only so Bolt does not warn about unhandled reaction_removed events.
    @app.event("reaction_removed")
    def ignore_reaction_removed():
        pass

    return app


def main() -> None:
    settings = get_settings()
    configure_logging(settings.logging.level, settings.logging.json_enabled)
    app = create_app(settings)
    logger.info(
        "bot_starting",
        extra={
            "trigger_emoji": settings.trigger.emoji,
            "channel_name": settings.trigger.channel_name,
            "project": settings.jira.project_key,
            "service_desk": settings.jira.use_service_desk,
        },
    )
    SocketModeHandler(app, settings.slack.app_token).start()


if __name__ == "__main__":
    main()
