import json
import unittest
from datetime import date
from unittest.mock import MagicMock, patch

from models import MessageData
from schema_discovery import DestinationField, SchemaNotFoundError, ServiceDeskSchema
from settings import JiraSettings
from ticket_submitter import (
    TicketCreationError,
    TicketSubmitter,
    build_description_text,
    build_summary,
    to_adf,
)

NOTIFICATION = "New Hire: Jane Doe\nStart Date: 1/5/2026\nDepartment: Sales"

GENERIC_SCHEMA = [
    DestinationField("summary", "Summary", "string", True),
    DestinationField("customfield_10050", "Start date", "date"),
    DestinationField("customfield_10070", "Department"),
]


def _settings(**overrides):
    values = {
        "JIRA_BASE_URL": "https://acme.atlassian.net",
        "JIRA_EMAIL": "bot@acme.test",
        "JIRA_API_TOKEN": "token",
        "JIRA_PROJECT_KEY": "ONB",
    }
    values.update(overrides)
    return JiraSettings(**values)


def _message(text=NOTIFICATION):
    return MessageData(
        text=text,
        user_name="Riley HR",
        message_link="https://acme.slack.com/archives/C1/p1",
        user_id="U1",
        timestamp="2026-01-01T00:00:00+00:00",
    )


def _submitter(client, **overrides):
    return TicketSubmitter(client, _settings(**overrides), today=lambda: date(2026, 1, 2))


class TestDescriptionAndSummary(unittest.TestCase):
    def test_description_layout(self):
        self.assertEqual(
            build_description_text(_message("hello")),
            "Onboarding request from Slack:\n\nhello\n\nRequested by: Riley HR"
            "\n\nSlack Message Link: https://acme.slack.com/archives/C1/p1",
        )

    def test_summary_uses_name(self):
        self.assertEqual(build_summary({"name": "Jane Doe"}, date(2026, 1, 2)), "Onboarding: Jane Doe")

    def test_summary_falls_back_to_date(self):
        self.assertEqual(build_summary({}, date(2026, 1, 2)), "Onboarding Request - 01/02/2026")

    def test_adf_paragraphs_and_breaks(self):
        doc = to_adf("a\n\nb\nc")
        self.assertEqual(doc["type"], "doc")
        self.assertEqual(len(doc["content"]), 2)
        self.assertEqual(
            doc["content"][1]["content"],
            [{"type": "text", "text": "b"}, {"type": "hardBreak"}, {"type": "text", "text": "c"}],
        )


class TestGenericPath(unittest.TestCase):
    @patch("ticket_submitter.discover_generic_fields", return_value=GENERIC_SCHEMA)
    def test_maps_notification_fields(self, mock_discover):
        client = MagicMock()
        client.create_issue.return_value = {"key": "ONB-7", "id": "10007"}

        result = _submitter(client).submit(_message())

        self.assertEqual(result.key, "ONB-7")
        self.assertEqual(result.id, "10007")
        self.assertEqual(result.path, "generic")
        mock_discover.assert_called_once_with(client, "ONB", "Task")
        fields = client.create_issue.call_args.args[0]
        self.assertEqual(fields["summary"], "Onboarding: Jane Doe")
        self.assertEqual(fields["project"], {"key": "ONB"})
        self.assertEqual(fields["issuetype"], {"name": "Task"})
        self.assertEqual(fields["customfield_10050"], "2026-01-05")
        self.assertEqual(fields["customfield_10070"], "Sales")
        self.assertEqual(fields["description"]["type"], "doc")

    @patch("ticket_submitter.discover_generic_fields")
    def test_plain_message_skips_mapping(self, mock_discover):
        client = MagicMock()
        client.create_issue.return_value = {"key": "ONB-8"}

        _submitter(client).submit(_message("Please onboard our new designer"))

        mock_discover.assert_not_called()
        fields = client.create_issue.call_args.args[0]
        self.assertEqual(fields["summary"], "Onboarding Request - 01/02/2026")

    @patch("ticket_submitter.discover_generic_fields")
    def test_mapping_can_be_disabled(self, mock_discover):
        client = MagicMock()
        client.create_issue.return_value = {"key": "ONB-8"}

        _submitter(client, JIRA_SCHEMA_MAPPING=False).submit(_message())

        mock_discover.assert_not_called()
        self.assertEqual(client.create_issue.call_args.args[0]["summary"], "Onboarding: Jane Doe")

    @patch("ticket_submitter.discover_generic_fields", return_value=GENERIC_SCHEMA)
    def test_custom_fields_override_mapped(self, _mock_discover):
        client = MagicMock()
        client.create_issue.return_value = {"key": "ONB-9"}
        custom = {"customfield_10070": "People Ops", "labels": ["onboarding"]}

        _submitter(client, JIRA_CUSTOM_FIELDS=json.dumps(custom)).submit(_message())

        fields = client.create_issue.call_args.args[0]
        self.assertEqual(fields["customfield_10070"], "People Ops")
        self.assertEqual(fields["labels"], ["onboarding"])

    @patch(
        "ticket_submitter.discover_generic_fields",
        side_effect=SchemaNotFoundError("Issue type 'Task' not found"),
    )
    def test_discovery_failure_still_creates(self, _mock_discover):
        client = MagicMock()
        client.create_issue.return_value = {"key": "ONB-10"}

        result = _submitter(client).submit(_message())

        self.assertEqual(result.key, "ONB-10")
        self.assertNotIn("customfield_10050", client.create_issue.call_args.args[0])

    @patch("ticket_submitter.discover_generic_fields", return_value=GENERIC_SCHEMA)
    def test_api_v2_uses_plain_description(self, _mock_discover):
        client = MagicMock()
        client.create_issue.return_value = {"key": "ONB-11"}

        _submitter(client, JIRA_API_VERSION="2").submit(_message())

        description = client.create_issue.call_args.args[0]["description"]
        self.assertIsInstance(description, str)
        self.assertIn(NOTIFICATION, description)

    @patch("ticket_submitter.discover_generic_fields", return_value=GENERIC_SCHEMA)
    def test_logs_message_author_and_time(self, _mock_discover):
        client = MagicMock()
        client.create_issue.return_value = {"key": "ONB-12"}

        with self.assertLogs("ticket_submitter", level="INFO") as logs:
            _submitter(client).submit(_message())

        record = next(r for r in logs.records if r.getMessage() == "ticket_submitting")
        self.assertEqual(record.author, "U1")
        self.assertEqual(record.message_time, "2026-01-01T00:00:00+00:00")
        self.assertIn("department", record.attributes)

    @patch("ticket_submitter.discover_generic_fields", return_value=GENERIC_SCHEMA)
    def test_create_failure_raises(self, _mock_discover):
        client = MagicMock()
        client.create_issue.return_value = {"error": "Jira rejected the request: bad", "status": 400}

        with self.assertRaises(TicketCreationError) as ctx:
            _submitter(client).submit(_message())

        self.assertEqual(ctx.exception.stage, "create_issue")
        self.assertEqual(ctx.exception.http_status, 400)
        self.assertEqual(str(ctx.exception), "Jira rejected the request: bad")


class TestServiceDeskPath(unittest.TestCase):
    SCHEMA = ServiceDeskSchema(
        service_desk_id="2",
        request_type_id="40",
        request_type_name="New Employee Onboarding",
        fields=[
            DestinationField("summary", "Summary", "string", True),
            DestinationField("description", "Description"),
            DestinationField("customfield_10050", "Start Date", "date"),
        ],
    )

    @patch("ticket_submitter.discover_generic_fields")
    @patch("ticket_submitter.discover_service_desk_fields")
    def test_service_desk_success(self, mock_sd, mock_generic):
        mock_sd.return_value = self.SCHEMA
        client = MagicMock()
        client.create_customer_request.return_value = {"issueKey": "ONB-20", "issueId": "200"}

        result = _submitter(client, JIRA_USE_SERVICE_DESK=True).submit(_message())

        self.assertEqual(result.key, "ONB-20")
        self.assertEqual(result.path, "service_desk")
        mock_sd.assert_called_once_with(client, "ONB", "Onboard")
        desk_id, request_type_id, values = client.create_customer_request.call_args.args
        self.assertEqual((desk_id, request_type_id), ("2", "40"))
        self.assertEqual(values["summary"], "Onboarding: Jane Doe")
        self.assertEqual(values["customfield_10050"], "2026-01-05")
        self.assertIn("Requested by: Riley HR", values["description"])
        client.create_issue.assert_not_called()
        mock_generic.assert_not_called()

    @patch("ticket_submitter.discover_generic_fields", return_value=GENERIC_SCHEMA)
    @patch(
        "ticket_submitter.discover_service_desk_fields",
        side_effect=SchemaNotFoundError("No service desk found for project ONB"),
    )
    def test_not_found_falls_back_to_generic(self, _mock_sd, _mock_generic):
        client = MagicMock()
        client.create_issue.return_value = {"key": "ONB-21"}

        result = _submitter(client, JIRA_USE_SERVICE_DESK=True).submit(_message())

        self.assertEqual(result.key, "ONB-21")
        self.assertEqual(result.path, "generic")
        client.create_customer_request.assert_not_called()

    @patch("ticket_submitter.discover_generic_fields", return_value=GENERIC_SCHEMA)
    @patch("ticket_submitter.discover_service_desk_fields")
    def test_create_request_failure_falls_back(self, mock_sd, _mock_generic):
        mock_sd.return_value = self.SCHEMA
        client = MagicMock()
        client.create_customer_request.return_value = {"error": "nope", "status": 400}
        client.create_issue.return_value = {"key": "ONB-22"}

        result = _submitter(client, JIRA_USE_SERVICE_DESK=True).submit(_message())

        self.assertEqual(result.key, "ONB-22")
        client.create_issue.assert_called_once()

    @patch("ticket_submitter.discover_generic_fields", return_value=GENERIC_SCHEMA)
    @patch(
        "ticket_submitter.discover_service_desk_fields",
        side_effect=SchemaNotFoundError("No service desk found for project ONB"),
    )
    def test_raises_only_after_both_paths(self, mock_sd, _mock_generic):
        client = MagicMock()
        client.create_issue.return_value = {"error": "Jira error 500: down", "status": 500}

        with self.assertRaises(TicketCreationError):
            _submitter(client, JIRA_USE_SERVICE_DESK=True).submit(_message())

        mock_sd.assert_called_once()
        client.create_issue.assert_called_once()


if __name__ == "__main__":
    unittest.main()
