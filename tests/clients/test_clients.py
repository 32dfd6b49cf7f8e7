"""Tests for Slack transports."""

import json
import logging
from urllib.parse import parse_qs

import httpx
import pytest

from slack_forwarder.clients import (
    ChannelNotFoundError,
    IncomingWebhookClient,
    NameTakenError,
    SlackApiError,
    SlackbotClient,
    WebApiClient,
    create_client,
)
from slack_forwarder.clients.base import filter_params
from slack_forwarder.clients.slackbot import encode_body as slackbot_body
from slack_forwarder.clients.webhook import encode_body as webhook_body
from slack_forwarder.config import SlackbotTransport, WebApiTransport, WebhookTransport

WEBHOOK_URL = "https://hooks.slack.com/services/T000/B000/XXXX"
SLACKBOT_URL = "https://team.slack.com/services/hooks/slackbot?token=abc"

# ============================================================================
# Fixtures
# ============================================================================


class Recorder:
    """Records requests and replies with queued responses."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self))


def form(request: httpx.Request) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


@pytest.fixture
def plain_payload() -> dict:
    """A plain text payload."""
    return {"channel": "#general", "text": "a & b <c>\n", "username": "bot"}


@pytest.fixture
def attachment_payload() -> dict:
    """An attachment payload with a token."""
    return {
        "channel": "#general",
        "attachments": [{"text": "first", "fallback": "T first", "mrkdwn_in": ["text"]}],
        "token": "xoxb-123",
        "mrkdwn": True,
    }


# ============================================================================
# Helper Tests
# ============================================================================


class TestFilterParams:
    """Tests for token filtering."""

    def test_token_masked(self) -> None:
        """Token is replaced and the source left untouched."""
        params = {"token": "xoxb-123", "channel": "#a"}
        assert filter_params(params) == {"token": "[FILTERED]", "channel": "#a"}
        assert params["token"] == "xoxb-123"

    def test_no_token(self) -> None:
        """Params without a token are unchanged."""
        assert filter_params({"channel": "#a"}) == {"channel": "#a"}


# ============================================================================
# IncomingWebhookClient Tests
# ============================================================================


class TestIncomingWebhookClient:
    """Tests for the Incoming Webhook transport."""

    def test_encode_body_escapes(self) -> None:
        """Slack control characters are escaped."""
        body = webhook_body({"text": "a & b <c>"})
        assert body == '{"text": "a &amp; b &lt;c&gt;"}'

    def test_post_success(self, plain_payload: dict) -> None:
        """Payload is posted as JSON to the webhook URL."""
        recorder = Recorder(httpx.Response(200, text="ok"))
        client = IncomingWebhookClient(WEBHOOK_URL, http_client=recorder.client())

        client.post_message(plain_payload)

        request = recorder.requests[0]
        assert str(request.url) == WEBHOOK_URL
        assert request.headers["Content-Type"] == "application/json"
        sent = json.loads(request.content)
        assert sent["channel"] == "#general"
        assert sent["text"] == "a &amp; b &lt;c&gt;\n"

    def test_http_error(self, plain_payload: dict) -> None:
        """Non-200 responses raise SlackApiError."""
        recorder = Recorder(httpx.Response(404, text="no_service"))
        client = IncomingWebhookClient(WEBHOOK_URL, http_client=recorder.client())

        with pytest.raises(SlackApiError) as exc_info:
            client.post_message(plain_payload)

        assert exc_info.value.status_code == 404
        assert exc_info.value.body == "no_service"

    def test_body_not_ok(self, plain_payload: dict) -> None:
        """A 200 response with an unexpected body is an error."""
        recorder = Recorder(httpx.Response(200, text="invalid_payload"))
        client = IncomingWebhookClient(WEBHOOK_URL, http_client=recorder.client())

        with pytest.raises(SlackApiError, match="not ok"):
            client.post_message(plain_payload)

    def test_timeout_propagates(self, plain_payload: dict) -> None:
        """Timeouts are raised unchanged."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = IncomingWebhookClient(
            WEBHOOK_URL, http_client=httpx.Client(transport=httpx.MockTransport(handler))
        )

        with pytest.raises(httpx.TimeoutException):
            client.post_message(plain_payload)


# ============================================================================
# SlackbotClient Tests
# ============================================================================


class TestSlackbotClient:
    """Tests for the Slackbot transport."""

    def test_encode_body_text(self) -> None:
        """Plain payloads send their text."""
        assert slackbot_body({"text": "hello"}) == "hello"

    def test_encode_body_first_attachment(self, attachment_payload: dict) -> None:
        """Attachment payloads send the first attachment's text."""
        assert slackbot_body(attachment_payload) == "first"

    def test_encode_body_field_value(self) -> None:
        """Falls back to the first field value."""
        payload = {"attachments": [{"fields": [{"title": "t", "value": "v"}]}]}
        assert slackbot_body(payload) == "v"

    def test_encode_body_requires_content(self) -> None:
        """Text or attachments are required."""
        with pytest.raises(ValueError, match="required"):
            slackbot_body({"channel": "#a"})

    def test_post_success(self, plain_payload: dict) -> None:
        """Text is posted with the channel in the query string."""
        recorder = Recorder(httpx.Response(200, text="ok"))
        client = SlackbotClient(SLACKBOT_URL, http_client=recorder.client())

        client.post_message(plain_payload)

        request = recorder.requests[0]
        assert request.url.params["token"] == "abc"
        assert request.url.params["channel"] == "#general"
        assert request.content.decode() == "a & b <c>\n"

    def test_channel_required(self) -> None:
        """A payload without channel is rejected."""
        client = SlackbotClient(SLACKBOT_URL, http_client=Recorder().client())
        with pytest.raises(ValueError, match="channel"):
            client.post_message({"text": "hi"})

    def test_channel_not_found(self, plain_payload: dict) -> None:
        """channel_not_found body raises ChannelNotFoundError."""
        recorder = Recorder(httpx.Response(404, text="channel_not_found"))
        client = SlackbotClient(SLACKBOT_URL, http_client=recorder.client())

        with pytest.raises(ChannelNotFoundError):
            client.post_message(plain_payload)


# ============================================================================
# WebApiClient Tests
# ============================================================================


class TestWebApiClient:
    """Tests for the Web API transport."""

    def test_post_success(self, attachment_payload: dict) -> None:
        """Payload is form-encoded with JSON attachments."""
        recorder = Recorder(httpx.Response(200, json={"ok": True}))
        client = WebApiClient(http_client=recorder.client())

        client.post_message(attachment_payload)

        request = recorder.requests[0]
        assert str(request.url) == "https://slack.com/api/chat.postMessage"
        sent = form(request)
        assert sent["token"] == "xoxb-123"
        assert sent["channel"] == "#general"
        assert sent["mrkdwn"] == "true"
        assert json.loads(sent["attachments"]) == attachment_payload["attachments"]

    def test_api_error(self, attachment_payload: dict) -> None:
        """ok=false raises SlackApiError with the error code."""
        recorder = Recorder(httpx.Response(200, json={"ok": False, "error": "invalid_auth"}))
        client = WebApiClient(http_client=recorder.client())

        with pytest.raises(SlackApiError, match="invalid_auth") as exc_info:
            client.post_message(attachment_payload)

        assert "xoxb-123" not in str(exc_info.value)

    def test_invalid_json(self, attachment_payload: dict) -> None:
        """A non-JSON body is an API error."""
        recorder = Recorder(httpx.Response(200, text="<html>"))
        client = WebApiClient(http_client=recorder.client())

        with pytest.raises(SlackApiError, match="invalid JSON"):
            client.post_message(attachment_payload)

    def test_channel_not_found_without_create(self, attachment_payload: dict) -> None:
        """Missing channel raises when creation is disabled."""
        recorder = Recorder(httpx.Response(200, json={"ok": False, "error": "channel_not_found"}))
        client = WebApiClient(http_client=recorder.client())

        with pytest.raises(ChannelNotFoundError):
            client.post_message(attachment_payload)
        assert len(recorder.requests) == 1

    def test_auto_channels_create(
        self, attachment_payload: dict, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Missing channel is created once and the post retried."""
        recorder = Recorder(
            httpx.Response(200, json={"ok": False, "error": "channel_not_found"}),
            httpx.Response(200, json={"ok": True}),
            httpx.Response(200, json={"ok": True}),
        )
        client = WebApiClient(http_client=recorder.client())

        with caplog.at_level(logging.WARNING):
            client.post_message(attachment_payload, auto_channels_create=True)

        urls = [str(r.url) for r in recorder.requests]
        assert urls == [
            "https://slack.com/api/chat.postMessage",
            "https://slack.com/api/conversations.create",
            "https://slack.com/api/chat.postMessage",
        ]
        assert form(recorder.requests[1]) == {"name": "general", "token": "xoxb-123"}
        assert "is not found" in caplog.text

    def test_auto_channels_create_name_taken(self, attachment_payload: dict) -> None:
        """An existing channel on create still retries the post."""
        recorder = Recorder(
            httpx.Response(200, json={"ok": False, "error": "channel_not_found"}),
            httpx.Response(200, json={"ok": False, "error": "name_taken"}),
            httpx.Response(200, json={"ok": True}),
        )
        client = WebApiClient(http_client=recorder.client())

        client.post_message(attachment_payload, auto_channels_create=True)

        assert len(recorder.requests) == 3

    def test_retry_only_once(self, attachment_payload: dict) -> None:
        """A second channel_not_found is raised."""
        not_found = {"ok": False, "error": "channel_not_found"}
        recorder = Recorder(
            httpx.Response(200, json=not_found),
            httpx.Response(200, json={"ok": True}),
            httpx.Response(200, json=not_found),
        )
        client = WebApiClient(http_client=recorder.client())

        with pytest.raises(ChannelNotFoundError):
            client.post_message(attachment_payload, auto_channels_create=True)

    def test_name_taken_error_type(self) -> None:
        """name_taken maps to NameTakenError."""
        recorder = Recorder(httpx.Response(200, json={"ok": False, "error": "name_taken"}))
        client = WebApiClient(http_client=recorder.client())

        with pytest.raises(NameTakenError):
            client._post(client.channels_create_endpoint, {}, data={"name": "x"})


# ============================================================================
# create_client Tests
# ============================================================================


class TestDebugLogging:
    """Tests for the verbose request/response log."""

    def test_debug_hooks_log_traffic(
        self, plain_payload: dict, caplog: pytest.LogCaptureFixture
    ) -> None:
        """With debug enabled every request and response is logged."""
        recorder = Recorder(httpx.Response(200, text="ok"))
        client = IncomingWebhookClient(
            WEBHOOK_URL, debug=True, transport=httpx.MockTransport(recorder)
        )

        with caplog.at_level(logging.DEBUG, logger="slack_forwarder.clients.base"):
            client.post_message(plain_payload)

        messages = [r.getMessage() for r in caplog.records if r.name == "slack_forwarder.clients.base"]
        assert messages == [
            f"Request: POST {WEBHOOK_URL}",
            f"Response: POST {WEBHOOK_URL} -> 200",
        ]
        client.close()

    def test_no_debug_logging_by_default(
        self, plain_payload: dict, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Without debug no traffic is logged."""
        recorder = Recorder(httpx.Response(200, text="ok"))
        client = IncomingWebhookClient(WEBHOOK_URL, transport=httpx.MockTransport(recorder))

        with caplog.at_level(logging.DEBUG, logger="slack_forwarder.clients.base"):
            client.post_message(plain_payload)

        assert not [r for r in caplog.records if r.name == "slack_forwarder.clients.base"]
        client.close()


# ============================================================================
# create_client Tests
# ============================================================================


class TestCreateClient:
    """Tests for transport client selection."""

    def test_webhook(self) -> None:
        """Webhook transport creates IncomingWebhookClient."""
        client = create_client(WebhookTransport(url=WEBHOOK_URL))
        assert isinstance(client, IncomingWebhookClient)
        assert client.webhook_url == WEBHOOK_URL
        client.close()

    def test_slackbot(self) -> None:
        """Slackbot transport creates SlackbotClient."""
        client = create_client(SlackbotTransport(url=SLACKBOT_URL), timeout=5.0)
        assert isinstance(client, SlackbotClient)
        assert client.timeout == 5.0
        client.close()

    def test_web_api_with_proxy(self) -> None:
        """Web API transport honours the proxy setting."""
        client = create_client(
            WebApiTransport(token="xoxb-123"),
            https_proxy="http://proxy.local:3128",
            debug=True,
        )
        assert isinstance(client, WebApiClient)
        assert client.https_proxy == "http://proxy.local:3128"
        assert client.debug is True
        client.close()

    def test_unknown_transport(self) -> None:
        """Unknown transports are rejected."""
        with pytest.raises(TypeError):
            create_client("carrier-pigeon")  # type: ignore[arg-type]
