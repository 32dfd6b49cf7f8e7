"""Slack transports: Incoming Webhook, Slackbot and Web API."""

from __future__ import annotations

from typing import Any

from slack_forwarder.clients.base import (
    BaseClient,
    ChannelNotFoundError,
    NameTakenError,
    SlackApiError,
    SlackClient,
    SlackError,
)
from slack_forwarder.clients.slackbot import SlackbotClient
from slack_forwarder.clients.web_api import WebApiClient
from slack_forwarder.clients.webhook import IncomingWebhookClient
from slack_forwarder.config import (
    SlackbotTransport,
    Transport,
    WebApiTransport,
    WebhookTransport,
)


def create_client(transport: Transport, **kwargs: Any) -> BaseClient:
    """Create the client for the selected transport.

    Args:
        transport: Transport selected by configuration.
        **kwargs: Passed to the client (https_proxy, timeout, debug, http_client).
    """
    if isinstance(transport, WebhookTransport):
        return IncomingWebhookClient(transport.url, **kwargs)
    if isinstance(transport, SlackbotTransport):
        return SlackbotClient(transport.url, **kwargs)
    if isinstance(transport, WebApiTransport):
        return WebApiClient(**kwargs)
    raise TypeError(f"Unknown transport: {transport!r}")


__all__ = [
    "BaseClient",
    "ChannelNotFoundError",
    "IncomingWebhookClient",
    "NameTakenError",
    "SlackApiError",
    "SlackClient",
    "SlackError",
    "SlackbotClient",
    "WebApiClient",
    "create_client",
]
