"""Slackbot remote control transport."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from slack_forwarder.clients.base import (
    BaseClient,
    ChannelNotFoundError,
    SlackApiError,
    filter_params,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)


def encode_body(payload: Mapping[str, Any]) -> str:
    """Extract the text Slackbot posts.

    Slackbot only accepts plain text, so for attachment payloads the
    first attachment's text (or its first field value) is sent.
    """
    if payload.get("text"):
        return str(payload["text"])
    attachments = payload.get("attachments")
    if not attachments:
        raise ValueError('payload["text"] or payload["attachments"] is required')
    attachment = attachments[0]
    text = attachment.get("text")
    if text is None and attachment.get("fields"):
        text = attachment["fields"][0].get("value")
    return "" if text is None else str(text)


class SlackbotClient(BaseClient):
    """Posts text to a channel through a Slackbot remote control URL."""

    name = "slackbot"

    def __init__(self, slackbot_url: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.slackbot_url = slackbot_url

    def endpoint(self, channel: str) -> httpx.URL:
        """Return the remote control URL targeting ``channel``."""
        return httpx.URL(self.slackbot_url).copy_merge_params({"channel": channel})

    def post_message(
        self,
        payload: dict[str, Any],
        *,
        auto_channels_create: bool = False,
    ) -> None:
        """Post one payload as text."""
        channel = payload.get("channel")
        if not channel:
            raise ValueError("channel parameter is required")
        logger.info(f"post_message {filter_params(payload)}")
        self._post(
            self.endpoint(channel),
            payload,
            content=encode_body(payload).encode("utf-8"),
            headers={"Content-Type": "text/plain; charset=utf-8"},
        )

    def _check_response(self, response: httpx.Response, params: Mapping[str, Any]) -> None:
        if response.text == "channel_not_found":
            raise ChannelNotFoundError(
                "channel not found",
                status_code=response.status_code,
                body=response.text,
                params=params,
            )
        super()._check_response(response, params)
        if response.text != "ok":
            raise SlackApiError(
                "slackbot response body is not ok",
                status_code=response.status_code,
                body=response.text,
                params=params,
            )
