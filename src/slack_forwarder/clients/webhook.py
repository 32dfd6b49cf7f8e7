"""Incoming Webhook transport."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from slack_forwarder.clients.base import BaseClient, SlackApiError, filter_params

if TYPE_CHECKING:
    from collections.abc import Mapping

    import httpx

logger = logging.getLogger(__name__)


def encode_body(payload: Mapping[str, Any]) -> str:
    """Encode a payload as JSON with Slack control characters escaped."""
    return (
        json.dumps(payload, ensure_ascii=False)
        .replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
    )


class IncomingWebhookClient(BaseClient):
    """Posts payloads to a Slack Incoming Webhook URL.

    The webhook is bound to its own channel, so channel creation is not
    supported.
    """

    name = "webhook"

    def __init__(self, webhook_url: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.webhook_url = webhook_url

    def post_message(
        self,
        payload: dict[str, Any],
        *,
        auto_channels_create: bool = False,
    ) -> None:
        """Post one payload to the webhook."""
        logger.info(f"post_message {filter_params(payload)}")
        self._post(
            self.webhook_url,
            payload,
            content=encode_body(payload).encode("utf-8"),
            headers={"Content-Type": "application/json"},
        )

    def _check_response(self, response: httpx.Response, params: Mapping[str, Any]) -> None:
        super()._check_response(response, params)
        if response.text != "ok":
            raise SlackApiError(
                "webhook response body is not ok",
                status_code=response.status_code,
                body=response.text,
                params=params,
            )
