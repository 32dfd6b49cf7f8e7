"""Slack Web API transport (chat.postMessage)."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from slack_forwarder.clients.base import (
    BaseClient,
    ChannelNotFoundError,
    NameTakenError,
    SlackApiError,
    filter_params,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    import httpx

logger = logging.getLogger(__name__)

SLACK_API_BASE = "https://slack.com/api/"

# Maps Web API error codes to exception types
API_ERRORS: dict[str, type[SlackApiError]] = {
    "channel_not_found": ChannelNotFoundError,
    "name_taken": NameTakenError,
}


def encode_form(params: Mapping[str, Any]) -> dict[str, Any]:
    """Convert payload parameters to form fields."""
    form = dict(params)
    if "attachments" in form:
        form["attachments"] = json.dumps(form["attachments"], ensure_ascii=False)
    return form


class WebApiClient(BaseClient):
    """Posts payloads with the Slack Web API.

    The token travels inside each payload. With ``auto_channels_create``
    a missing channel is created once and the post is retried.
    """

    name = "web_api"

    def __init__(self, *, api_base: str = SLACK_API_BASE, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.api_base = api_base

    @property
    def post_message_endpoint(self) -> str:
        return self.api_base + "chat.postMessage"

    @property
    def channels_create_endpoint(self) -> str:
        return self.api_base + "conversations.create"

    def post_message(
        self,
        payload: dict[str, Any],
        *,
        auto_channels_create: bool = False,
    ) -> None:
        """Post one payload, creating the channel first if allowed."""
        try:
            self._post_message(payload)
        except ChannelNotFoundError:
            if not auto_channels_create:
                raise
            channel = payload.get("channel", "")
            logger.warning(
                f'Channel "{channel}" is not found. '
                "Creating the channel, then retrying the message."
            )
            self.channels_create({"name": channel.lstrip("#"), "token": payload.get("token")})
            self._post_message(payload)

    def _post_message(self, payload: dict[str, Any]) -> None:
        logger.info(f"post_message {filter_params(payload)}")
        self._post(self.post_message_endpoint, payload, data=encode_form(payload))

    def channels_create(self, params: dict[str, Any]) -> None:
        """Create a channel. An existing channel is not an error."""
        logger.info(f"channels_create {filter_params(params)}")
        try:
            self._post(self.channels_create_endpoint, params, data=params)
        except NameTakenError:
            logger.info(f"Channel {params.get('name')} already exists")

    def _check_response(self, response: httpx.Response, params: Mapping[str, Any]) -> None:
        super()._check_response(response, params)
        try:
            result = response.json()
        except ValueError as e:
            raise SlackApiError(
                "invalid JSON response",
                status_code=response.status_code,
                body=response.text,
                params=params,
            ) from e

        if result.get("ok"):
            return

        error = result.get("error", "unknown_error")
        error_class = API_ERRORS.get(error, SlackApiError)
        raise error_class(
            error,
            status_code=response.status_code,
            body=response.text,
            params=params,
        )
