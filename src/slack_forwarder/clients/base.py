"""Shared HTTP plumbing and error types for Slack transports."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

import httpx

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

USER_AGENT = "slack-forwarder"
DEFAULT_TIMEOUT = 10.0


class SlackError(Exception):
    """Base class for Slack transport errors."""


class SlackApiError(SlackError):
    """Raised when Slack rejects a request.

    Attributes:
        status_code: HTTP status code of the response.
        body: Raw response body.
        params: Request parameters with the token filtered out.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str = "",
        params: Mapping[str, Any] | None = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        self.params = filter_params(params or {})
        super().__init__(f"{message} (status={status_code}, body={body!r}, params={self.params})")


class ChannelNotFoundError(SlackApiError):
    """Raised when the destination channel does not exist."""


class NameTakenError(SlackApiError):
    """Raised when creating a channel whose name already exists."""


class SlackClient(Protocol):
    """Protocol for Slack message transports."""

    name: str

    def post_message(
        self,
        payload: dict[str, Any],
        *,
        auto_channels_create: bool = False,
    ) -> None:
        """Post one payload. Raises on failure."""
        ...


def filter_params(params: Mapping[str, Any]) -> dict[str, Any]:
    """Copy request parameters with the token masked for logging."""
    filtered = dict(params)
    if filtered.get("token"):
        filtered["token"] = "[FILTERED]"
    return filtered


def _log_request(request: httpx.Request) -> None:
    logger.debug(f"Request: {request.method} {request.url.copy_with(query=None)}")


def _log_response(response: httpx.Response) -> None:
    request = response.request
    logger.debug(
        f"Response: {request.method} {request.url.copy_with(query=None)} "
        f"-> {response.status_code}"
    )


class BaseClient:
    """Base class for Slack transports over a synchronous httpx client.

    Retries are left to the caller: timeouts and connection errors
    propagate as httpx exceptions.
    """

    name = "base"

    def __init__(
        self,
        *,
        https_proxy: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        debug: bool = False,
        http_client: httpx.Client | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            https_proxy: Proxy URL for outbound requests.
            timeout: HTTP request timeout in seconds.
            debug: Log every request and response at DEBUG level.
            http_client: Preconfigured httpx client (used as-is).
            transport: httpx transport for the client built here.
        """
        self.https_proxy = https_proxy
        self.timeout = timeout
        self.debug = debug

        if http_client is None:
            event_hooks: dict[str, list[Any]] = {"request": [], "response": []}
            if debug:
                event_hooks = {"request": [_log_request], "response": [_log_response]}
            http_client = httpx.Client(
                timeout=timeout,
                proxy=https_proxy,
                headers={
                    "Accept": "application/json; charset=utf-8",
                    "User-Agent": USER_AGENT,
                },
                event_hooks=event_hooks,
                transport=transport,
            )
        self._http = http_client

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._http.close()

    def __enter__(self) -> BaseClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _post(
        self,
        url: str | httpx.URL,
        params: Mapping[str, Any],
        **kwargs: Any,
    ) -> httpx.Response:
        """POST a request and validate the response.

        Args:
            url: Endpoint URL.
            params: Logical request parameters, used for error reporting.
            **kwargs: Body arguments passed to ``httpx.Client.post``.
        """
        response = self._http.post(url, **kwargs)
        self._check_response(response, params)
        return response

    def _check_response(self, response: httpx.Response, params: Mapping[str, Any]) -> None:
        if response.status_code != 200:
            raise SlackApiError(
                f"{self.name} request failed",
                status_code=response.status_code,
                body=response.text,
                params=params,
            )
