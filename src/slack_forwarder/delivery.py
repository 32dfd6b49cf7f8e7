"""Per-payload delivery with retryable/discardable failure classification."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from slack_forwarder.clients.base import SlackClient
    from slack_forwarder.formatter.models import Payload

logger = logging.getLogger(__name__)

# Transient conditions the host runtime should retry
RETRYABLE_ERRORS: tuple[type[BaseException], ...] = (
    httpx.TimeoutException,
    httpx.NetworkError,
    TimeoutError,
)


class Outcome(enum.Enum):
    """Outcome of a delivery attempt that did not need a retry."""

    DELIVERED = "delivered"
    DISCARDED = "discarded"


def is_retryable(error: BaseException) -> bool:
    """Return True if ``error`` is a transient delivery condition."""
    return isinstance(error, RETRYABLE_ERRORS)


@dataclass
class WriteResult:
    """Result of delivering every payload built from a batch."""

    delivered: int = 0
    discarded: int = 0
    channel_results: dict[str, Outcome] = field(default_factory=dict)

    @property
    def all_delivered(self) -> bool:
        """Return True if nothing was discarded."""
        return self.discarded == 0

    def record(self, channel: str, outcome: Outcome) -> None:
        if outcome is Outcome.DELIVERED:
            self.delivered += 1
        else:
            self.discarded += 1
        self.channel_results[channel] = outcome


class DeliveryClassifier:
    """Delivers payloads through a transport and classifies failures.

    Timeouts and connection errors are re-raised unchanged so the host
    runtime retries the whole batch. Any other failure is logged with
    its traceback and the payload is discarded.

    Payloads already delivered before a retryable error are posted again
    when the host re-delivers the batch, so channels may see duplicates.
    """

    def __init__(self, client: SlackClient, *, auto_channels_create: bool = False) -> None:
        """Initialize the classifier.

        Args:
            client: Transport used to post payloads.
            auto_channels_create: Ask the transport to create missing channels.
        """
        self.client = client
        self.auto_channels_create = auto_channels_create

    @property
    def post_message_options(self) -> dict[str, Any]:
        if self.auto_channels_create:
            return {"auto_channels_create": True}
        return {}

    def deliver(self, payload: Payload) -> Outcome:
        """Deliver one payload.

        Returns:
            DELIVERED on success, DISCARDED on a permanent failure.

        Raises:
            Exception: Any retryable error raised by the transport.
        """
        try:
            self.client.post_message(payload.to_dict(), **self.post_message_options)
        except Exception as e:
            if is_retryable(e):
                logger.warning(
                    f"Transient error delivering to {payload.channel}, "
                    f"batch will be retried: {type(e).__name__}: {e}"
                )
                raise
            logger.error(
                f"Discarding payload for {payload.channel}: {type(e).__name__}: {e}",
                exc_info=True,
            )
            return Outcome.DISCARDED
        return Outcome.DELIVERED

    def deliver_all(self, payloads: list[Payload]) -> WriteResult:
        """Deliver payloads in order.

        A discarded payload does not stop the remaining ones; a retryable
        error aborts the rest and propagates.
        """
        result = WriteResult()
        for payload in payloads:
            result.record(payload.channel, self.deliver(payload))
        return result
