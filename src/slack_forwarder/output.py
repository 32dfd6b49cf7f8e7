"""Slack output adapter.

Entry point used by the host runtime: one ``write`` call per buffered
chunk of ``(tag, timestamp, record)`` events.

Usage:
    ```python
    output = SlackOutput.from_settings(get_settings().slack)
    result = output.write([("app.web", 1700000000, {"message": "hi"})])
    ```
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from slack_forwarder.clients import create_client
from slack_forwarder.delivery import DeliveryClassifier, WriteResult
from slack_forwarder.formatter.builder import PayloadBuilder

if TYPE_CHECKING:
    from collections.abc import Iterable

    from slack_forwarder.clients.base import SlackClient
    from slack_forwarder.config import SlackSettings
    from slack_forwarder.formatter.builder import Event
    from slack_forwarder.formatter.models import Payload

logger = logging.getLogger(__name__)


class SlackOutput:
    """Formats batches of log records and posts them to Slack."""

    def __init__(
        self,
        builder: PayloadBuilder,
        client: SlackClient,
        *,
        auto_channels_create: bool = False,
    ) -> None:
        """Initialize the output.

        Args:
            builder: Payload builder with compiled templates.
            client: Transport used for delivery.
            auto_channels_create: Create missing channels on post.
        """
        self.builder = builder
        self.client = client
        self.classifier = DeliveryClassifier(client, auto_channels_create=auto_channels_create)

    @classmethod
    def from_settings(
        cls,
        settings: SlackSettings,
        client: SlackClient | None = None,
    ) -> SlackOutput:
        """Create an output from validated settings.

        Args:
            settings: Slack settings.
            client: Transport to use instead of the configured one.
        """
        if client is None:
            client = create_client(
                settings.transport,
                https_proxy=settings.https_proxy,
                timeout=settings.timeout,
                debug=logging.getLogger().isEnabledFor(logging.DEBUG),
            )
        return cls(
            PayloadBuilder.from_settings(settings),
            client,
            auto_channels_create=settings.auto_channels_create,
        )

    def build_payloads(self, batch: Iterable[Event]) -> list[Payload]:
        """Build payloads for a batch without delivering them."""
        return self.builder.build(batch)

    def write(self, batch: Iterable[Event]) -> WriteResult:
        """Format and deliver one batch.

        Args:
            batch: Events in arrival order.

        Returns:
            WriteResult with per-channel outcomes.

        Raises:
            Exception: A retryable transport error; the host should
                re-deliver the batch later. Errors while building payloads
                are logged and the batch is discarded.
        """
        try:
            payloads = self.build_payloads(batch)
        except Exception as e:
            logger.error(
                f"Discarding batch, payloads could not be built: {type(e).__name__}: {e}",
                exc_info=True,
            )
            return WriteResult()
        if not payloads:
            return WriteResult()

        result = self.classifier.deliver_all(payloads)
        logger.info(
            f"Write complete: {result.delivered}/{len(payloads)} payload(s) delivered"
        )
        return result
