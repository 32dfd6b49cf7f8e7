"""Groups a batch of records into per-channel chat payloads.

Records are grouped by destination channel in first-seen order, and each
group becomes one payload. Two payload shapes exist:

- plain: every record renders to one line of a single text body
- attachment: every record renders to its own attachment, used whenever a
  title or an attachment color is configured

The shape is chosen once per batch, never per record.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from slack_forwarder.formatter.channel import ChannelRouter
from slack_forwarder.formatter.enrich import RecordEnricher
from slack_forwarder.formatter.models import (
    OPTIONAL_ATTACHMENT_FIELDS,
    Attachment,
    AttachmentPayload,
    CommonAttachmentFields,
    CommonPayloadFields,
    Payload,
    PlainPayload,
)
from slack_forwarder.formatter.template import Template

if TYPE_CHECKING:
    from slack_forwarder.config import SlackSettings

logger = logging.getLogger(__name__)

# A buffered event as delivered by the host: (tag, timestamp, record)
Event = tuple[str, Any, Mapping[str, Any]]

# Attachment fields rendered as markdown when mrkdwn is enabled
MRKDWN_IN_FIELDS = ("text", "pretext")


def record_overrides(record: Mapping[str, Any]) -> dict[str, Any]:
    """Collect the optional attachment fields a record sets for itself."""
    overrides = {}
    for name in OPTIONAL_ATTACHMENT_FIELDS:
        value = record.get(name)
        if value is not None and value is not False:
            overrides[name] = value
    return overrides


class PayloadBuilder:
    """Builds chat payloads from batches of log records.

    Templates and the common payload/attachment fields are fixed at
    construction and shared read-only by every batch.
    """

    def __init__(
        self,
        router: ChannelRouter,
        message: Template,
        *,
        title: Template | None = None,
        common_payload: CommonPayloadFields | None = None,
        common_attachment: CommonAttachmentFields | None = None,
        enricher: RecordEnricher | None = None,
    ) -> None:
        """Initialize the builder.

        Args:
            router: Channel router used for every record.
            message: Template for the message text.
            title: Template for attachment titles, if any.
            common_payload: Fields merged into every payload.
            common_attachment: Fields applied to every attachment.
            enricher: Adds tag/time fields to records before rendering.
        """
        self.router = router
        self.message = message
        self.title = title
        self.common_payload = common_payload or CommonPayloadFields()
        self.common_attachment = common_attachment or CommonAttachmentFields()
        self.enricher = enricher or RecordEnricher(include_time_key=False, include_tag_key=False)
        self._common = self.common_payload.as_mapping()

    @classmethod
    def from_settings(cls, settings: SlackSettings) -> PayloadBuilder:
        """Create a builder from validated settings."""
        message = Template.compile(settings.message, settings.message_keys, option="message")

        title = None
        if settings.title is not None:
            if settings.title_keys:
                title = Template.compile(settings.title, settings.title_keys, option="title")
            else:
                title = Template.literal(settings.title)

        token = settings.token.get_secret_value() if settings.token else None
        common_payload = CommonPayloadFields(
            username=settings.username,
            icon_emoji=settings.icon_emoji,
            icon_url=settings.icon_url,
            mrkdwn=settings.mrkdwn,
            link_names=settings.link_names,
            parse=settings.parse,
            token=token,
        )
        common_attachment = CommonAttachmentFields(
            color=settings.color,
            mrkdwn_in=MRKDWN_IN_FIELDS if settings.mrkdwn else None,
        )
        enricher = RecordEnricher(
            include_time_key=settings.include_time_key,
            time_key=settings.time_key,
            time_format=settings.time_format,
            localtime=settings.localtime,
            include_tag_key=settings.include_tag_key,
            tag_key=settings.tag_key,
        )

        return cls(
            ChannelRouter(settings.channel, settings.channel_keys),
            message,
            title=title,
            common_payload=common_payload,
            common_attachment=common_attachment,
            enricher=enricher,
        )

    @property
    def use_attachments(self) -> bool:
        """Return True if batches are built as attachment payloads."""
        return self.title is not None or self.common_attachment.color is not None

    def build(self, batch: Iterable[Event]) -> list[Payload]:
        """Build one payload per channel from a batch.

        Args:
            batch: Events in arrival order.

        Returns:
            Payloads in first-seen channel order. Empty for an empty batch.
        """
        if self.use_attachments:
            payloads = self._build_attachment_payloads(batch)
        else:
            payloads = self._build_plain_payloads(batch)
        logger.debug(f"Built {len(payloads)} payload(s)")
        return payloads

    def _group_by_channel(self, batch: Iterable[Event]) -> dict[str, list[Mapping[str, Any]]]:
        """Group enriched records by channel, preserving first-seen order."""
        groups: dict[str, list[Mapping[str, Any]]] = {}
        for tag, timestamp, record in batch:
            record = self.enricher.enrich(tag, timestamp, record)
            channel = self.router.route(record)
            groups.setdefault(channel, []).append(record)
        return groups

    def _build_plain_payloads(self, batch: Iterable[Event]) -> list[Payload]:
        payloads: list[Payload] = []
        for channel, records in self._group_by_channel(batch).items():
            text = "".join(f"{self.message.render(record)}\n" for record in records)
            payloads.append(PlainPayload(channel=channel, text=text, common=self._common))
        return payloads

    def _build_attachment_payloads(self, batch: Iterable[Event]) -> list[Payload]:
        payloads: list[Payload] = []
        for channel, records in self._group_by_channel(batch).items():
            attachments = tuple(self.build_attachment(record) for record in records)
            payloads.append(
                AttachmentPayload(channel=channel, attachments=attachments, common=self._common)
            )
        return payloads

    def build_attachment(self, record: Mapping[str, Any]) -> Attachment:
        """Render one record into an attachment."""
        text = self.message.render(record)
        title = None
        fallback = text
        if self.title is not None:
            title = self.title.render(record)
            fallback = f"{title} {text}"

        attachment = Attachment(
            text=text,
            fallback=fallback,
            title=title,
            color=self.common_attachment.color,
            mrkdwn_in=self.common_attachment.mrkdwn_in,
        )
        overrides = record_overrides(record)
        if overrides:
            attachment = dataclasses.replace(attachment, **overrides)
        return attachment
