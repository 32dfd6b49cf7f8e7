"""Formatting layer - templates, channel routing and payload building."""

from slack_forwarder.formatter.builder import PayloadBuilder
from slack_forwarder.formatter.channel import ChannelRouter, normalize_channel, with_marker
from slack_forwarder.formatter.enrich import RecordEnricher
from slack_forwarder.formatter.keys import resolve_key, resolve_keys
from slack_forwarder.formatter.models import (
    OPTIONAL_ATTACHMENT_FIELDS,
    Attachment,
    AttachmentPayload,
    Payload,
    PlainPayload,
)
from slack_forwarder.formatter.template import Template, TemplateArityError

__all__ = [
    "OPTIONAL_ATTACHMENT_FIELDS",
    "Attachment",
    "AttachmentPayload",
    "ChannelRouter",
    "Payload",
    "PayloadBuilder",
    "PlainPayload",
    "RecordEnricher",
    "Template",
    "TemplateArityError",
    "normalize_channel",
    "resolve_key",
    "resolve_keys",
    "with_marker",
]
