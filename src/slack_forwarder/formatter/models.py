"""Data models for outbound chat payloads."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, TypeAlias

if TYPE_CHECKING:
    from collections.abc import Mapping

# Attachment fields a record may set for itself, copied verbatim
OPTIONAL_ATTACHMENT_FIELDS: tuple[str, ...] = (
    "fallback",
    "color",
    "pretext",
    "author_name",
    "author_link",
    "author_icon",
    "title_link",
    "image_url",
    "thumb_url",
)

EMPTY_FIELDS: Mapping[str, Any] = MappingProxyType({})


@dataclass(frozen=True)
class CommonPayloadFields:
    """Payload attributes derived from configuration, shared by every payload.

    Attributes:
        username: Bot display name.
        icon_emoji: Emoji used as the bot icon.
        icon_url: Image URL used as the bot icon.
        mrkdwn: Whether markdown formatting is enabled.
        link_names: Whether channel names and usernames are linked.
        parse: Parse mode, ``none`` or ``full``.
        token: Web API token.
    """

    username: str | None = None
    icon_emoji: str | None = None
    icon_url: str | None = None
    mrkdwn: bool = False
    link_names: bool = False
    parse: str | None = None
    token: str | None = None

    def as_mapping(self) -> Mapping[str, Any]:
        """Return the set fields as a read-only mapping."""
        values = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) not in (None, False)
        }
        return MappingProxyType(values)


@dataclass(frozen=True)
class CommonAttachmentFields:
    """Attachment attributes derived from configuration."""

    color: str | None = None
    mrkdwn_in: tuple[str, ...] | None = None


@dataclass(frozen=True)
class Attachment:
    """A rich attachment rendered from one record.

    Only ``text`` and ``fallback`` are always present; every other field
    is omitted from the wire form when unset.
    """

    text: str
    fallback: Any
    title: str | None = None
    color: Any = None
    mrkdwn_in: tuple[str, ...] | None = None
    pretext: Any = None
    author_name: Any = None
    author_link: Any = None
    author_icon: Any = None
    title_link: Any = None
    image_url: Any = None
    thumb_url: Any = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire dictionary, dropping unset fields."""
        result: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            result[f.name] = list(value) if f.name == "mrkdwn_in" else value
        return result


@dataclass(frozen=True)
class PlainPayload:
    """Plain text payload: one line per record, newline-terminated."""

    channel: str
    text: str
    common: Mapping[str, Any] = field(default_factory=lambda: EMPTY_FIELDS)

    def to_dict(self) -> dict[str, Any]:
        return {"channel": self.channel, "text": self.text, **self.common}


@dataclass(frozen=True)
class AttachmentPayload:
    """Attachment payload: one attachment per record."""

    channel: str
    attachments: tuple[Attachment, ...]
    common: Mapping[str, Any] = field(default_factory=lambda: EMPTY_FIELDS)

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel": self.channel,
            "attachments": [a.to_dict() for a in self.attachments],
            **self.common,
        }


Payload: TypeAlias = PlainPayload | AttachmentPayload
