"""Destination channel routing."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from urllib.parse import unquote

from slack_forwarder.formatter.template import Template

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

CHANNEL_MARKER = "#"


def with_marker(name: str) -> str:
    """Return ``name`` with exactly one leading ``#``."""
    return CHANNEL_MARKER + name.lstrip(CHANNEL_MARKER)


def normalize_channel(name: str) -> str:
    """Normalize a configured channel name to exactly one leading ``#``.

    Percent-escapes are decoded first, so ``%23general`` becomes
    ``#general``. Apply once: decoding is not idempotent.
    """
    return with_marker(unquote(name))


class ChannelRouter:
    """Derives the destination channel for each record.

    Without channel keys every record goes to the static channel.
    Otherwise the channel name is a template rendered per record.
    """

    def __init__(self, channel: str, channel_keys: Sequence[str] | None = None) -> None:
        """Initialize the router.

        Args:
            channel: Channel name or format string, with or without ``#``.
                Percent-escapes are left as-is; decode with
                ``normalize_channel`` beforehand.
            channel_keys: Record keys substituted into ``channel``.

        Raises:
            TemplateArityError: If ``channel`` does not match ``channel_keys``.
        """
        self.channel = with_marker(channel)
        if channel_keys:
            self._template = Template.compile(self.channel, channel_keys, option="channel")
        else:
            self._template = Template.literal(self.channel)

    @property
    def is_static(self) -> bool:
        return self._template.is_literal

    def route(self, record: Mapping[str, Any]) -> str:
        """Return the channel for a record."""
        return self._template.render(record)
