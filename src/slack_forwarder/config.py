"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
Slack Forwarder, loading and validating environment variables at
startup. Every consistency rule of the output adapter is checked here,
so an invalid configuration fails before any record is processed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Annotated, Literal, TypeAlias

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from slack_forwarder.formatter.channel import normalize_channel
from slack_forwarder.formatter.enrich import DEFAULT_TIME_FORMAT
from slack_forwarder.formatter.template import Template

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE = "%s"
DEFAULT_MESSAGE_KEYS = ("message",)

# Options ignored by the Slackbot remote control endpoint
SLACKBOT_IGNORED_OPTIONS = ("username", "color", "icon_emoji", "icon_url")

KeyList = Annotated[list[str] | None, NoDecode]


@dataclass(frozen=True)
class WebhookTransport:
    """Incoming Webhook transport."""

    url: str = field(repr=False)
    kind: Literal["webhook"] = "webhook"


@dataclass(frozen=True)
class SlackbotTransport:
    """Slackbot remote control transport."""

    url: str = field(repr=False)
    kind: Literal["slackbot"] = "slackbot"


@dataclass(frozen=True)
class WebApiTransport:
    """Web API (chat.postMessage) transport."""

    token: str = field(repr=False)
    kind: Literal["web_api"] = "web_api"


Transport: TypeAlias = WebhookTransport | SlackbotTransport | WebApiTransport


def split_keys(value: object) -> object:
    """Split a comma-separated key list."""
    if isinstance(value, str):
        return [key.strip() for key in value.split(",") if key.strip()]
    return value


class SlackSettings(BaseSettings):
    """Slack output adapter settings.

    Exactly one of ``webhook_url``, ``slackbot_url`` or ``token`` selects
    the transport.
    """

    model_config = SettingsConfigDict(env_prefix="SLACK_")

    # Transport selection
    webhook_url: SecretStr | None = Field(
        default=None,
        description="Incoming Webhook URL",
    )
    slackbot_url: SecretStr | None = Field(
        default=None,
        description="Slackbot remote control URL",
    )
    token: SecretStr | None = Field(
        default=None,
        description="Web API token",
    )

    # Presentation
    username: str | None = Field(default=None, description="Name of bot")
    color: str | None = Field(
        default=None,
        description="Attachment color such as `good`, `warning` or a hex code",
    )
    icon_emoji: str | None = Field(default=None, description="Emoji to use as the icon")
    icon_url: str | None = Field(default=None, description="Image URL to use as the icon")
    mrkdwn: bool = Field(default=True, description="Enable markdown formatting")
    link_names: bool = Field(default=True, description="Find and link channel names and usernames")
    parse: Literal["none", "full"] | None = Field(
        default=None,
        description="How messages are treated by Slack",
    )
    auto_channels_create: bool = Field(
        default=False,
        description="Create missing channels (Web API transport only)",
    )
    https_proxy: str | None = Field(default=None, description="HTTPS proxy URL")
    timeout: float = Field(default=10.0, gt=0, description="HTTP request timeout in seconds")

    # Templates
    channel: str = Field(description="Channel to send messages to, with or without '#'")
    channel_keys: KeyList = Field(default=None, description="Keys used to format channel")
    title: str | None = Field(default=None, description="Attachment title format")
    title_keys: KeyList = Field(default=None, description="Keys used to format the title")
    message: str = Field(default=DEFAULT_MESSAGE, description="Message format")
    message_keys: KeyList = Field(
        default=list(DEFAULT_MESSAGE_KEYS),
        description="Keys used to format messages",
    )

    # Tag/time fields added to each record
    include_time_key: bool = True
    time_key: str = "time"
    time_format: str = DEFAULT_TIME_FORMAT
    localtime: bool = True
    include_tag_key: bool = True
    tag_key: str = "tag"

    @field_validator("channel_keys", "title_keys", "message_keys", mode="before")
    @classmethod
    def validate_keys(cls, v: object) -> object:
        """Accept comma-separated key lists."""
        return split_keys(v)

    @field_validator("message", mode="before")
    @classmethod
    def default_message(cls, v: object) -> object:
        return DEFAULT_MESSAGE if v is None else v

    @field_validator("message_keys")
    @classmethod
    def default_message_keys(cls, v: list[str] | None) -> list[str]:
        return list(DEFAULT_MESSAGE_KEYS) if v is None else v

    @field_validator("channel")
    @classmethod
    def validate_channel(cls, v: str) -> str:
        """Normalize the channel to a single leading '#'."""
        return normalize_channel(v)

    @model_validator(mode="after")
    def validate_options(self) -> SlackSettings:
        """Validate the combination of options."""
        selected = [
            name
            for name in ("webhook_url", "slackbot_url", "token")
            if getattr(self, name) is not None
        ]
        if not selected:
            raise ValueError("One of `webhook_url` or `slackbot_url`, or `token` is required")
        if len(selected) > 1:
            raise ValueError(
                f"Only one of `webhook_url`, `slackbot_url` or `token` may be set, got {selected}"
            )
        name = selected[0]
        secret: SecretStr = getattr(self, name)
        if not secret.get_secret_value():
            raise ValueError(f"`{name}` is an empty string")

        Template.compile(self.message, self.message_keys or [], option="message")
        if self.title is not None and self.title_keys:
            Template.compile(self.title, self.title_keys, option="title")
        if self.channel_keys:
            Template.compile(self.channel, self.channel_keys, option="channel")

        if self.icon_emoji and self.icon_url:
            raise ValueError("either of `icon_emoji` or `icon_url` can be specified")

        if self.auto_channels_create and self.token is None:
            raise ValueError("`token` parameter is required to use `auto_channels_create`")

        if self.slackbot_url is not None:
            ignored = [opt for opt in SLACKBOT_IGNORED_OPTIONS if getattr(self, opt)]
            if ignored:
                logger.warning(
                    f"{', '.join(ignored)} parameters are not available for "
                    "Slackbot Remote Control"
                )
        return self

    @property
    def transport(self) -> Transport:
        """The selected transport."""
        if self.webhook_url is not None:
            return WebhookTransport(url=self.webhook_url.get_secret_value())
        if self.slackbot_url is not None:
            return SlackbotTransport(url=self.slackbot_url.get_secret_value())
        if self.token is not None:
            return WebApiTransport(token=self.token.get_secret_value())
        raise ValueError("No transport configured")


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from slack_forwarder.config import get_settings

        settings = get_settings()
        print(settings.slack.channel)
        print(settings.log_level)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    slack: SlackSettings = Field(default_factory=SlackSettings)

    # Application settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    dry_run: bool = Field(
        default=False,
        alias="DRY_RUN",
        description="Build payloads without sending them",
    )
    chunk_size: int = Field(
        default=100,
        alias="CHUNK_SIZE",
        description="Records per batch when reading from a stream",
        ge=1,
    )
    max_retries: int = Field(
        default=3,
        alias="MAX_RETRIES",
        description="Retries of a batch after a transient delivery error",
        ge=0,
    )
    retry_delay: float = Field(
        default=1.0,
        alias="RETRY_DELAY",
        description="Base delay between batch retries (exponential backoff)",
        ge=0,
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        slack = self.slack
        return {
            "transport": slack.transport.kind,
            "channel": slack.channel,
            "channel_keys": ",".join(slack.channel_keys) if slack.channel_keys else "(static)",
            "title": slack.title if slack.title is not None else "(not set)",
            "message": slack.message,
            "message_keys": ",".join(slack.message_keys or []),
            "token": "(set)" if slack.token else "(not set)",
            "https_proxy": slack.https_proxy or "(not set)",
            "auto_channels_create": str(slack.auto_channels_create),
            "log_level": self.log_level,
            "dry_run": str(self.dry_run),
            "chunk_size": str(self.chunk_size),
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If required environment variables are missing
            or the options are inconsistent.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
