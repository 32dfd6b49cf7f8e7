"""Slack Forwarder - chat output adapter for buffered log records."""

__version__ = "0.1.0"
