"""Logging setup for the legal chat service."""

from libs.telemetry.logging_config import configure_logging

__all__ = ["configure_logging"]
