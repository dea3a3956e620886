"""Shared utilities: logging and retry policies."""

from wavecore.integrations.utilities.logger import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
