"""
Exception types raised by the streaming core.
"""

from __future__ import annotations

from typing import Optional


class LiveChannelError(Exception):
    """Base class for every error the channel loop knows how to recover from."""


class ChannelNotFound(LiveChannelError):
    def __init__(self, channel_id: str) -> None:
        super().__init__(f"Unknown channel: {channel_id}")
        self.channel_id = channel_id


class ValidationError(LiveChannelError):
    """Unknown show, degenerate range or other bad input."""


class ResourceError(LiveChannelError):
    """Missing source file, unusable binary or filesystem failure."""


class ProcessError(LiveChannelError):
    """External process failed to spawn or exited non-zero."""

    def __init__(self, message: str, returncode: Optional[int] = None) -> None:
        super().__init__(message)
        self.returncode = returncode


class ProbeError(ProcessError):
    """ffprobe could not describe the source."""


class ConsistencyError(LiveChannelError):
    """Process reported success but the expected artifact is missing."""


class ConfigError(LiveChannelError):
    """Persisted configuration could not be read or written."""
