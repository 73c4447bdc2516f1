"""Exception types raised by hyprwatch.

Every failure is fatal: lower layers raise one of these and the CLI entry
point reports it once and exits non-zero.
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "HyprwatchError",
    "ConfigError",
    "EndpointUnreachableError",
    "ChannelIOError",
    "ProtocolDecodeError",
]


class HyprwatchError(Exception):
    """Base class for all hyprwatch errors."""


class ConfigError(HyprwatchError, ValueError):
    """Invalid or missing configuration, detected before any connection."""


class _ChannelError(HyprwatchError):
    """An error tied to one socket path."""

    description = "Socket error on"

    def __init__(self, path: str, cause: Optional[BaseException] = None) -> None:
        self.path = str(path)
        self.cause = cause
        msg = f"{self.description} {self.path}"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)


class EndpointUnreachableError(_ChannelError):
    """The socket could not be connected to."""

    description = "Failed to connect to"


class ChannelIOError(_ChannelError):
    """A read or write failed on an open socket."""

    description = "I/O error on"


class ProtocolDecodeError(_ChannelError):
    """Bytes received on a socket are not valid UTF-8."""

    description = "Received invalid UTF-8 from"
