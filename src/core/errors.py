"""Exception types shared by the core and adapters."""

from __future__ import annotations


class ChanvaultError(Exception):
    """Base class for all chanvault errors."""


class ConfigurationError(ChanvaultError):
    """Raised when a required credential or store binding is missing."""


class GatewayError(ChanvaultError):
    """Raised when a caller needs a successful Bot API result and did not get one."""

    def __init__(self, method: str, description: str, error_code: int | None = None) -> None:
        super().__init__(f"{method} failed: {description}")
        self.method = method
        self.description = description
        self.error_code = error_code


class ChannelResolutionError(ChanvaultError):
    """Raised when a user-supplied channel reference cannot be resolved."""

    def __init__(self, raw_value: str, reason: str) -> None:
        super().__init__(f"Cannot resolve channel {raw_value!r}: {reason}")
        self.raw_value = raw_value
        self.reason = reason
