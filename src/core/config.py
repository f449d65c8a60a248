"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass

# Media above this size is never backed up.
MAX_MEDIA_BYTES = 25 * 1024 * 1024


@dataclass(frozen=True)
class RecorderConfig:
    """Settings for the per-post backup recorder."""

    max_media_bytes: int = MAX_MEDIA_BYTES
    notify_owners: bool = True


@dataclass(frozen=True)
class DiscoveryConfig:
    """Settings for the backward history scan run on channel registration."""

    upper_bound: int = 10000
    failure_cutoff: int = 50
    probe_delay: float = 0.3
    progress_every: int = 10
    progress_interval: float = 5.0
    max_media_bytes: int = MAX_MEDIA_BYTES


@dataclass(frozen=True)
class RestoreConfig:
    """Settings for replaying backups into a destination channel."""

    send_delay: float = 0.1
    progress_every: int = 10
    progress_interval: float = 5.0


@dataclass(frozen=True)
class ReconcileConfig:
    """Settings for the periodic bounded-window catch-up scan."""

    window: int = 100
    probe_delay: float = 0.3
    channel_delay: float = 1.0
    max_media_bytes: int = MAX_MEDIA_BYTES


@dataclass(frozen=True)
class SessionConfig:
    """Lifetime of the button-driven restore workflow slot."""

    ttl_seconds: int = 600
