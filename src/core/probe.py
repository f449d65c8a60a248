"""Forward-then-delete probing of channel message ids.

The Bot API offers no way to list the messages of a channel, so existence of
a message id is tested by forwarding it into the same channel and deleting
the copy straight away. Probing must leave the channel's visible content
unchanged, so the copy is deleted even when the message is already backed up.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional

from core.content import entry_from_message, exceeds_size_limit, origin_date
from core.models import BackupEntry
from core.ports import ChannelGateway
from core.repository import BackupRepository

LOGGER = logging.getLogger(__name__)


class ProbeOutcome(str, Enum):
    SAVED = "saved"
    SKIPPED = "skipped"
    MISSING = "missing"


async def probe_message(gateway: ChannelGateway, channel_id: str, message_id: int) -> Optional[dict[str, Any]]:
    """Return the forwarded copy of a message if the id exists, else None.

    API errors and transport failures both count as "not found"; the caller
    decides how many of those it tolerates.
    """

    try:
        forwarded = await gateway.forward_message(channel_id, channel_id, message_id)
    except Exception:
        LOGGER.debug("Probe %s:%s raised", channel_id, message_id, exc_info=True)
        return None
    if not forwarded.ok:
        return None

    copy_id = forwarded.message_id
    if copy_id is not None:
        try:
            deleted = await gateway.delete_message(channel_id, copy_id)
        except Exception:
            LOGGER.exception("Failed to delete probe copy %s in %s", copy_id, channel_id)
        else:
            if not deleted.ok:
                LOGGER.warning(
                    "Probe copy %s left in %s: %s", copy_id, channel_id, deleted.description
                )
    return forwarded.result if isinstance(forwarded.result, dict) else {}


async def probe_and_record(
    gateway: ChannelGateway,
    repository: BackupRepository,
    channel_id: str,
    message_id: int,
    max_media_bytes: Optional[int] = None,
    **tags: bool,
) -> ProbeOutcome:
    """Probe one message id and back it up if it exists and is new.

    Oversized media is recorded as a bare entry (id, date, tags) without its
    file handle, so the message is known to exist but is never resent.
    """

    copy = await probe_message(gateway, channel_id, message_id)
    if copy is None:
        return ProbeOutcome.MISSING
    if repository.has_entry(channel_id, message_id):
        return ProbeOutcome.SKIPPED

    if max_media_bytes is not None and exceeds_size_limit(copy, max_media_bytes):
        LOGGER.info("Recording oversized message %s in %s without content", message_id, channel_id)
        entry = BackupEntry(message_id, origin_date(copy), original_exists=True, **tags)
    else:
        entry = entry_from_message(copy, message_id=message_id, original_exists=True, **tags)
    if not repository.save_entry(channel_id, entry):
        return ProbeOutcome.SKIPPED
    return ProbeOutcome.SAVED
