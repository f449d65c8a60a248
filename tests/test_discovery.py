from __future__ import annotations

import asyncio

from core.config import DiscoveryConfig
from core.discovery import HistoryDiscoverer
from core.models import BackupEntry, Content, ContentKind
from core.repository import BackupRepository
from fakes import FakeClock, FakeGateway, FakeStore, no_sleep

CHANNEL = "-1001"


def _discoverer(gateway, repository, upper_bound: int = 50, cutoff: int = 50) -> HistoryDiscoverer:
    config = DiscoveryConfig(upper_bound=upper_bound, failure_cutoff=cutoff, probe_delay=0)
    return HistoryDiscoverer(gateway, repository, config, sleep=no_sleep, clock=FakeClock())


def test_scans_down_to_zero_and_counts_saved() -> None:
    messages = {(CHANNEL, mid): {"text": f"post {mid}", "date": 1_600_000_000 + mid} for mid in (48, 49, 50)}
    gateway = FakeGateway(messages=messages)
    repository = BackupRepository(FakeStore())

    report = asyncio.run(_discoverer(gateway, repository).discover_history(CHANNEL, "42", "News"))

    assert report.saved_count == 3
    assert report.skipped_count == 0
    assert report.scanned_count == 51
    assert report.error is None
    assert repository.message_ids(CHANNEL) == [48, 49, 50]
    entry = repository.get_entry(CHANNEL, 49)
    assert entry.original_exists is True
    assert entry.date == 1_600_000_049
    # Id 0 is never probed.
    assert all(mid > 0 for _, _, mid in gateway.forwards)


def test_every_probe_copy_is_deleted() -> None:
    messages = {(CHANNEL, mid): {"text": "x"} for mid in (10, 20)}
    gateway = FakeGateway(messages=messages)
    repository = BackupRepository(FakeStore())

    asyncio.run(_discoverer(gateway, repository, upper_bound=20).discover_history(CHANNEL, "42"))

    assert len(gateway.deleted) == 2
    assert all(chat == CHANNEL for chat, _ in gateway.deleted)


def test_stops_after_consecutive_misses() -> None:
    gateway = FakeGateway()
    repository = BackupRepository(FakeStore())

    report = asyncio.run(_discoverer(gateway, repository, upper_bound=10000).discover_history(CHANNEL, "42"))

    assert report.saved_count == 0
    assert report.scanned_count == 50
    assert len(gateway.forwards) == 50
    assert gateway.forwards[0][2] == 10000


def test_hit_resets_failure_streak() -> None:
    # Hits at 100 and 55 are 44 misses apart, so the scan must reach 55.
    messages = {(CHANNEL, 100): {"text": "new"}, (CHANNEL, 55): {"text": "old"}}
    gateway = FakeGateway(messages=messages)
    repository = BackupRepository(FakeStore())

    report = asyncio.run(_discoverer(gateway, repository, upper_bound=100).discover_history(CHANNEL, "42"))

    assert report.saved_count == 2
    assert repository.message_ids(CHANNEL) == [55, 100]


def test_existing_entries_count_as_skipped() -> None:
    messages = {(CHANNEL, mid): {"text": "fresh"} for mid in (3, 4)}
    gateway = FakeGateway(messages=messages)
    repository = BackupRepository(FakeStore())
    repository.save_entry(CHANNEL, BackupEntry(4, 1, Content(ContentKind.TEXT, "kept"), auto_backup=True))

    report = asyncio.run(_discoverer(gateway, repository, upper_bound=5).discover_history(CHANNEL, "42"))

    assert report.saved_count == 1
    assert report.skipped_count == 1
    assert repository.get_entry(CHANNEL, 4).text == "kept"
    # The copy made while probing an already-saved id is still cleaned up.
    assert len(gateway.deleted) == 2


def test_sends_start_and_final_report_to_requester() -> None:
    gateway = FakeGateway(messages={(CHANNEL, 2): {"text": "hi"}})
    repository = BackupRepository(FakeStore())

    asyncio.run(_discoverer(gateway, repository, upper_bound=2).discover_history(CHANNEL, "42", "News"))

    texts = gateway.texts_to("42")
    assert texts[0].startswith("🔍 Scanning the history of <b>News</b>")
    assert "finished" in texts[-1]
    assert "Saved: 1" in texts[-1]


def test_unexpected_error_is_reported_not_raised() -> None:
    class BrokenRepository(BackupRepository):
        def has_entry(self, channel_id, message_id):
            raise RuntimeError("store offline")

    gateway = FakeGateway(messages={(CHANNEL, 5): {"text": "x"}})
    repository = BrokenRepository(FakeStore())

    report = asyncio.run(_discoverer(gateway, repository, upper_bound=5).discover_history(CHANNEL, "42", "News"))

    assert report.error == "store offline"
    assert "stopped early" in gateway.texts_to("42")[-1]


def test_oversized_history_media_is_kept_without_content() -> None:
    huge = {"video": {"file_id": "huge", "file_size": 30 * 1024 * 1024}, "date": 1_600_000_003}
    gateway = FakeGateway(messages={(CHANNEL, 3): huge})
    repository = BackupRepository(FakeStore())

    report = asyncio.run(_discoverer(gateway, repository, upper_bound=3).discover_history(CHANNEL, "42"))

    assert report.saved_count == 1
    entry = repository.get_entry(CHANNEL, 3)
    assert entry.content is None
    assert entry.original_exists is True
    assert entry.date == 1_600_000_003


def test_progress_edits_one_status_message() -> None:
    messages = {(CHANNEL, mid): {"text": f"post {mid}"} for mid in range(1, 31)}
    gateway = FakeGateway(messages=messages)
    repository = BackupRepository(FakeStore())
    config = DiscoveryConfig(upper_bound=30, failure_cutoff=50, probe_delay=0, progress_every=10, progress_interval=3600)
    discoverer = HistoryDiscoverer(gateway, repository, config, sleep=no_sleep, clock=FakeClock())

    report = asyncio.run(discoverer.discover_history(CHANNEL, "42", "News"))

    assert report.saved_count == 30
    # The start notice and the final report; progress only edits.
    assert len(gateway.texts_to("42")) == 2
    assert len(gateway.edits) >= 2
    assert len({mid for _, mid, _ in gateway.edits}) == 1
    assert all(chat == "42" for chat, _, _ in gateway.edits)
