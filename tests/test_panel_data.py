from __future__ import annotations

import csv
import json

from core.models import BackupEntry, Channel, Content, ContentKind, UserRecord
from core.repository import BackupRepository
from fakes import FakeStore
from frontend.tabs.data import EXPORT_FIELDS, collect_backup_rows, write_export
from frontend.tabs.status import collect_channel_rows


def _repository() -> BackupRepository:
    repository = BackupRepository(FakeStore())
    repository.save_user(UserRecord("1", [Channel("-1001", "News")]))
    repository.save_user(UserRecord("2", [Channel("-1001", "News"), Channel("-1003", "Art")]))
    repository.save_entry("-1001", BackupEntry(1, 10, Content(ContentKind.TEXT, "first"), auto_backup=True))
    repository.save_entry("-1001", BackupEntry(2, 20, Content(ContentKind.PHOTO, "ph"), caption="pic"))
    # A channel nobody has registered any more still shows up in the data view.
    repository.save_entry("-1009", BackupEntry(5, 30))
    return repository


def test_backup_rows_cover_unregistered_channels() -> None:
    rows = collect_backup_rows(_repository())

    assert [(row["channel_id"], row["message_id"]) for row in rows] == [("-1001", 2), ("-1001", 1), ("-1009", 5)]
    assert rows[0]["kind"] == "photo"
    assert rows[0]["caption"] == "pic"
    assert rows[2]["kind"] == ""


def test_channel_rows_merge_owners() -> None:
    rows = collect_channel_rows(_repository())

    assert [row["title"] for row in rows] == ["Art", "News"]
    news = rows[1]
    assert news["owners"] == 2
    assert news["entries"] == 2
    assert news["latest"] == 2


def test_write_export_json_and_csv(tmp_path) -> None:
    rows = collect_backup_rows(_repository())

    json_path = write_export(rows, "json", tmp_path / "exports")
    csv_path = write_export(rows, "csv", tmp_path / "exports")

    assert json.loads(json_path.read_text(encoding="utf-8"))[0]["value"] == "ph"
    with csv_path.open(encoding="utf-8", newline="") as handle:
        reader = csv.DictReader(handle)
        assert reader.fieldnames == EXPORT_FIELDS
        assert len(list(reader)) == 3
