from __future__ import annotations

from adapters.sqlite_store import SQLiteContentStore
from core.models import BackupEntry, Content, ContentKind
from core.repository import BackupRepository


def _store(tmp_path) -> SQLiteContentStore:
    store = SQLiteContentStore(str(tmp_path / "chanvault.db"))
    store.init_db()
    return store


def test_put_get_delete(tmp_path) -> None:
    store = _store(tmp_path)

    assert store.get("user:1") is None
    store.put("user:1", '{"channels": []}')
    store.put("user:1", '{"channels": [1]}')
    assert store.get("user:1") == '{"channels": [1]}'

    store.delete("user:1")
    assert store.get("user:1") is None
    assert store.ping() is True


def test_list_keys_is_prefix_exact(tmp_path) -> None:
    store = _store(tmp_path)
    for key in ["backup:-1001:2", "backup:-1001:10", "backup:-10012:1", "BACKUP:-1001:3", "user:1"]:
        store.put(key, "x")

    assert store.list_keys("backup:-1001:") == ["backup:-1001:10", "backup:-1001:2"]
    assert store.list_keys("user:") == ["user:1"]


def test_list_keys_treats_wildcards_literally(tmp_path) -> None:
    store = _store(tmp_path)
    store.put("user:%", "x")
    store.put("user:_1", "x")
    store.put("user:a1", "x")

    assert store.list_keys("user:_") == ["user:_1"]


def test_repository_orders_entries_numerically(tmp_path) -> None:
    repository = BackupRepository(_store(tmp_path))
    for message_id in (10, 2, 33):
        repository.save_entry("-1001", BackupEntry(message_id, 1, Content(ContentKind.TEXT, str(message_id))))

    assert repository.message_ids("-1001") == [2, 10, 33]
    assert repository.latest_message_id("-1001") == 33
    assert [entry.message_id for entry in repository.list_entries("-1001")] == [2, 10, 33]
    assert repository.backed_up_channel_ids() == ["-1001"]
