"""Status tab: configuration health and per-channel backup counts."""

from __future__ import annotations

from typing import Any

from textual.containers import Container, Vertical
from textual.widgets import DataTable, Static

from core.repository import BackupRepository


def collect_channel_rows(repository: BackupRepository) -> list[dict[str, Any]]:
    """One row per registered channel, merged across owners."""

    channels: dict[str, dict[str, Any]] = {}
    for user in repository.iter_users():
        for channel in user.channels:
            row = channels.setdefault(
                channel.id,
                {
                    "channel_id": channel.id,
                    "title": channel.title,
                    "owners": 0,
                    "entries": repository.count_entries(channel.id),
                    "latest": repository.latest_message_id(channel.id),
                },
            )
            row["owners"] += 1
    return sorted(channels.values(), key=lambda row: row["title"].lower())


class StatusTab(Container):
    """Read-only overview of the running deployment."""

    def __init__(self, repository: BackupRepository, summary: list[tuple[str, str]], **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._repository = repository
        self._summary = summary

    def compose(self):
        with Vertical(id="status-panel"):
            yield Static(self._summary_text(), id="status-summary")
            yield DataTable(id="channels-table", cursor_type="row")

    def on_mount(self) -> None:
        table = self.query_one("#channels-table", DataTable)
        table.add_column("channel", key="title", width=28)
        table.add_column("id", key="channel_id", width=16)
        table.add_column("owners", key="owners", width=8)
        table.add_column("backups", key="entries", width=9)
        table.add_column("latest id", key="latest", width=10)
        table.zebra_stripes = True
        table.styles.height = "1fr"
        self.reload()

    def reload(self) -> None:
        table = self.query_one("#channels-table", DataTable)
        table.clear()
        for row in collect_channel_rows(self._repository):
            table.add_row(
                row["title"],
                row["channel_id"],
                str(row["owners"]),
                str(row["entries"]),
                str(row["latest"] or "-"),
                key=row["channel_id"],
            )

    def _summary_text(self) -> str:
        return "\n".join(f"{label}: {value}" for label, value in self._summary)
