"""Data tab for browsing and exporting backed-up channel posts."""

from __future__ import annotations

import csv
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from textual import on
from textual.containers import Container, Horizontal, Vertical
from textual.widgets import Button, DataTable, Static

from core.repository import BackupRepository

from ..constants import EXPORTS_DIR

EXPORT_FIELDS = [
    "channel_id",
    "message_id",
    "date",
    "kind",
    "value",
    "caption",
    "auto_backup",
    "manual_backup",
    "periodic_backup",
]


def collect_backup_rows(repository: BackupRepository) -> list[dict[str, Any]]:
    """Flatten every stored entry into export rows, newest first per channel."""

    rows: list[dict[str, Any]] = []
    for channel_id in repository.backed_up_channel_ids():
        for entry in reversed(repository.list_entries(channel_id)):
            rows.append(
                {
                    "channel_id": channel_id,
                    "message_id": entry.message_id,
                    "date": entry.date,
                    "kind": entry.content.kind.value if entry.content else "",
                    "value": entry.content.value if entry.content else "",
                    "caption": entry.caption or "",
                    "auto_backup": entry.auto_backup,
                    "manual_backup": entry.manual_backup,
                    "periodic_backup": entry.periodic_backup,
                }
            )
    return rows


def write_export(rows: list[dict[str, Any]], fmt: str, directory: Path) -> Path:
    """Write rows to a timestamped JSON or CSV file and return its path."""

    directory.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    path = directory / f"backups-{timestamp}.{fmt}"
    if fmt == "json":
        path.write_text(json.dumps(rows, indent=2, ensure_ascii=False), encoding="utf-8")
    else:
        with path.open("w", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=EXPORT_FIELDS)
            writer.writeheader()
            writer.writerows(rows)
    return path


class DataTab(Container):
    """Data tab to browse backups and export to JSON/CSV."""

    def __init__(self, repository: BackupRepository, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._repository = repository
        self._rows: list[dict[str, Any]] = []
        self._table_ready = False

    def compose(self):
        with Vertical(id="data-panel"):
            yield Static("Backups", id="data-title")
            yield DataTable(id="data-table", cursor_type="row")
            with Horizontal(id="data-actions"):
                yield Button("Refresh", id="refresh-data")
                yield Button("Export JSON", id="export-json", variant="success")
                yield Button("Export CSV", id="export-csv")
            yield Static("", id="data-output")

    def on_mount(self) -> None:
        table = self.query_one("#data-table", DataTable)
        table.add_column("date", key="date", width=18)
        table.add_column("channel", key="channel_id", width=16)
        table.add_column("id", key="message_id", width=8)
        table.add_column("kind", key="kind", width=10)
        table.add_column("preview", key="value", width=42)
        table.zebra_stripes = True
        table.styles.height = "1fr"
        self.query_one("#data-actions").styles.height = 3
        self._table_ready = True
        self.load_backups()

    @on(Button.Pressed, "#refresh-data")
    def _on_refresh(self) -> None:
        self.load_backups()

    @on(Button.Pressed, "#export-json")
    def _on_export_json(self) -> None:
        self._export_rows("json")

    @on(Button.Pressed, "#export-csv")
    def _on_export_csv(self) -> None:
        self._export_rows("csv")

    def load_backups(self) -> None:
        if not self._table_ready:
            return
        table = self.query_one("#data-table", DataTable)
        table.clear()
        self._rows = collect_backup_rows(self._repository)
        for row in self._rows:
            table.add_row(
                self._format_date_display(row["date"]),
                row["channel_id"],
                str(row["message_id"]),
                row["kind"],
                self._clip_text(row["value"] or row["caption"]),
                key=f"{row['channel_id']}:{row['message_id']}",
            )
        self._set_output(f"loaded {len(self._rows)} backups")

    def _export_rows(self, fmt: str) -> None:
        if not self._rows:
            self._set_output("No backups to export.")
            return
        try:
            path = write_export(self._rows, fmt, EXPORTS_DIR)
        except OSError as exc:
            self._set_output(f"export failed: {exc.strerror or exc}")
            return
        self._set_output(f"exported {len(self._rows)} backups to {path}")

    def _set_output(self, message: str) -> None:
        self.query_one("#data-output", Static).update(message)

    @staticmethod
    def _clip_text(value: str, limit: int = 64) -> str:
        value = value.replace("\n", " ")
        if len(value) <= limit:
            return value
        return value[: limit - 3] + "..."

    @staticmethod
    def _format_date_display(value: int) -> str:
        if not value:
            return ""
        return datetime.fromtimestamp(value, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")
