"""Main Textual app for the chanvault status panel."""

from __future__ import annotations

from typing import Any, Optional

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Center, Container, Horizontal, Vertical
from textual.widgets import ContentSwitcher, Footer, Static, Tab, Tabs

import settings
from adapters.sqlite_store import SQLiteContentStore
from core.repository import BackupRepository

from .constants import TELEGRAM_BLUE
from .tabs.data import DataTab
from .tabs.status import StatusTab


class StatusPanelApp(App):
    """Local operator panel over the backup database."""

    BINDINGS = [
        ("r", "refresh", "Refresh"),
        ("q", "quit", "Quit"),
    ]

    CSS = """
    Screen {
        background: #0f1a21;
        color: #e8eef5;
    }

    #header {
        height: 6;
        padding: 1 4;
        border-bottom: solid #2a3a46;
    }

    #header-left, #header-right {
        width: 1fr;
    }

    #header-right {
        text-align: right;
    }

    #title {
        text-style: bold;
    }

    .subtle {
        color: #c6d2dd;
    }

    #tabs-bar {
        height: 5;
        padding: 0 4;
        border-bottom: solid #2a3a46;
    }

    #tabs-center {
        width: 100%;
        height: 4;
        align: center middle;
    }

    #tabs {
        width: auto;
    }

    #status-summary {
        padding: 1 2;
        height: auto;
    }

    #data-title, #data-output {
        padding: 0 2;
    }
    """

    def __init__(self, store: Optional[SQLiteContentStore] = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._store = store or SQLiteContentStore(settings.DB_PATH)
        self._store.init_db()
        self._repository = BackupRepository(self._store)

    def compose(self) -> ComposeResult:
        with Container(id="header"):
            with Horizontal(id="header-row"):
                with Vertical(id="header-left"):
                    yield Static(self._title_text(), id="title")
                    yield Static(f"webhook path: {settings.WEBHOOK_PATH}", classes="subtle")
                with Vertical(id="header-right"):
                    yield Static(f"db: {settings.DB_PATH}", classes="subtle")

        with Container(id="tabs-bar"):
            with Center(id="tabs-center"):
                yield Tabs(
                    Tab("Status", id="status"),
                    Tab("Data", id="data"),
                    id="tabs",
                )

        with ContentSwitcher(id="content", initial="status"):
            yield StatusTab(self._repository, self._summary(), id="status")
            yield DataTab(self._repository, id="data")
        yield Footer()

    def on_tabs_tab_activated(self, event: Tabs.TabActivated) -> None:
        tab_id = event.tab.id or "status"
        self.query_one("#content", ContentSwitcher).current = tab_id

    def action_refresh(self) -> None:
        self.query_one(StatusTab).reload()
        self.query_one(DataTab).load_backups()

    def _summary(self) -> list[tuple[str, str]]:
        return [
            ("bot token", "set" if settings.BOT_TOKEN else "missing"),
            ("store", "connected" if self._store.ping() else "unreachable"),
            ("users", str(len(self._repository.list_user_ids()))),
            ("discovery upper bound", str(settings.DISCOVERY_UPPER_BOUND)),
            ("catch-up", f"every {settings.RECONCILE_INTERVAL_HOURS:g}h" if settings.RECONCILE_ENABLED else "off"),
        ]

    @staticmethod
    def _title_text() -> Text:
        return Text.assemble(
            ("CHAN", TELEGRAM_BLUE),
            ("VAULT > Status Panel", "bold"),
        )
