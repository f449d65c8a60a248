"""Application entry point for the chanvault bot."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from typing import Optional

import uvicorn
from art import tprint
from dotenv import load_dotenv

import settings
from adapters.bot_api_gateway import TelegramBotGateway
from adapters.sqlite_store import SQLiteContentStore
from adapters.webhook import create_app
from core.config import DiscoveryConfig, ReconcileConfig, RecorderConfig, RestoreConfig, SessionConfig
from core.discovery import HistoryDiscoverer
from core.dispatcher import UpdateDispatcher
from core.errors import ConfigurationError, GatewayError
from core.reconciler import PeriodicReconciler
from core.recorder import BackupRecorder
from core.repository import BackupRepository
from core.restore import RestoreOrchestrator
from core.sessions import RestoreSessions
from core.tasks import TaskRunner

NAME = "CHANVAULT"
FONT = "tarty-1"

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", False):
        return []
    values = []
    for name in redact_cfg.get("patterns", []):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging() -> None:
    config = settings.LOGGING or {}
    if not config.get("enabled", True):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    formatter = _RedactingFormatter(_collect_redaction_values(config), fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/chanvault.log")
        if not os.path.isabs(path):
            path = os.path.join(settings.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        file_handler = RotatingFileHandler(
            path,
            maxBytes=int(file_cfg.get("max_bytes", 5 * 1024 * 1024)),
            backupCount=int(file_cfg.get("backup_count", 5)),
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)


@dataclass
class Services:
    """Everything the entry points need, wired once."""

    store: SQLiteContentStore
    gateway: TelegramBotGateway
    runner: TaskRunner
    dispatcher: UpdateDispatcher
    reconciler: PeriodicReconciler


def _require_token() -> str:
    if not settings.BOT_TOKEN:
        raise ConfigurationError("BOT_TOKEN is not set; add it to the environment or .env")
    return settings.BOT_TOKEN


def build_services(bot_token: str) -> Services:
    store = SQLiteContentStore(settings.DB_PATH)
    store.init_db()
    repository = BackupRepository(store)
    gateway = TelegramBotGateway(bot_token, timeout=settings.API_TIMEOUT)
    runner = TaskRunner()

    recorder = BackupRecorder(
        gateway,
        repository,
        RecorderConfig(max_media_bytes=settings.MAX_MEDIA_BYTES, notify_owners=settings.NOTIFY_OWNERS),
    )
    discoverer = HistoryDiscoverer(
        gateway,
        repository,
        DiscoveryConfig(
            upper_bound=settings.DISCOVERY_UPPER_BOUND,
            failure_cutoff=settings.DISCOVERY_FAILURE_CUTOFF,
            probe_delay=settings.DISCOVERY_PROBE_DELAY,
            progress_every=settings.DISCOVERY_PROGRESS_EVERY,
            progress_interval=settings.DISCOVERY_PROGRESS_INTERVAL,
            max_media_bytes=settings.MAX_MEDIA_BYTES,
        ),
    )
    restore_config = RestoreConfig(
        send_delay=settings.RESTORE_SEND_DELAY,
        progress_every=settings.RESTORE_PROGRESS_EVERY,
        progress_interval=settings.RESTORE_PROGRESS_INTERVAL,
    )
    sessions = RestoreSessions(store, SessionConfig(ttl_seconds=settings.RESTORE_SESSION_TTL))

    dispatcher = UpdateDispatcher(
        gateway,
        repository,
        sessions,
        recorder,
        discoverer,
        # One orchestrator per restore so concurrent restores keep separate state.
        lambda: RestoreOrchestrator(gateway, repository, restore_config),
        runner,
    )
    reconciler = PeriodicReconciler(
        gateway,
        repository,
        ReconcileConfig(
            window=settings.RECONCILE_WINDOW,
            probe_delay=settings.RECONCILE_PROBE_DELAY,
            channel_delay=settings.RECONCILE_CHANNEL_DELAY,
            max_media_bytes=settings.MAX_MEDIA_BYTES,
        ),
    )
    return Services(store, gateway, runner, dispatcher, reconciler)


async def _reconcile_loop(reconciler: PeriodicReconciler, interval_hours: float) -> None:
    """Run a catch-up sweep every ``interval_hours`` until cancelled."""

    while True:
        await asyncio.sleep(interval_hours * 3600)
        try:
            report = await reconciler.reconcile_all()
        except Exception:
            LOGGER.exception("Reconcile sweep failed")
            continue
        LOGGER.info(
            "Reconcile sweep complete: channels=%s, new=%s, failed=%s",
            report.channels_checked,
            report.new_entries,
            report.failed_channels,
        )


async def _serve(services: Services) -> None:
    app = create_app(
        services.dispatcher,
        services.runner,
        token_set=True,
        store_ping=services.store.ping,
        webhook_path=settings.WEBHOOK_PATH,
    )
    server = uvicorn.Server(
        uvicorn.Config(app, host=settings.WEBHOOK_HOST, port=settings.WEBHOOK_PORT, log_config=None)
    )

    reconcile_task: Optional[asyncio.Task] = None
    if settings.RECONCILE_ENABLED:
        reconcile_task = asyncio.create_task(
            _reconcile_loop(services.reconciler, settings.RECONCILE_INTERVAL_HOURS), name="reconcile-loop"
        )
    try:
        await server.serve()
    finally:
        if reconcile_task:
            reconcile_task.cancel()
            await asyncio.gather(reconcile_task, return_exceptions=True)
        await services.runner.cancel_all()


async def _poll(services: Services) -> None:
    """Pull updates with getUpdates instead of receiving a webhook."""

    offset: Optional[int] = None
    LOGGER.info("Polling for updates. Press Ctrl+C to stop.")
    try:
        while True:
            result = await services.gateway.get_updates(offset=offset, timeout=25)
            if not result.ok:
                LOGGER.warning("getUpdates failed: %s", result.description)
                await asyncio.sleep(5)
                continue
            for update in result.result or []:
                offset = int(update["update_id"]) + 1
                services.runner.submit(
                    services.dispatcher.handle_update(update), name=f"update:{update['update_id']}"
                )
    finally:
        await services.runner.cancel_all()


async def _reconcile_once(services: Services) -> None:
    report = await services.reconciler.reconcile_all()
    LOGGER.info(
        "Reconcile sweep complete: channels=%s, new=%s, failed=%s",
        report.channels_checked,
        report.new_entries,
        report.failed_channels,
    )


async def _set_webhook(services: Services, url: str) -> None:
    result = await services.gateway.set_webhook(url)
    try:
        result.require("setWebhook")
    except GatewayError as exc:
        LOGGER.error("%s", exc)
        return
    LOGGER.info("Webhook registered at %s", url)


def _run_async(command: str, url: Optional[str] = None) -> None:
    _configure_logging()
    try:
        services = build_services(_require_token())
    except ConfigurationError as exc:
        LOGGER.error("%s", exc)
        return

    if command == "run":
        LOGGER.info("Starting chanvault on %s:%s%s", settings.WEBHOOK_HOST, settings.WEBHOOK_PORT, settings.WEBHOOK_PATH)
        asyncio.run(_serve(services))
    elif command == "poll":
        try:
            asyncio.run(_poll(services))
        except KeyboardInterrupt:
            LOGGER.info("Stopped polling")
    elif command == "reconcile":
        asyncio.run(_reconcile_once(services))
    elif command == "set-webhook":
        target = url or settings.WEBHOOK_PUBLIC_URL
        if not target:
            LOGGER.error("No webhook URL given; pass --url or set webhook.public_url")
            return
        asyncio.run(_set_webhook(services, target))


def _panel() -> None:
    from frontend.app import StatusPanelApp

    StatusPanelApp().run()


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="chanvault")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Serve the webhook and the periodic catch-up scan")
    subparsers.add_parser("poll", help="Fetch updates with long polling (no public URL needed)")
    subparsers.add_parser("reconcile", help="Run one catch-up sweep and exit")
    webhook_parser = subparsers.add_parser("set-webhook", help="Register the webhook URL with Telegram")
    webhook_parser.add_argument("--url", help="Public HTTPS URL of the webhook route")
    subparsers.add_parser("panel", help="Launch the status TUI")

    args = parser.parse_args(argv)
    _print_banner()
    if args.command == "panel":
        _panel()
        return
    _run_async(args.command or "run", getattr(args, "url", None))


if __name__ == "__main__":
    main()
