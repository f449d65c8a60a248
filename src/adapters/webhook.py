"""HTTP webhook adapter.

Telegram POSTs every update here. The handler acknowledges immediately and
hands the update to the background runner, so the sender never waits on a
multi-minute history scan or restore.
"""

from __future__ import annotations

import html
import json
import logging
import time
from typing import Any, Callable

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse

from core.dispatcher import UpdateDispatcher
from core.tasks import TaskRunner

LOGGER = logging.getLogger(__name__)

VERSION = "2.0.0"


def _status_page(token_set: bool, store_connected: bool) -> str:
    ready = token_set and store_connected
    rows = [
        ("Bot token (BOT_TOKEN)", token_set),
        ("Content store", store_connected),
    ]
    items = "\n".join(
        f"<li>{html.escape(label)}: {'✅' if ok else '❌'}</li>" for label, ok in rows
    )
    summary = "System is configured and running." if ready else "Configuration incomplete."
    return (
        "<!DOCTYPE html><html><head><meta charset=\"UTF-8\">"
        "<title>chanvault</title></head><body>"
        "<h1>chanvault</h1>"
        f"<ul>{items}</ul><p>{summary}</p>"
        "</body></html>"
    )


def create_app(
    dispatcher: UpdateDispatcher,
    runner: TaskRunner,
    token_set: bool,
    store_ping: Callable[[], bool],
    webhook_path: str = "/webhook",
) -> FastAPI:
    """Build the FastAPI application serving the webhook and status routes."""

    app = FastAPI(title="chanvault", version=VERSION)

    @app.post(webhook_path)
    async def receive_update(request: Request) -> Any:
        body = await request.body()
        try:
            update = json.loads(body)
        except ValueError:
            LOGGER.warning("Rejected malformed webhook payload")
            return PlainTextResponse("Bad Request", status_code=400)
        if not isinstance(update, dict):
            return PlainTextResponse("Bad Request", status_code=400)

        runner.submit(dispatcher.handle_update(update), name=f"update:{update.get('update_id')}")
        return PlainTextResponse("OK", status_code=200)

    @app.get(webhook_path)
    def webhook_info() -> HTMLResponse:
        return HTMLResponse(
            "<!DOCTYPE html><html><head><meta charset=\"UTF-8\"><title>Webhook</title></head>"
            "<body><h1>Telegram webhook endpoint</h1>"
            "<p>Only Telegram servers POST updates to this address.</p></body></html>"
        )

    @app.get("/api/status")
    def api_status() -> JSONResponse:
        return JSONResponse(
            {
                "token_set": token_set,
                "store_connected": store_ping(),
                "timestamp": int(time.time() * 1000),
                "version": VERSION,
            },
            headers={"Access-Control-Allow-Origin": "*"},
        )

    @app.get("/")
    def index() -> HTMLResponse:
        return HTMLResponse(_status_page(token_set, store_ping()))

    return app
