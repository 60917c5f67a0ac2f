#!/usr/bin/env python3
"""Run the floatingtasks callback server together with the sync poller."""

import asyncio
import logging
import os

import uvicorn
from dotenv import load_dotenv

load_dotenv()

from floatingtasks.api.app import app, get_store  # noqa: E402
from floatingtasks.integrations.google_calendar import fetch_today_events  # noqa: E402
from floatingtasks.poller import SyncPoller  # noqa: E402

logger = logging.getLogger(__name__)


def build_poller() -> SyncPoller:
    """Poller over the server's store.

    Calendar sync runs only when GOOGLE_ACCESS_TOKEN is set. Goal snapshots arrive through
    the callback endpoint.
    """
    token = os.getenv("GOOGLE_ACCESS_TOKEN")
    if not token:
        logger.warning("GOOGLE_ACCESS_TOKEN not set; calendar sync is disabled")
    fetch_calendar = (lambda: fetch_today_events(token)) if token else None
    return SyncPoller(get_store(), fetch_calendar=fetch_calendar)


async def serve() -> None:
    """Serve the callback endpoint and run the poller on the same event loop."""
    server = uvicorn.Server(uvicorn.Config(
        app,
        host="127.0.0.1",
        port=int(os.getenv("CALLBACK_PORT", "19837")),
    ))
    poller_task = asyncio.create_task(build_poller().run(should_stop=lambda: server.should_exit))
    try:
        await server.serve()
    finally:
        poller_task.cancel()


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG if os.getenv("DEBUG", "False").lower() == "true" else logging.INFO)
    asyncio.run(serve())
