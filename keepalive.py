"""Keepalive HTTP endpoint for hosting platforms that ping the process."""

import time
import logging
from typing import Optional

from aiohttp import web

from locks import LockStore

logger = logging.getLogger("lockbot")

store_key = web.AppKey("store", LockStore)
started_key = web.AppKey("started", float)


async def _handle_root(request: web.Request) -> web.Response:
    return web.Response(text="OK")


async def _handle_health(request: web.Request) -> web.Response:
    store = request.app[store_key]
    return web.json_response(
        {
            "status": "ok",
            "uptime_seconds": round(time.monotonic() - request.app[started_key]),
            "locks": store.counts(),
        }
    )


def create_app(store: LockStore) -> web.Application:
    app = web.Application()
    app[store_key] = store
    app[started_key] = time.monotonic()
    app.router.add_get("/", _handle_root)
    app.router.add_get("/health", _handle_health)
    return app


async def start_keepalive(store: LockStore, port: int) -> Optional[web.AppRunner]:
    """Start the endpoint on 0.0.0.0:port. Returns None if it could not bind."""
    runner = web.AppRunner(create_app(store))
    await runner.setup()
    try:
        site = web.TCPSite(runner, "0.0.0.0", port)
        await site.start()
    except OSError as e:
        logger.warning(f"Keepalive failed: {e}")
        await runner.cleanup()
        return None
    logger.info(f"🌐 Keepalive on {port}")
    return runner
