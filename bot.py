#!/usr/bin/env python3
"""
Lock Bot (single-account group lock enforcer)

Features:
- Logs in with a captured session (users/<ownerID>/appstate.json)
- Group name lock: reverts any title change to the locked name
- Nickname lock: locks every member's nickname; reverts changes through a paced,
  single-lane queue with per-target retries
- Photo lock: caches the current group photo locally and re-applies it on change
- Boss-only command control (/groupname, /nicknames, /photolock, /help)
- Locks persisted to locks.json on every mutation and every SAVE_INTERVAL_SECONDS
- Keepalive HTTP endpoint on PORT

Usage:
    python bot.py <ownerID>
"""

import sys
import logging
import asyncio
from pathlib import Path
from typing import Optional

from assets import AssetCache
from commands import CommandInterpreter
from config import BotConfig, load_config
from errors import ConfigError, HandlerError, RemoteCallError
from keepalive import start_keepalive
from locks import LockStore
from nick_queue import NicknameQueue
from reconcile import Reconciler
from remote import Event

logger = logging.getLogger("lockbot")


# -----------------------------
# Logging
# -----------------------------
def setup_logging(log_file: Optional[Path] = None):
    handlers = [logging.StreamHandler()]
    if log_file is not None:
        handlers.insert(0, logging.FileHandler(log_file))
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=handlers
    )


def handle_loop_exception(loop, context):
    """Log-and-continue for anything that escapes a task."""
    exc = context.get("exception")
    msg = context.get("message", "")
    logger.error(f"⛔ Uncaught error: {exc or msg}")


# -----------------------------
# Lock Bot
# -----------------------------
class LockBot:
    def __init__(self, config: BotConfig, remote=None):
        self.config = config
        tun = config.tunables

        if remote is None:
            from telegram_remote import TelegramRemote
            remote = TelegramRemote(config.appstate)
        self.remote = remote

        self.store = LockStore(config.locks_path)
        self.store.load()

        self.nick_queue = NicknameQueue(
            self.remote,
            delay_ms=tun.nick_delay_ms,
            retry_base_ms=tun.nick_retry_base_ms,
            retry_step_ms=tun.nick_retry_step_ms,
        )
        self.assets = AssetCache(
            config.photos_dir, self.store, self.remote,
            timeout_seconds=tun.download_timeout_seconds,
        )
        self.reconciler = Reconciler(self.remote, self.store, self.assets, self.nick_queue)
        self.commands = CommandInterpreter(
            self.remote, self.store, self.assets, self.nick_queue, config.boss_id
        )

        self._save_task: Optional[asyncio.Task] = None
        self._runner = None
        logger.info(f"Bot initialized for owner {config.owner_id} (boss {config.boss_id}).")

    async def start(self):
        asyncio.get_running_loop().set_exception_handler(handle_loop_exception)
        await self.remote.login()
        self.nick_queue.start()
        self._runner = await start_keepalive(self.store, self.config.tunables.port)
        self._save_task = asyncio.create_task(self.save_worker())
        self.remote.on_event(self.handle_event)
        logger.info("🤖 Bot logged in. Listening...")

    async def save_worker(self):
        interval = self.config.tunables.save_interval_seconds
        while True:
            await asyncio.sleep(interval)
            self.store.save()

    # ------------- Event Handlers -------------
    async def handle_event(self, event: Event):
        try:
            if event.is_notification:
                await self.reconciler.handle(event)
                return
            await self.commands.handle(event)
        except Exception as e:
            err = HandlerError(f"{type(e).__name__}: {e}")
            logger.error(f"❌ Handler error in {event.thread_id}: {err}")

    async def stop(self):
        if self._save_task is not None:
            self._save_task.cancel()
            try:
                await self._save_task
            except asyncio.CancelledError:
                pass
            self._save_task = None
        await self.nick_queue.stop()
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
        self.store.save()
        try:
            await self.remote.disconnect()
        except RemoteCallError as e:
            logger.warning(f"Disconnect failed: {e}")

    async def run(self):
        await self.start()
        try:
            await self.remote.run_until_disconnected()
        finally:
            await self.stop()


# -----------------------------
# Entry point
# -----------------------------
async def main(argv=None) -> int:
    argv = sys.argv if argv is None else argv
    owner_id = argv[1] if len(argv) > 1 else None
    try:
        config = load_config(owner_id)
    except ConfigError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    setup_logging(config.log_path)
    try:
        bot = LockBot(config)
    except ConfigError as e:
        logger.error(f"❌ {e}")
        return 1

    try:
        await bot.run()
    except RemoteCallError as e:
        logger.error(f"❌ Login failed: {e}")
        return 1
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Bot stopped by user")
    return 0


def cli():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
