"""
Command interpreter for the boss identity.

Grammar: first token (case-insensitive, optional leading '/') picks the
command, the rest are arguments; trailing arguments are rejoined with spaces
to form a name or nickname.

    /help                     usage text
    /groupname on <name>      lock + set title
    /groupname off            unlock title
    /nicknames on <nick>      set every member's nickname (queued) + lock
    /nicknames off            clear locked nicknames (queued) + unlock
    /photolock on|off|reset   lock current photo / unlock / push cached photo
    /photolock                ON/OFF status

Text from anyone other than the boss is ignored. Unknown subcommands of a
known command get no reply.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List

from assets import AssetCache
from errors import DownloadError, MissingAssetError
from locks import LockStore
from nick_queue import NicknameQueue
from remote import Event, RemoteClient

logger = logging.getLogger("lockbot")

Handler = Callable[[str, List[str]], Awaitable[None]]


class CommandInterpreter:
    HELP_TEXT = (
        "👑 LOCK BOT COMMANDS 👑\n\n"
        "/groupname on <name> → Lock group name\n"
        "/groupname off → Unlock group name\n\n"
        "/nicknames on <nick> → Lock all nicknames\n"
        "/nicknames off → Unlock nicknames\n\n"
        "/photolock on → Lock current group photo\n"
        "/photolock off → Unlock group photo\n"
        "/photolock reset → Restore locked photo\n"
        "/photolock → Show photo lock status\n\n"
        "🧠 Only admin UID: {boss}"
    )

    def __init__(self, remote: RemoteClient, store: LockStore, assets: AssetCache,
                 nick_queue: NicknameQueue, boss_id: str):
        self.remote = remote
        self.store = store
        self.assets = assets
        self.nick_queue = nick_queue
        self.boss_id = str(boss_id)
        self._thread_locks: Dict[str, asyncio.Lock] = {}
        self._commands: Dict[str, Handler] = {
            "help": self.cmd_help,
            "anurag": self.cmd_help,
            "groupname": self.cmd_groupname,
            "nicknames": self.cmd_nicknames,
            "photolock": self.cmd_photolock,
        }

    def is_authorized(self, sender_id: str) -> bool:
        return bool(sender_id) and str(sender_id) == self.boss_id

    @staticmethod
    def parse(body: str):
        parts = body.strip().split()
        if not parts:
            return "", []
        cmd = parts[0]
        if cmd.startswith("/"):
            cmd = cmd[1:]
        return cmd.lower(), parts[1:]

    async def handle(self, event: Event) -> bool:
        """Run a boss command. Returns True if the text matched a command."""
        if not self.is_authorized(event.sender_id) or not event.body:
            return False
        cmd, args = self.parse(event.body)
        handler = self._commands.get(cmd)
        if handler is None:
            return False
        thread_id = event.thread_id
        # one command at a time per thread so on/off pairs apply in order
        async with self._lock_for(thread_id):
            try:
                await handler(thread_id, args)
            except Exception as e:
                logger.error(f"Command /{cmd} failed in {thread_id}: {e}")
                await self.safe_reply(thread_id, f"❌ /{cmd} failed: {e}")
        return True

    def _lock_for(self, thread_id: str) -> asyncio.Lock:
        lock = self._thread_locks.get(thread_id)
        if lock is None:
            lock = self._thread_locks[thread_id] = asyncio.Lock()
        return lock

    async def safe_reply(self, thread_id: str, text: str):
        try:
            await self.remote.send_message(text, thread_id)
        except Exception as e:
            logger.error(f"Reply failed in {thread_id}: {e}")

    # ------------- Commands -------------
    async def cmd_help(self, thread_id: str, args: List[str]):
        await self.safe_reply(thread_id, self.HELP_TEXT.format(boss=self.boss_id))

    async def cmd_groupname(self, thread_id: str, args: List[str]):
        sub = (args[0] if args else "").lower()
        if sub == "on":
            name = " ".join(args[1:])
            if not name:
                await self.safe_reply(thread_id, "⚠️ Usage: /groupname on <Name>")
                return
            self.store.set_group_name(thread_id, name)
            await self.remote.set_title(name, thread_id)
            await self.safe_reply(thread_id, f"✅ Group name locked: {name}")
        elif sub == "off":
            self.store.remove_group_name(thread_id)
            await self.safe_reply(thread_id, "🔓 Group name unlocked")

    async def cmd_nicknames(self, thread_id: str, args: List[str]):
        sub = (args[0] if args else "").lower()
        if sub == "on":
            nick = " ".join(args[1:])
            if not nick:
                await self.safe_reply(thread_id, "⚠️ Usage: /nicknames on <Nick>")
                return
            await self.enforce_nick_lock(thread_id, nick)
            await self.safe_reply(thread_id, f'🔐 Nicknames locked as "{nick}"')
        elif sub == "off":
            await self.release_nick_lock(thread_id)
            await self.safe_reply(thread_id, "🔓 Nicknames unlocked")

    async def enforce_nick_lock(self, thread_id: str, nick: str) -> int:
        """Lock every current member to `nick`; returns how many writes landed."""
        info = await self.remote.get_thread_info(thread_id)
        members = [str(uid) for uid in info.participant_ids]
        # lock first so echoes of our own writes are not reverted to an older value
        self.store.set_nicknames(thread_id, {uid: nick for uid in members})
        applied = 0
        for uid in members:
            if await self.nick_queue.retry_change_nickname(thread_id, uid, nick, retries=3):
                applied += 1
        logger.info(f"🔐 Nicklock enforced for {thread_id} ({applied}/{len(members)})")
        return applied

    async def release_nick_lock(self, thread_id: str) -> int:
        locked = self.store.get_nicknames(thread_id)
        # unlock first so the clears below are not reverted
        self.store.remove_nicknames(thread_id)
        if not locked:
            return 0
        cleared = 0
        for uid in locked:
            if await self.nick_queue.retry_change_nickname(thread_id, uid, "", retries=3):
                cleared += 1
        logger.info(f"🔓 Nicklock released for {thread_id} ({cleared}/{len(locked)})")
        return cleared

    async def cmd_photolock(self, thread_id: str, args: List[str]):
        sub = (args[0] if args else "").lower()
        if not args:
            state = "ON" if self.store.get_group_pic(thread_id) else "OFF"
            await self.safe_reply(thread_id, f"📸 Photo lock is {state}")
        elif sub == "on":
            await self.photolock_on(thread_id)
        elif sub == "off":
            self.store.remove_group_pic(thread_id)
            await self.safe_reply(thread_id, "🔓 Group photo unlocked.")
        elif sub == "reset":
            try:
                await self.assets.reapply(thread_id)
            except MissingAssetError as e:
                logger.warning(str(e))
                await self.safe_reply(thread_id, "⚠️ No saved image found.")
                return
            await self.safe_reply(thread_id, "🔁 Group photo reset to locked image.")

    async def _thread_image_url(self, thread_id: str) -> str:
        try:
            info = await self.remote.get_thread_info(thread_id)
        except Exception as e:
            logger.error(f"getThreadInfo failed for {thread_id}: {e}")
            return ""
        return info.image_src or ""

    async def photolock_on(self, thread_id: str):
        url = await self._thread_image_url(thread_id)
        if not url:
            await self.safe_reply(thread_id, "⚠️ No group photo found.")
            return
        try:
            path = await self.assets.fetch(url, thread_id)
        except DownloadError as e:
            logger.error(f"Download error: {e}")
            await self.safe_reply(thread_id, "❌ Failed to save group photo.")
            return
        self.store.set_group_pic(thread_id, str(path), url)
        await self.safe_reply(thread_id, "📸 Group photo locked successfully.")
