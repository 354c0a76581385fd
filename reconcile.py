"""
Reconciliation engine: compare one inbound notification against the lock
store and issue at most one category of corrective action.

    log:thread-name        -> set_title(locked name)
    log:thread-image/...   -> change_group_image(cached file) + notice
    log:user-nickname      -> queued single-target revert (3 retries)

Anything else is ignored. A missing cached image is a silent no-op.
"""

import logging

from assets import AssetCache
from locks import LockStore
from nick_queue import NicknameQueue
from remote import (
    Event,
    IMAGE_LOG_TYPES,
    LOG_THREAD_NAME,
    LOG_USER_NICKNAME,
    RemoteClient,
)

logger = logging.getLogger("lockbot")

PHOTO_REVERTED_NOTICE = "📸 Group picture reverted (lock active)."


class Reconciler:
    def __init__(self, remote: RemoteClient, store: LockStore, assets: AssetCache,
                 nick_queue: NicknameQueue):
        self.remote = remote
        self.store = store
        self.assets = assets
        self.nick_queue = nick_queue

    async def handle(self, event: Event) -> bool:
        """Returns True when the event was a lock-relevant notification."""
        if not event.is_notification:
            return False
        log_type = event.log_message_type
        try:
            if log_type == LOG_THREAD_NAME:
                await self._revert_title(event)
            elif log_type in IMAGE_LOG_TYPES:
                await self._revert_image(event)
            elif log_type == LOG_USER_NICKNAME:
                await self._revert_nickname(event)
            else:
                return False
        except Exception as e:
            logger.error(f"Revert failed ({log_type}) in {event.thread_id}: {e}")
        return True

    async def _revert_title(self, event: Event):
        thread_id = event.thread_id
        new_name = event.log_message_data.get("name") or ""
        locked = self.store.get_group_name(thread_id)
        if locked and new_name != locked:
            await self.remote.set_title(locked, thread_id)
            logger.info(f"🔒 Reverted name in {thread_id}")

    async def _revert_image(self, event: Event):
        thread_id = event.thread_id
        path = self.assets.cached_file(thread_id)
        if path is None:
            return
        await self.remote.change_group_image(str(path), thread_id)
        await self.remote.send_message(PHOTO_REVERTED_NOTICE, thread_id)
        logger.info(f"🔒 Reverted photo in {thread_id}")

    async def _revert_nickname(self, event: Event):
        thread_id = event.thread_id
        member_id = str(event.log_message_data.get("participant_id") or "")
        new_nick = event.log_message_data.get("nickname")
        locked = self.store.get_nickname(thread_id, member_id)
        if not locked or locked == new_nick:
            return
        if await self.nick_queue.retry_change_nickname(thread_id, member_id, locked, retries=3):
            logger.info(f"🔁 Reverted nick for {member_id} in {thread_id}")
