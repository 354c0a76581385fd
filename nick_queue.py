"""
Single-lane nickname mutation queue.

Every nickname write goes through NicknameQueue: one worker task pops actions
in FIFO order, runs them one at a time, logs and swallows failures, and always
sleeps the pacing delay before taking the next one.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from remote import RemoteClient

logger = logging.getLogger("lockbot")

Action = Callable[[], Awaitable[None]]


class NicknameQueue:
    def __init__(self, remote: RemoteClient, delay_ms: int = 700,
                 retry_base_ms: int = 250, retry_step_ms: int = 200):
        self.remote = remote
        self.delay = delay_ms / 1000
        self.retry_base = retry_base_ms / 1000
        self.retry_step = retry_step_ms / 1000
        self._queue: "asyncio.Queue[tuple[Action, asyncio.Future]]" = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self):
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run(), name="nick-queue")

    async def stop(self):
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        while not self._queue.empty():
            _, fut = self._queue.get_nowait()
            if not fut.done():
                fut.cancel()

    async def enqueue(self, action: Action):
        """Resolves once `action` has run (successfully or not)."""
        fut = asyncio.get_running_loop().create_future()
        self._queue.put_nowait((action, fut))
        self.start()
        await fut

    async def _run(self):
        while True:
            action, fut = await self._queue.get()
            try:
                await action()
            except Exception as e:
                logger.error(f"Nick task failed: {e}")
            finally:
                if not fut.done():
                    fut.set_result(None)
                self._queue.task_done()
            await asyncio.sleep(self.delay)

    async def retry_change_nickname(self, thread_id: str, member_id: str, nickname: str,
                                    retries: int = 3) -> bool:
        """Queue one nickname write with up to `retries` attempts.

        The whole retry loop is a single queue task, so other targets wait
        until this one either lands or gives up. Never raises.
        """
        last_err: Optional[Exception] = None
        succeeded = False

        async def attempt():
            nonlocal last_err, succeeded
            for i in range(retries):
                try:
                    await self.remote.change_nickname(nickname, thread_id, member_id)
                    succeeded = True
                    return
                except Exception as e:
                    last_err = e
                    logger.warning(f"changeNickname attempt {i + 1}/{retries} for {member_id} in {thread_id}: {e}")
                if i < retries - 1:
                    await asyncio.sleep(self.retry_base + i * self.retry_step)

        await self.enqueue(attempt)
        if not succeeded:
            logger.error(f"changeNickname failed for {member_id} in {thread_id}: {last_err}")
            return False
        return True
