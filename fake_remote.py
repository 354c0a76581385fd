"""
In-memory RemoteClient used by the tests.

Records every call, keeps the "remote" state (titles, nicknames, images),
tracks how many nickname writes overlap, and can be told to fail.
"""

import asyncio
import time
from typing import Dict, List, Optional, Tuple

from errors import RemoteCallError
from remote import EVENT_TYPE_EVENT, LOG_USER_NICKNAME, Event, ThreadInfo


class FakeRemote:
    def __init__(self, nick_latency: float = 0.001):
        self.calls: List[Tuple[str, tuple]] = []
        self.titles: Dict[str, str] = {}
        self.nicknames: Dict[Tuple[str, str], str] = {}
        self.images: Dict[str, str] = {}
        self.messages: List[Tuple[str, str]] = []
        self.participants: Dict[str, List[str]] = {}
        self.image_src: Dict[str, Optional[str]] = {}

        self.nick_latency = nick_latency
        self.nick_in_flight = 0
        self.max_nick_in_flight = 0
        self.nick_call_times: List[float] = []

        # (thread_id, member_id) -> number of upcoming failures
        self.nick_failures: Dict[Tuple[str, str], int] = {}
        self.fail_ops = set()

        # echo our own nickname writes back as events, like the platform does
        self.echo_handler = None
        self.echo_tasks: List[asyncio.Task] = []

    def calls_named(self, name: str) -> List[tuple]:
        return [args for n, args in self.calls if n == name]

    def _maybe_fail(self, op: str):
        if op in self.fail_ops:
            raise RemoteCallError(op, RuntimeError("simulated failure"))

    async def set_title(self, name: str, thread_id: str):
        self.calls.append(("set_title", (name, thread_id)))
        self._maybe_fail("set_title")
        self.titles[thread_id] = name

    async def change_nickname(self, nickname: str, thread_id: str, member_id: str):
        self.calls.append(("change_nickname", (nickname, thread_id, member_id)))
        self.nick_call_times.append(time.monotonic())
        self.nick_in_flight += 1
        self.max_nick_in_flight = max(self.max_nick_in_flight, self.nick_in_flight)
        try:
            await asyncio.sleep(self.nick_latency)
            left = self.nick_failures.get((thread_id, member_id), 0)
            if left > 0:
                self.nick_failures[(thread_id, member_id)] = left - 1
                raise RemoteCallError("changeNickname", RuntimeError("transient"))
            self._maybe_fail("change_nickname")
            self.nicknames[(thread_id, member_id)] = nickname
        finally:
            self.nick_in_flight -= 1
        if self.echo_handler is not None:
            event = Event(
                type=EVENT_TYPE_EVENT,
                thread_id=thread_id,
                log_message_type=LOG_USER_NICKNAME,
                log_message_data={"participant_id": member_id, "nickname": nickname},
            )
            self.echo_tasks.append(asyncio.create_task(self.echo_handler(event)))

    async def change_group_image(self, path: str, thread_id: str):
        self.calls.append(("change_group_image", (path, thread_id)))
        self._maybe_fail("change_group_image")
        self.images[thread_id] = path

    async def send_message(self, text: str, thread_id: str):
        self.calls.append(("send_message", (text, thread_id)))
        self._maybe_fail("send_message")
        self.messages.append((thread_id, text))

    async def get_thread_info(self, thread_id: str) -> ThreadInfo:
        self.calls.append(("get_thread_info", (thread_id,)))
        self._maybe_fail("get_thread_info")
        return ThreadInfo(
            participant_ids=list(self.participants.get(thread_id, [])),
            image_src=self.image_src.get(thread_id),
        )

    # LockBot lifecycle hooks
    async def login(self):
        self.calls.append(("login", ()))

    def on_event(self, callback):
        self.calls.append(("on_event", ()))
        self.callback = callback

    async def run_until_disconnected(self):
        return None

    async def disconnect(self):
        self.calls.append(("disconnect", ()))
