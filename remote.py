"""
Remote control plane contract consumed by the lock core.

A transport (see telegram_remote.py) turns platform updates into Event
records and implements RemoteClient. All calls are coroutines and may raise
RemoteCallError.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

# Notification subtypes
LOG_THREAD_NAME = "log:thread-name"
LOG_THREAD_IMAGE = "log:thread-image"
LOG_THREAD_PHOTO = "log:thread-photo"
LOG_THREAD_IMAGE_UPDATE = "log:thread-image-update"
LOG_USER_NICKNAME = "log:user-nickname"

IMAGE_LOG_TYPES = frozenset({LOG_THREAD_IMAGE, LOG_THREAD_PHOTO, LOG_THREAD_IMAGE_UPDATE})

EVENT_TYPE_MESSAGE = "message"
EVENT_TYPE_EVENT = "event"


@dataclass
class Event:
    type: str
    thread_id: str
    sender_id: str = ""
    body: str = ""
    log_message_type: str = ""
    log_message_data: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_notification(self) -> bool:
        return self.type == EVENT_TYPE_EVENT


@dataclass
class ThreadInfo:
    participant_ids: List[str] = field(default_factory=list)
    image_src: Optional[str] = None


EventCallback = Callable[[Event], Awaitable[None]]


class RemoteClient(Protocol):
    async def set_title(self, name: str, thread_id: str) -> None: ...

    async def change_nickname(self, nickname: str, thread_id: str, member_id: str) -> None: ...

    async def change_group_image(self, path: str, thread_id: str) -> None: ...

    async def send_message(self, text: str, thread_id: str) -> None: ...

    async def get_thread_info(self, thread_id: str) -> ThreadInfo: ...
