"""
Telethon transport for the lock bot.

Logs in with a user StringSession from appstate.json:
    {"api_id": 12345, "api_hash": "...", "session": "<StringSession>"}

Mapping onto Telegram:
- title          -> EditTitleRequest (supergroups) / EditChatTitleRequest (basic groups)
- nickname       -> admin custom title (rank), existing admin rights preserved
- group image    -> uploaded file + EditPhotoRequest / EditChatPhotoRequest
- thread info    -> participant list + public avatar URL for chats with a username
- inbound        -> NewMessage (incoming and outgoing), ChatAction title/photo,
                    raw UpdateChannelParticipant rank changes
"""

import logging
import functools
from typing import Optional

from telethon import TelegramClient, events, functions, types, utils
from telethon.errors import FloodWaitError, RPCError
from telethon.sessions import StringSession

from errors import ConfigError, RemoteCallError
from remote import (
    EVENT_TYPE_EVENT,
    EVENT_TYPE_MESSAGE,
    LOG_THREAD_IMAGE,
    LOG_THREAD_NAME,
    LOG_USER_NICKNAME,
    Event,
    EventCallback,
    ThreadInfo,
)

logger = logging.getLogger("lockbot")

AVATAR_URL = "https://t.me/i/userpic/320/{username}.jpg"


def remote_call(operation: str):
    """Wrap a transport coroutine so every failure surfaces as RemoteCallError."""
    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            try:
                return await fn(*args, **kwargs)
            except RemoteCallError:
                raise
            except FloodWaitError as e:
                logger.warning(f"Flood wait {e.seconds}s on {operation}")
                raise RemoteCallError(operation, e) from e
            except (RPCError, ValueError, TypeError, OSError, ConnectionError) as e:
                raise RemoteCallError(operation, e) from e
        return wrapper
    return decorator


class TelegramRemote:
    def __init__(self, appstate: dict):
        try:
            api_id = int(appstate["api_id"])
            api_hash = str(appstate["api_hash"])
            session = str(appstate["session"])
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"appstate.json needs api_id, api_hash and session: {e}") from e
        self.client = TelegramClient(StringSession(session), api_id, api_hash)
        self._callback: Optional[EventCallback] = None

    @remote_call("login")
    async def login(self):
        await self.client.connect()
        if not await self.client.is_user_authorized():
            raise RemoteCallError("login", ValueError("session in appstate.json is not authorized"))
        me = await self.client.get_me()
        logger.info(f"Logged in as {me.id}")

    def on_event(self, callback: EventCallback):
        self._callback = callback
        self.client.add_event_handler(self._on_message, events.NewMessage())
        self.client.add_event_handler(self._on_chat_action, events.ChatAction())
        self.client.add_event_handler(self._on_participant, events.Raw(types.UpdateChannelParticipant))

    async def run_until_disconnected(self):
        await self.client.run_until_disconnected()

    @remote_call("disconnect")
    async def disconnect(self):
        await self.client.disconnect()

    # ------------- Inbound -------------
    async def _dispatch(self, event: Event):
        if self._callback is not None:
            await self._callback(event)

    async def _on_message(self, event):
        await self._dispatch(Event(
            type=EVENT_TYPE_MESSAGE,
            thread_id=str(event.chat_id),
            sender_id=str(event.sender_id or ""),
            body=event.raw_text or "",
        ))

    async def _on_chat_action(self, event):
        if event.new_title:
            log_type, data = LOG_THREAD_NAME, {"name": event.new_title}
        elif event.new_photo:
            # our own photo writes come back as actions too; re-applying them would loop
            if event.action_message is not None and event.action_message.out:
                return
            log_type, data = LOG_THREAD_IMAGE, {}
        else:
            return
        await self._dispatch(Event(
            type=EVENT_TYPE_EVENT,
            thread_id=str(event.chat_id),
            sender_id=str(event.user_id or ""),
            log_message_type=log_type,
            log_message_data=data,
        ))

    async def _on_participant(self, update):
        prev, new = update.prev_participant, update.new_participant
        if prev is None or new is None:
            return
        old_rank = getattr(prev, "rank", None) or ""
        new_rank = getattr(new, "rank", None) or ""
        if old_rank == new_rank:
            return
        await self._dispatch(Event(
            type=EVENT_TYPE_EVENT,
            thread_id=str(utils.get_peer_id(types.PeerChannel(update.channel_id))),
            sender_id=str(update.actor_id),
            log_message_type=LOG_USER_NICKNAME,
            log_message_data={"participant_id": str(update.user_id), "nickname": new_rank},
        ))

    # ------------- Outbound -------------
    async def _entity(self, thread_id: str):
        return await self.client.get_entity(int(thread_id))

    @remote_call("setTitle")
    async def set_title(self, name: str, thread_id: str):
        entity = await self._entity(thread_id)
        if isinstance(entity, types.Channel):
            await self.client(functions.channels.EditTitleRequest(channel=entity, title=name))
        else:
            await self.client(functions.messages.EditChatTitleRequest(chat_id=entity.id, title=name))

    @remote_call("changeNickname")
    async def change_nickname(self, nickname: str, thread_id: str, member_id: str):
        entity = await self._entity(thread_id)
        if not isinstance(entity, types.Channel):
            raise ValueError("custom titles need a supergroup")
        user = await self.client.get_input_entity(int(member_id))
        result = await self.client(functions.channels.GetParticipantRequest(channel=entity, participant=user))
        rights = getattr(result.participant, "admin_rights", None)
        if rights is None:
            raise ValueError(f"{member_id} is not an admin in {thread_id}")
        await self.client(functions.channels.EditAdminRequest(
            channel=entity, user_id=user, admin_rights=rights, rank=nickname,
        ))

    @remote_call("changeGroupImage")
    async def change_group_image(self, path: str, thread_id: str):
        entity = await self._entity(thread_id)
        uploaded = await self.client.upload_file(path)
        photo = types.InputChatUploadedPhoto(file=uploaded)
        if isinstance(entity, types.Channel):
            await self.client(functions.channels.EditPhotoRequest(channel=entity, photo=photo))
        else:
            await self.client(functions.messages.EditChatPhotoRequest(chat_id=entity.id, photo=photo))

    @remote_call("sendMessage")
    async def send_message(self, text: str, thread_id: str):
        await self.client.send_message(int(thread_id), text)

    @remote_call("getThreadInfo")
    async def get_thread_info(self, thread_id: str) -> ThreadInfo:
        entity = await self._entity(thread_id)
        participants = await self.client.get_participants(entity)
        image_src = None
        username = getattr(entity, "username", None)
        photo = getattr(entity, "photo", None)
        if username and photo is not None and not isinstance(photo, types.ChatPhotoEmpty):
            image_src = AVATAR_URL.format(username=username)
        return ThreadInfo(participant_ids=[str(p.id) for p in participants], image_src=image_src)
