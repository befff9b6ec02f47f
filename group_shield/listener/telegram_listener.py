"""Telegram bot-session listener using Telethon.

Converts raw updates into the inbound event variants and hands each one
to a single async callback.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from telethon import TelegramClient, events
from telethon.errors import FloodWaitError
from telethon.tl.types import MessageEntityTextUrl, MessageEntityUrl

from group_shield.config import TelegramConfig
from group_shield.core.models import (
    ChannelPostEvent,
    EditedMessageEvent,
    InboundEvent,
    JoinEvent,
    LeaveEvent,
    MessageEvent,
    Sender,
    ServiceMessageEvent,
)
from group_shield.core.utils import now_ms
from group_shield.scoring.urls import extract_urls

logger = logging.getLogger(__name__)

EventCallback = Callable[[InboundEvent], Awaitable[None]]


# ---------------------------------------------------------------------------
# Update -> event conversion
# ---------------------------------------------------------------------------


def to_sender(user: Any) -> Sender:
    return Sender(
        user_id=user.id,
        username=getattr(user, "username", None),
        first_name=getattr(user, "first_name", None),
        last_name=getattr(user, "last_name", None),
        is_bot=bool(getattr(user, "bot", False)),
    )


def _timestamp_ms(value: Any) -> int:
    return int(value.timestamp() * 1000) if value is not None else now_ms()


def entity_urls(message: Any) -> list[str]:
    """URLs carried by message entities, including hidden text links."""
    urls: list[str] = []
    for entity, text in message.get_entities_text() or ():
        if isinstance(entity, MessageEntityTextUrl):
            urls.append(entity.url)
        elif isinstance(entity, MessageEntityUrl):
            urls.append(text)
    return urls


def build_message_event(
    chat_id: int,
    message: Any,
    sender: Sender,
    chat_title: str | None = None,
    *,
    edited: bool = False,
) -> MessageEvent:
    text = message.message or ""
    cls = EditedMessageEvent if edited else MessageEvent
    stamp = (message.edit_date or message.date) if edited else message.date
    return cls(
        chat_id=chat_id,
        message_id=message.id,
        sender=sender,
        text=text,
        extracted_urls=extract_urls(text, entity_urls(message)),
        is_forwarded=message.fwd_from is not None,
        has_entities=bool(message.entities),
        timestamp_ms=_timestamp_ms(stamp),
        chat_title=chat_title,
    )


# ---------------------------------------------------------------------------
# Listener
# ---------------------------------------------------------------------------


class TelegramListener:
    """Connects as the bot and dispatches group updates.

    Handles:
    * Auto-reconnect
    * Flood-wait backoff
    * New / edited messages, joins, leaves, pins, title changes, channel posts
    """

    def __init__(self, config: TelegramConfig, on_event: EventCallback) -> None:
        self._config = config
        self._on_event = on_event
        self._client: TelegramClient | None = None

    @property
    def client(self) -> TelegramClient | None:
        return self._client

    @property
    def connected(self) -> bool:
        return self._client is not None and self._client.is_connected()

    async def start(self) -> TelegramClient:
        """Authenticate with the bot token and register handlers."""
        self._client = TelegramClient(
            self._config.session_name,
            self._config.api_id,
            self._config.api_hash,
            auto_reconnect=True,
            retry_delay=5,
            connection_retries=10,
        )
        await self._client.start(bot_token=self._config.bot_token)
        me = await self._client.get_me()
        logger.info("Authenticated as @%s (id=%d)", me.username, me.id)

        self._client.add_event_handler(self._on_new_message, events.NewMessage(incoming=True))
        self._client.add_event_handler(self._on_edited_message, events.MessageEdited(incoming=True))
        self._client.add_event_handler(self._on_chat_action, events.ChatAction())

        logger.info("Listener registered: messages, edits, chat actions")
        return self._client

    async def _dispatch(self, event: InboundEvent) -> None:
        try:
            await self._on_event(event)
        except FloodWaitError as e:
            logger.warning("Telegram flood-wait: sleeping %d seconds", e.seconds)
            await asyncio.sleep(e.seconds)
        except Exception:
            logger.exception("Error handling %s", type(event).__name__)

    async def _message_event(self, event: Any, *, edited: bool) -> MessageEvent | None:
        if event.is_private:
            return None
        user = await event.get_sender()
        if user is None:
            return None
        chat = await event.get_chat()
        return build_message_event(
            event.chat_id,
            event.message,
            to_sender(user),
            getattr(chat, "title", None),
            edited=edited,
        )

    async def _on_new_message(self, event: events.NewMessage.Event) -> None:
        try:
            if event.is_channel and not event.is_group:
                await self._dispatch(
                    ChannelPostEvent(event.chat_id, event.message.id, _timestamp_ms(event.message.date))
                )
                return
            converted = await self._message_event(event, edited=False)
        except Exception:
            logger.exception("Failed to convert new message")
            return
        if converted is not None:
            await self._dispatch(converted)

    async def _on_edited_message(self, event: events.MessageEdited.Event) -> None:
        if event.is_channel and not event.is_group:
            return
        try:
            converted = await self._message_event(event, edited=True)
        except Exception:
            logger.exception("Failed to convert edited message")
            return
        if converted is not None:
            await self._dispatch(converted)

    async def _on_chat_action(self, event: events.ChatAction.Event) -> None:
        try:
            stamp = _timestamp_ms(getattr(event.action_message, "date", None))
            notice_id = getattr(event.action_message, "id", None)
            if event.user_joined or event.user_added:
                chat = await event.get_chat()
                title = getattr(chat, "title", None)
                users = await event.get_users()
                converted: list[InboundEvent] = [
                    JoinEvent(event.chat_id, to_sender(u), stamp, title, notice_id) for u in users
                ]
            elif event.user_left or event.user_kicked:
                converted = [
                    LeaveEvent(event.chat_id, uid, stamp, notice_id) for uid in event.user_ids
                ]
            elif notice_id is not None and (event.new_pin or event.new_title):
                kind = "pin" if event.new_pin else "title_change"
                converted = [ServiceMessageEvent(event.chat_id, notice_id, kind, stamp)]
            else:
                return
        except Exception:
            logger.exception("Failed to convert chat action")
            return
        for item in converted:
            await self._dispatch(item)

    async def run_until_disconnected(self) -> None:
        """Block until the client disconnects."""
        if self._client:
            await self._client.run_until_disconnected()

    async def stop(self) -> None:
        """Gracefully disconnect."""
        if self._client and self._client.is_connected():
            await self._client.disconnect()
            logger.info("Telegram client disconnected")
