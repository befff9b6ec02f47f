"""Telegram Bot API backend over aiohttp."""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from group_shield.config import TelegramConfig
from group_shield.core.models import ChatMember, Sender
from group_shield.dispatch.errors import PlatformError
from group_shield.platform.base_client import ChatRef, PlatformClient

logger = logging.getLogger(__name__)

_PERMISSION_FIELDS = (
    "can_send_messages",
    "can_send_audios",
    "can_send_documents",
    "can_send_photos",
    "can_send_videos",
    "can_send_video_notes",
    "can_send_voice_notes",
    "can_send_polls",
    "can_send_other_messages",
    "can_add_web_page_previews",
    "can_invite_users",
)


class BotApiClient(PlatformClient):
    """Thin JSON-over-HTTP client; one shared ``ClientSession``."""

    def __init__(self, config: TelegramConfig, timeout: float = 15.0) -> None:
        self._base = f"{config.bot_api_url.rstrip('/')}/bot{config.bot_token}"
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None
        self._me: Sender | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()

    async def _call(self, method: str, **params: Any) -> Any:
        session = await self._get_session()
        payload = {k: v for k, v in params.items() if v is not None}
        async with session.post(f"{self._base}/{method}", json=payload) as resp:
            try:
                body = await resp.json(content_type=None)
            except ValueError:
                text = await resp.text()
                raise PlatformError(resp.status, text[:200] or resp.reason or "invalid response")
        if not body.get("ok"):
            code = int(body.get("error_code") or resp.status)
            description = body.get("description") or "unknown error"
            retry_after = (body.get("parameters") or {}).get("retry_after")
            logger.debug("Bot API %s failed: %d %s", method, code, description)
            raise PlatformError(code, description, retry_after)
        return body.get("result")

    # ------------------------------------------------------------------

    async def get_me(self) -> Sender:
        if self._me is None:
            me = await self._call("getMe")
            self._me = Sender(
                user_id=me["id"],
                username=me.get("username"),
                first_name=me.get("first_name"),
                is_bot=True,
            )
        return self._me

    async def send_message(self, chat: ChatRef, text: str, *, html: bool = True) -> int:
        result = await self._call(
            "sendMessage",
            chat_id=chat,
            text=text,
            parse_mode="HTML" if html else None,
            disable_web_page_preview=True,
        )
        return int(result["message_id"])

    async def delete_message(self, chat_id: int, message_id: int) -> None:
        await self._call("deleteMessage", chat_id=chat_id, message_id=message_id)

    async def restrict_member(
        self,
        chat_id: int,
        user_id: int,
        *,
        can_send: bool,
        until_date: int | None = None,
    ) -> None:
        await self._call(
            "restrictChatMember",
            chat_id=chat_id,
            user_id=user_id,
            permissions={name: can_send for name in _PERMISSION_FIELDS},
            until_date=until_date,
        )

    async def ban_member(self, chat_id: int, user_id: int, until_date: int | None = None) -> None:
        await self._call("banChatMember", chat_id=chat_id, user_id=user_id, until_date=until_date)

    async def unban_member(self, chat_id: int, user_id: int, *, only_if_banned: bool = True) -> None:
        await self._call(
            "unbanChatMember",
            chat_id=chat_id,
            user_id=user_id,
            only_if_banned=only_if_banned,
        )

    async def get_member(self, chat_id: int, user_id: int) -> ChatMember:
        m = await self._call("getChatMember", chat_id=chat_id, user_id=user_id)
        return self._to_member(user_id, m)

    @staticmethod
    def _to_member(user_id: int, m: dict[str, Any]) -> ChatMember:
        return ChatMember(
            user_id=user_id,
            status=m.get("status", "left"),
            can_restrict_members=bool(m.get("can_restrict_members")) or m.get("status") == "creator",
            can_delete_messages=bool(m.get("can_delete_messages")) or m.get("status") == "creator",
            is_bot=bool(m.get("user", {}).get("is_bot")),
        )

    async def get_administrators(self, chat_id: int) -> list[ChatMember]:
        members = await self._call("getChatAdministrators", chat_id=chat_id)
        return [self._to_member(m["user"]["id"], m) for m in members or []]
