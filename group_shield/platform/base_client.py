"""Abstract chat-platform client: the only surface moderation code talks to."""

from __future__ import annotations

from abc import ABC, abstractmethod

from group_shield.core.models import ChatMember, Sender

ChatRef = int | str


class PlatformClient(ABC):
    """Contract for platform backends.

    Implementations raise ``PlatformError`` (or the library's own error
    types) on failure; classification happens in ``translate_error``.
    """

    @abstractmethod
    async def get_me(self) -> Sender:
        """Identity of the bot account."""
        ...

    @abstractmethod
    async def send_message(self, chat: ChatRef, text: str, *, html: bool = True) -> int:
        """Send *text* to *chat*. Return the new message id."""
        ...

    @abstractmethod
    async def delete_message(self, chat_id: int, message_id: int) -> None: ...

    @abstractmethod
    async def restrict_member(
        self,
        chat_id: int,
        user_id: int,
        *,
        can_send: bool,
        until_date: int | None = None,
    ) -> None:
        """Set every send permission to *can_send*; *until_date* is unix seconds."""
        ...

    @abstractmethod
    async def ban_member(self, chat_id: int, user_id: int, until_date: int | None = None) -> None: ...

    @abstractmethod
    async def unban_member(self, chat_id: int, user_id: int, *, only_if_banned: bool = True) -> None: ...

    @abstractmethod
    async def get_member(self, chat_id: int, user_id: int) -> ChatMember: ...

    @abstractmethod
    async def get_administrators(self, chat_id: int) -> list[ChatMember]: ...

    async def close(self) -> None:
        """Release transport resources."""
