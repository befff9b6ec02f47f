"""Abstract persistence interface for moderation records and group settings."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from group_shield.core.models import GroupSettings


class BaseStore(ABC):
    """Contract for all storage backends."""

    @abstractmethod
    async def connect(self) -> None:
        """Establish connection / pool and ensure schema exists."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release all connections."""
        ...

    @abstractmethod
    async def is_connected(self) -> bool:
        """Connection health check."""
        ...

    @abstractmethod
    async def log_action(self, user_id: int, chat_id: int, action: str, reason: str) -> None:
        """Append one moderation action to the audit trail."""
        ...

    @abstractmethod
    async def log_scam_event(
        self,
        chat_id: int,
        user_id: int,
        message_id: int,
        score: int,
        action: str,
        reasons: Sequence[str],
    ) -> None:
        """Record a scam decision, whether or not the action was delivered."""
        ...

    @abstractmethod
    async def is_team_member(self, user_id: int) -> bool: ...

    @abstractmethod
    async def is_blacklisted(self, user_id: int) -> bool: ...

    @abstractmethod
    async def add_to_blacklist(self, user_id: int, actor_id: int, reason: str) -> None: ...

    @abstractmethod
    async def add_team_member(self, user_id: int, added_by: int, source: str) -> None: ...

    @abstractmethod
    async def record_user(self, user_id: int, seen_ms: int) -> int:
        """Note that *user_id* was seen; return when it was first seen (epoch ms)."""
        ...

    @abstractmethod
    async def get_group_settings(self, chat_id: int) -> GroupSettings | None:
        """Feature flags for *chat_id*; ``None`` when the chat is unknown."""
        ...

    @abstractmethod
    async def get_managed_groups(self) -> list[GroupSettings]:
        """Every chat currently under moderation."""
        ...
