"""Failure taxonomy for platform calls and the one place raw errors are translated."""

from __future__ import annotations

import asyncio

import aiohttp
from telethon.errors import FloodWaitError, RPCError

from group_shield.core.types import ActionKind


class PlatformError(Exception):
    """Raw failure reported by the platform: ``{code, description, retry_after}``."""

    def __init__(
        self,
        code: int,
        description: str,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(f"{code}: {description}")
        self.code = code
        self.description = description
        self.retry_after = retry_after


class ShieldError(Exception):
    """Base of the classified taxonomy; downstream code only sees these."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class RateLimitedError(ShieldError):
    def __init__(self, message: str, retry_after: float, code: int | None = 429) -> None:
        super().__init__(message, code)
        self.retry_after = retry_after


class PermissionDeniedError(ShieldError):
    """Missing rights, user not a participant, chat gone. Never retried."""


class BadRequestError(ShieldError):
    """Malformed or rejected request. Never retried."""


class AlreadySatisfiedError(ShieldError):
    """The desired end state already holds (e.g. the message is already gone)."""


class UnknownApiError(ShieldError):
    pass


_FORBIDDEN_MARKERS = (
    "USER_NOT_PARTICIPANT",
    "CHAT_ADMIN_REQUIRED",
    "chat not found",
    "not enough rights",
    "bot was kicked",
    "bot is not a member",
    "have no rights",
)

_NOT_FOUND_MARKERS = (
    "message to delete not found",
    "message not found",
    "MESSAGE_ID_INVALID",
)


def _classify(
    code: int | None,
    description: str,
    retry_after: float | None,
    kind: ActionKind | None,
) -> ShieldError:
    upper = description.upper()
    if code in (420, 429) or "FLOOD" in upper or "RETRY AFTER" in upper:
        return RateLimitedError(description, retry_after=float(retry_after or 1), code=code)
    if kind is ActionKind.DELETE and any(m.upper() in upper for m in _NOT_FOUND_MARKERS):
        return AlreadySatisfiedError(description, code)
    if code == 403 or any(m.upper() in upper for m in _FORBIDDEN_MARKERS):
        return PermissionDeniedError(description, code)
    if code == 400 or "BAD REQUEST" in upper:
        return BadRequestError(description, code)
    return UnknownApiError(f"{description} (code: {code})", code)


def translate_error(exc: BaseException, kind: ActionKind | None = None) -> ShieldError:
    """Map any platform-side exception into the taxonomy.

    *kind* lets action-specific outcomes (a delete whose target is gone)
    resolve to ``AlreadySatisfiedError``.
    """
    if isinstance(exc, ShieldError):
        return exc
    if isinstance(exc, PlatformError):
        return _classify(exc.code, exc.description, exc.retry_after, kind)
    if isinstance(exc, FloodWaitError):
        return RateLimitedError(str(exc), retry_after=float(exc.seconds), code=420)
    if isinstance(exc, RPCError):
        return _classify(exc.code, exc.message or str(exc), None, kind)
    if isinstance(exc, (aiohttp.ClientError, asyncio.TimeoutError)):
        return UnknownApiError(f"transport error: {exc!r}")
    return UnknownApiError(str(exc) or type(exc).__name__)
