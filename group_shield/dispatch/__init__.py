from group_shield.dispatch.actions import ModerationActions
from group_shield.dispatch.errors import (
    AlreadySatisfiedError,
    BadRequestError,
    PermissionDeniedError,
    PlatformError,
    RateLimitedError,
    ShieldError,
    UnknownApiError,
    translate_error,
)
from group_shield.dispatch.queues import AuditQueue, ModerationQueue

__all__ = [
    "ModerationActions",
    "AlreadySatisfiedError",
    "BadRequestError",
    "PermissionDeniedError",
    "PlatformError",
    "RateLimitedError",
    "ShieldError",
    "UnknownApiError",
    "translate_error",
    "AuditQueue",
    "ModerationQueue",
]
