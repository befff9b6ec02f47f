"""Environment-based configuration with validation."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from group_shield.core.types import ActionMode, FloodAction

logger = logging.getLogger(__name__)

# Load .env from project root or cwd
_env_path = Path(__file__).resolve().parent.parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)
else:
    load_dotenv()


def _env(key: str, default: str = "") -> str:
    return os.getenv(key, default).strip()


def _env_int(key: str, default: int = 0) -> int:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("%s is not an integer (%r), using default %d", key, raw, default)
        return default


def _env_bool(key: str, default: bool = False) -> bool:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    return raw.lower() in ("1", "true", "yes")


def _env_list(key: str, default: str = "") -> tuple[str, ...]:
    raw = os.getenv(key, "").strip() or default
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def _env_ids(key: str) -> tuple[int, ...]:
    ids: list[int] = []
    for item in _env_list(key):
        try:
            value = int(item)
        except ValueError:
            continue
        if value > 0:
            ids.append(value)
    return tuple(ids)


def _action_mode() -> ActionMode:
    raw = _env("ACTION_MODE", "restrict").lower()
    try:
        return ActionMode(raw)
    except ValueError:
        logger.warning("ACTION_MODE invalid (%r), using 'restrict'", raw)
        return ActionMode.RESTRICT


def _flood_action() -> FloodAction:
    raw = _env("ANTI_FLOOD_ACTION", "RESTRICT").upper()
    return FloodAction.KICK if raw == "KICK" else FloodAction.RESTRICT


# ---------------------------------------------------------------------------
# Sub-configs
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TelegramConfig:
    """Bot credentials (Bot API token plus MTProto app id for the listener)."""

    bot_token: str = field(default_factory=lambda: _env("BOT_TOKEN"))
    api_id: int = field(default_factory=lambda: _env_int("TELEGRAM_API_ID"))
    api_hash: str = field(default_factory=lambda: _env("TELEGRAM_API_HASH"))
    session_name: str = field(
        default_factory=lambda: _env("TELEGRAM_SESSION_NAME", "group_shield")
    )
    bot_api_url: str = field(
        default_factory=lambda: _env("BOT_API_URL", "https://api.telegram.org")
    )


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    """PostgreSQL connection settings."""

    host: str = field(default_factory=lambda: _env("DB_HOST", "localhost"))
    port: int = field(default_factory=lambda: _env_int("DB_PORT", 5432))
    user: str = field(default_factory=lambda: _env("DB_USER", "shield"))
    password: str = field(default_factory=lambda: _env("DB_PASSWORD"))
    database: str = field(default_factory=lambda: _env("DB_NAME", "group_shield"))
    pool_min: int = field(default_factory=lambda: _env_int("DB_POOL_MIN", 2))
    pool_max: int = field(default_factory=lambda: _env_int("DB_POOL_MAX", 10))

    @property
    def dsn(self) -> str:
        return (
            f"postgresql://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.database}"
        )


@dataclass(frozen=True, slots=True)
class ModerationConfig:
    """Scam moderation policy."""

    admin_ids: tuple[int, ...] = field(default_factory=lambda: _env_ids("ADMIN_IDS"))
    admin_log_chat: str = field(default_factory=lambda: _env("ADMIN_LOG_CHAT"))
    action_mode: ActionMode = field(default_factory=_action_mode)
    url_whitelist: tuple[str, ...] = field(
        default_factory=lambda: tuple(
            d.lower()
            for d in _env_list("URL_WHITELIST", "geldhelden.org,staatenlos.ch")
        )
    )
    dry_run: bool = field(default_factory=lambda: _env_bool("DRY_RUN_MODE", False))
    scam_detection_enabled: bool = field(
        default_factory=lambda: _env_bool("ENABLE_SCAM_DETECTION", True)
    )
    scam_cooldown_minutes: int = field(
        default_factory=lambda: _env_int("SCAM_COOLDOWN_MINUTES", 10)
    )
    high_restrict_hours: int = field(
        default_factory=lambda: _env_int("HIGH_RESTRICT_HOURS", 24)
    )
    protected_names: tuple[str, ...] = field(
        default_factory=lambda: _env_list(
            "PROTECTED_NAMES", "Geldhelden,Geldhelden Team,Geldhelden Support"
        )
    )
    impersonation_threshold: int = field(
        default_factory=lambda: _env_int("IMPERSONATION_SIMILARITY_THRESHOLD", 80)
    )
    links_locked_default: bool = field(
        default_factory=lambda: _env_bool("LINKS_LOCKED_DEFAULT", True)
    )
    forward_locked_default: bool = field(
        default_factory=lambda: _env_bool("FORWARD_LOCKED_DEFAULT", True)
    )


@dataclass(frozen=True, slots=True)
class FloodConfig:
    """Anti-flood thresholds."""

    window_seconds: int = field(
        default_factory=lambda: _env_int("ANTI_FLOOD_WINDOW_SECONDS", 30)
    )
    max_messages: int = field(
        default_factory=lambda: _env_int("ANTI_FLOOD_MESSAGE_LIMIT", 5)
    )
    restrict_minutes: int = field(
        default_factory=lambda: _env_int("ANTI_FLOOD_RESTRICT_MINUTES", 10)
    )
    action: FloodAction = field(default_factory=_flood_action)


@dataclass(frozen=True, slots=True)
class DispatchConfig:
    """Outbound pacing and in-memory tracker lifetimes."""

    moderation_delay_ms: int = field(
        default_factory=lambda: _env_int("MODERATION_QUEUE_DELAY_MS", 350)
    )
    audit_interval_ms: int = field(
        default_factory=lambda: _env_int("AUDIT_QUEUE_INTERVAL_MS", 1000)
    )
    dedup_ttl_seconds: int = field(
        default_factory=lambda: _env_int("DEDUP_TTL_SECONDS", 300)
    )
    sweep_interval_seconds: int = field(
        default_factory=lambda: _env_int("SWEEP_INTERVAL_SECONDS", 300)
    )
    flood_idle_seconds: int = field(
        default_factory=lambda: _env_int("FLOOD_IDLE_SECONDS", 3600)
    )
    admin_sync_interval_minutes: int = field(
        default_factory=lambda: _env_int("ADMIN_SYNC_INTERVAL_MINUTES", 60)
    )


@dataclass(frozen=True, slots=True)
class MetricsConfig:
    """Prometheus metrics settings."""

    enabled: bool = field(default_factory=lambda: _env_bool("METRICS_ENABLED", False))
    port: int = field(default_factory=lambda: _env_int("METRICS_PORT", 9090))


@dataclass(frozen=True, slots=True)
class HealthConfig:
    """Health check endpoint settings."""

    enabled: bool = field(default_factory=lambda: _env_bool("HEALTH_ENABLED", True))
    port: int = field(default_factory=lambda: _env_int("HEALTH_PORT", 8080))


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Root application configuration aggregating all sub-configs."""

    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    moderation: ModerationConfig = field(default_factory=ModerationConfig)
    flood: FloodConfig = field(default_factory=FloodConfig)
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    health: HealthConfig = field(default_factory=HealthConfig)
    log_level: str = field(default_factory=lambda: _env("LOG_LEVEL", "INFO"))
    log_json: bool = field(default_factory=lambda: _env_bool("LOG_JSON", False))

    def warnings(self) -> list[str]:
        """Non-critical issues; the bot still starts."""
        found: list[str] = []
        if not 1 <= self.flood.window_seconds <= 3600:
            found.append(
                f"ANTI_FLOOD_WINDOW_SECONDS outside 1-3600s: {self.flood.window_seconds}"
            )
        if self.flood.max_messages < 1:
            found.append(
                f"ANTI_FLOOD_MESSAGE_LIMIT must be positive: {self.flood.max_messages}"
            )
        if not 0 <= self.moderation.impersonation_threshold <= 100:
            found.append(
                "IMPERSONATION_SIMILARITY_THRESHOLD outside 0-100: "
                f"{self.moderation.impersonation_threshold}"
            )
        if not self.moderation.url_whitelist:
            found.append("URL_WHITELIST is empty, every link counts as unapproved")
        return found

    def validate(self) -> None:
        """Validate required fields; exits on failure."""
        for w in self.warnings():
            logger.warning("[CONFIG] %s", w)

        errors: list[str] = []
        token = self.telegram.bot_token
        if len(token) < 10 or "PLACEHOLDER" in token or "your_bot_token" in token:
            errors.append("BOT_TOKEN is missing or invalid")
        if not self.telegram.api_id:
            errors.append("TELEGRAM_API_ID is required")
        if not self.telegram.api_hash:
            errors.append("TELEGRAM_API_HASH is required")
        if not self.moderation.admin_log_chat:
            errors.append("ADMIN_LOG_CHAT is required")
        if not self.moderation.admin_ids:
            errors.append("ADMIN_IDS is required (comma-separated user ids)")
        if not self.database.password:
            errors.append("DB_PASSWORD is required")
        if errors:
            for e in errors:
                print(f"[CONFIG ERROR] {e}", file=sys.stderr)
            raise SystemExit(1)


class DryRunSwitch:
    """Runtime dry-run toggle; ``None`` falls back to the configured value."""

    def __init__(self, configured: bool) -> None:
        self._configured = configured
        self._override: bool | None = None

    @property
    def enabled(self) -> bool:
        if self._override is not None:
            return self._override
        return self._configured

    def set(self, value: bool | None) -> None:
        self._override = value
        state = "config" if value is None else ("ON" if value else "OFF")
        logger.info("[DRY-RUN] runtime toggle: %s", state)
