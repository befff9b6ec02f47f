"""Group Shield: automated trust-and-safety enforcement for managed Telegram groups."""

__version__ = "0.3.0"
