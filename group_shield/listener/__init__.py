from group_shield.listener.telegram_listener import TelegramListener

__all__ = ["TelegramListener"]
