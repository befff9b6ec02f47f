from group_shield.platform.base_client import PlatformClient
from group_shield.platform.bot_api_client import BotApiClient

__all__ = ["PlatformClient", "BotApiClient"]
