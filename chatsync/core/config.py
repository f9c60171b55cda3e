# chatsync/core/config.py
import os
from typing import Literal
from dotenv import load_dotenv

class Settings:
    """
    Setup environment variables.
        - CHAT_BACKEND the message store to use: "redis" or "memory"
        - CHAT_USER_ID / CHAT_USER_EMAIL the authenticated user (empty = signed out)
        - DEFAULT_ROOM_ID the room requested at startup (empty = earliest room)
        - GROUP_WINDOW_MS the time gap that splits message groups
        - LOG_LEVEL level of the chatsync loggers (DEBUG, INFO, ...)
    """

    # Load environment variables from the .env file
    load_dotenv()

    CHAT_BACKEND: Literal["redis", "memory"] = os.getenv("CHAT_BACKEND", "redis")

    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_ACCESS_KEY: str = os.getenv("REDIS_ACCESS_KEY", "")
    REDIS_SSL: bool = os.getenv("REDIS_SSL", "false").lower() == "true"

    CHAT_USER_ID: str = os.getenv("CHAT_USER_ID", "")
    CHAT_USER_EMAIL: str = os.getenv("CHAT_USER_EMAIL", "")
    CHAT_USERNAME: str = os.getenv("CHAT_USERNAME", "")

    DEFAULT_ROOM_ID: str = os.getenv("DEFAULT_ROOM_ID", "")
    GROUP_WINDOW_MS: int = int(os.getenv("GROUP_WINDOW_MS", "300000"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    @property
    def redis_url(self) -> str:
        scheme = "rediss" if self.REDIS_SSL else "redis"
        return f"{scheme}://:{self.REDIS_ACCESS_KEY}@{self.REDIS_HOST}:{self.REDIS_PORT}"

settings = Settings()
