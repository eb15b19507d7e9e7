# chat_backend/core/config.py
import os
from typing import List, Literal
from dotenv import load_dotenv


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """
    Setup environment variables.
        - DATABASE_URL the Postgres DSN, empty to keep chat messages in memory
        - DEFAULT_ROOM the room a message lands in when none is given
        - SINGLE_ROOM_MEMBERSHIP whether joining a room leaves the previous one
        - PUB_SUB_SERVICE the fan-out to use: "none" (in-process) or "redis"
        - JWT_SECRET the shared secret used to verify portal tokens
        - LOG_LEVEL the root log level (DEBUG, INFO, WARNING, ...)
    """

    # Load environment variables from the .env file
    load_dotenv()

    DATABASE_URL: str = os.getenv("DATABASE_URL", "")
    DB_POOL_MIN_SIZE: int = int(os.getenv("DB_POOL_MIN_SIZE", "1"))
    DB_POOL_MAX_SIZE: int = int(os.getenv("DB_POOL_MAX_SIZE", "10"))
    DB_SSL: bool = _as_bool(os.getenv("DB_SSL", "false"))

    DEFAULT_ROOM: str = os.getenv("DEFAULT_ROOM", "general")
    WELCOME_MESSAGE: str = os.getenv("WELCOME_MESSAGE", "Welcome to AletheianDocs support chat!")
    SYSTEM_USER: str = os.getenv("SYSTEM_USER", "System")
    SINGLE_ROOM_MEMBERSHIP: bool = _as_bool(os.getenv("SINGLE_ROOM_MEMBERSHIP", "true"))

    MAX_MESSAGE_LENGTH: int = int(os.getenv("MAX_MESSAGE_LENGTH", "2000"))
    MAX_USERNAME_LENGTH: int = int(os.getenv("MAX_USERNAME_LENGTH", "50"))
    MAX_ROOM_LENGTH: int = int(os.getenv("MAX_ROOM_LENGTH", "50"))

    PUB_SUB_SERVICE: Literal["none", "redis"] = os.getenv("PUB_SUB_SERVICE", "none")

    REDIS_HOST: str = os.getenv("REDIS_HOST", "localhost")
    REDIS_PORT: int = int(os.getenv("REDIS_PORT", "6379"))
    REDIS_ACCESS_KEY: str = os.getenv("REDIS_ACCESS_KEY", "")
    REDIS_SSL: bool = _as_bool(os.getenv("REDIS_SSL", "false"))

    JWT_SECRET: str = os.getenv("JWT_SECRET", "")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    CORS_ORIGINS: List[str] = [
        origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()
    ]

settings = Settings()
