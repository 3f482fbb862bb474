# app/config/settings.py

from pydantic_settings import BaseSettings
from pydantic import ConfigDict
from typing import Optional


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=True
    )

    # Redis Configuration
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[str] = None
    REDIS_DECODE_RESPONSES: bool = True

    # PostgreSQL Configuration
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "cardgame_db"
    POSTGRES_POOL_SIZE: int = 10
    POSTGRES_MAX_OVERFLOW: int = 20
    SQL_ECHO: bool = False

    # Application Configuration
    APP_NAME: str = "Card Challenge Backend"
    DEBUG: bool = True
    CORS_ORIGINS: list = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:5173",
    ]

    # JWT verification (tokens are issued elsewhere)
    SECRET_KEY: str = "CHANGE-THIS-SECRET-KEY-IN-PRODUCTION-USE-ENV-FILE"  # Must be changed in .env file!
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: Optional[str] = None

    # Rooms
    ROOM_CODE_LENGTH: int = 6
    ROOM_CODE_MAX_ATTEMPTS: int = 10
    ROOM_ORPHAN_GRACE_SECONDS: int = 300  # Room kept this long with no live connection
    ROOM_MAX_AGE_SECONDS: int = 3600 * 24 * 7
    ROOM_SWEEP_INTERVAL_SECONDS: int = 60

    # Decks
    DECK_RANDOM_CARDS: int = 25  # 25 = classic (30-card deck), 30 = extended
    FIXED_CARD_TYPES: list = ["skip", "swap", "reverse", "shield", "reveal"]
    CARD_POOL_PATH: Optional[str] = None

    # Persistence sink (best-effort)
    PERSISTENCE_TIMEOUT_SECONDS: float = 2.0
    ROOM_EVENTS_TTL: int = 3600 * 4
    MAX_CACHED_ROOM_EVENTS: int = 50
    PERSISTENCE_REQUIRED: bool = False  # True: refuse to start without Redis and PostgreSQL
    DB_CREATE_TABLES: bool = False  # Create tables on startup instead of running migrations

    @property
    def DATABASE_URL(self) -> str:
        """Construct PostgreSQL connection URL for SQLAlchemy"""
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"


settings = Settings()
