"""
Configuration de l'application / Application configuration.
Utilise pydantic-settings pour charger depuis .env ou variables d'environnement.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "AutoConnect Added Vehicles"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # Database - SQLite par défaut pour le développement
    # Database - SQLite by default for development (postgresql+asyncpg in production)
    DATABASE_URL: str = "sqlite+aiosqlite:///./autoconnect.db"

    # CORS - origines autorisées / allowed origins
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # JWT - tokens émis par le service d'authentification / tokens issued by the auth service
    SECRET_KEY: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Rôle administrateur / Administrative role name
    ADMIN_ROLE: str = "admin"

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: str = "120/minute"
    RATE_LIMIT_CREATE: str = "30/minute"

    # Pagination / Export
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100
    MAX_PAGE: int = 1_000_000
    EXPORT_MAX_ROWS: int = 1000

    # Règles métier / Business rules
    NOTES_MAX_LENGTH: int = 500
    ADDRESS_REQUIRED_PURPOSES: list[str] = ["INSPECTION", "REPAIR_REQUEST"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
