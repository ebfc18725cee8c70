from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    APP_NAME: str = "Onion Server"
    DEBUG: bool = False
    HOST: str = "127.0.0.1"
    PORT: int = 3000
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/onion.db"
    CORS_ORIGINS: list[str] = ["*"]

    # Cache backend — supports redis | memory
    CACHE_BACKEND: str = "redis"
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_SOCKET_TIMEOUT: float = 5.0
    REDIS_CONNECT_TIMEOUT: float = 5.0
    REDIS_RETRY_ATTEMPTS: int = 3
    REDIS_BACKOFF_BASE: float = 0.05
    REDIS_BACKOFF_CAP: float = 2.0
    REDIS_EXPIRY_TIME: int | None = None

    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_TOKEN: str = ""
    GITHUB_TIMEOUT: float = 10.0

    DIGEST_TTL_SECONDS: int = 86400
    RECENT_CAPACITY: int = 10


settings = Settings()
