from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    # Database
    DB_USER: str = Field("matchcall")
    DB_PASSWORD: str = Field("matchcall")
    DB_NAME: str = Field("matchcall")
    DB_HOST: str = Field("postgres")
    DB_PORT: int = Field(5432)
    # Full URL override (e.g. sqlite+aiosqlite:///./dev.db for local runs)
    DATABASE_URL: str | None = Field(None)

    # Redis
    REDIS_HOST: str = Field("redis")
    REDIS_PORT: int = Field(6379)
    REDIS_PASSWORD: str | None = Field(None)

    # App
    API_HOST: str = Field("0.0.0.0")
    API_PORT: int = Field(8000)
    DEBUG: bool = Field(False)
    JWT_SECRET_KEY: str = Field("supersecret")
    JWT_ALGORITHM: str = Field("HS256")
    JWT_EXP_DAYS: int = Field(7)

    # Call requests
    CALL_REQUEST_TTL_MINUTES: int = Field(10)
    CALL_REQUEST_REAPER_ENABLED: bool = Field(False)
    CALL_REQUEST_REAPER_INTERVAL: int = Field(60)

    # WebRTC
    ICE_SERVERS: list[str] = Field(
        default_factory=lambda: [
            "stun:stun.l.google.com:19302",
            "stun:stun1.l.google.com:19302",
        ]
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        env_file_encoding="utf-8"
    )


settings = Settings()
