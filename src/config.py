"""Application configuration loaded from environment variables and .env file."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Values are loaded from environment variables first,
    then from a .env file in the project root as fallback.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    DATABASE_URL: str = "sqlite:///./dev.db"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # 가격 시간대 판정 기준 (서울)
    TIMEZONE: str = "Asia/Seoul"

    # Auth (토큰 발급은 외부 Auth 서비스 담당)
    JWT_SECRET: str = "CHANGE_ME"
    JWT_ALG: str = "HS256"

    # 거래 규칙
    TRADE_DISTANCE_LIMIT_KM: float = 0.5
    NEARBY_RADIUS_KM: float = 2.0

    # 주기 작업
    SCHEDULER_ENABLED: bool = True
    PRICE_BROADCAST_INTERVAL_MINUTES: int = 180


settings = Settings()
