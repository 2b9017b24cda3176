from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    OPENAI_API_KEY: str | None = None
    LLM_PROVIDER: str = "openai"

    OPENAI_MODEL_CHAT: str = "gpt-4o-mini"
    OPENAI_TEMPERATURE_CHAT: float = 0.7

    CHAT_MAX_STEPS: int = 5
    CHAT_TIMEOUT_SECONDS: float = 30.0

    BUILDING_NAME: str = "Meridian Living"
    BUILDING_TIMEZONE: str = "Europe/Madrid"
    BUILDING_LOCALE: str = "es-ES"
    RESIDENT_NAME: str | None = None
    RESIDENT_UNIT: str | None = None

    BOOKING_WINDOW_DAYS: int = 14
    AMENITY_LATENCY_MS: int = 300
    AMENITY_UNAVAILABLE_RATE: float = 0.3

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"


settings = Settings()
