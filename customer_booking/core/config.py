from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    BACKEND_PROVIDER: str = "mock"  # "mock" | "firebase"
    FIREBASE_DATABASE_URL: str | None = None
    FIREBASE_AUTH_TOKEN: str | None = None
    GATEWAY_TIMEOUT_SECONDS: float = 10.0
    MOCK_NETWORK_DELAY_SECONDS: float = 0.0

    OTP_DIGIT_COUNT: int = 6
    OTP_RESEND_SECONDS: int = 60
    TIMER_TICK_SECONDS: float = 1.0
    DEMO_OTP: str = "123456"
    LEGACY_OTP: str = "1234"
    CUSTOMER_ID_STRATEGY: str = "timestamp"  # "timestamp" | "unique"

    BOOKING_RESET_DELAY_SECONDS: float = 2.5


settings = Settings()
