"""
Application settings
Read from environment variables and an optional .env file
"""
from decimal import Decimal
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Reservation engine settings"""

    # Application
    APP_NAME: str = "Reservation Engine"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./reservations.db"

    # Bearer token verification
    SECRET_KEY: str = "reservation-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_HOURS: int = 24

    # Pricing
    TAX_RATE: Decimal = Decimal("0.18")
    CURRENCY: str = "INR"

    # Interval rules
    MIN_STAY_HOURS_ROOM: int = 12
    MIN_STAY_HOURS_HALL: int = 24
    MAX_STAY_DAYS: int = 30

    # Identifiers
    RESERVATION_ID_PREFIX: str = "RES"
    RESERVATION_ID_DIGITS: int = 4
    REFERENCE_LENGTH: int = 8

    # Transactions
    TX_MAX_WAIT_SECONDS: float = 10.0
    TX_TIMEOUT_SECONDS: float = 30.0
    CREATE_MAX_RETRIES: int = 3

    # Reads
    HISTORY_RECENT_LIMIT: int = 10
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    model_config = ConfigDict(env_file=".env", case_sensitive=True)


# Global settings instance
settings = Settings()
