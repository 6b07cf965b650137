"""
backend/netprophet/config.py

Purpose:
    Central settings loading for the prediction-slip and wallet-ledger core.

Dependencies:
    - pydantic-settings
    - pathlib
"""

from pathlib import Path

from pydantic_settings import BaseSettings

# Prefer backend/.env, fallback to project-root .env.
_BACKEND_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
_ROOT_ENV_FILE = Path(__file__).resolve().parent.parent.parent / ".env"


class Settings(BaseSettings):
    # Remote ledger (wallet-operations / daily-rewards functions)
    LEDGER_BASE_URL: str = "http://localhost:54321/functions/v1"
    LEDGER_API_TOKEN: str = ""
    LEDGER_TIMEOUT_SECONDS: float = 15.0
    LEDGER_READ_RETRIES: int = 2  # bet/spend operations are never retried
    LEDGER_RETRY_BASE_DELAY: float = 1.0

    BACKEND_CORS_ORIGINS: str = "http://localhost:3000"
    LOG_LEVEL: str = "INFO"

    # Session storage key namespace
    SESSION_KEY_PREFIX: str = "netprophet"

    # Coin economy
    STARTING_BALANCE: float = 1000.0
    MIN_BET: float = 10.0
    MAX_BET: float = 1000.0
    WELCOME_BONUS: float = 250.0
    REFERRAL_BONUS: float = 250.0
    TRANSACTION_LOG_LIMIT: int = 10

    # Multiplier engine
    MULTIPLIER_DIMENSION_BONUS: float = 0.2

    # Parlay
    PARLAY_MIN_PICKS: int = 2
    PARLAY_BONUS_THRESHOLD: int = 3
    PARLAY_BONUS_PERCENTAGE: float = 0.05
    STREAK_BOOSTER_THRESHOLD: int = 3
    STREAK_BOOSTER_PERCENTAGE: float = 0.02
    MAX_STREAK_BOOSTER: float = 0.20
    SAFE_BET_COST: float = 50.0

    model_config = {
        "env_file": (str(_BACKEND_ENV_FILE), str(_ROOT_ENV_FILE)),
        "extra": "ignore",
    }


settings = Settings()
