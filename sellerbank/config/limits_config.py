from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Financial limits. Amounts are in centavos."""

    TRANSFER_MIN_AMOUNT: int = 100              # R$ 1,00
    TRANSFER_MAX_AMOUNT: int = 5_000_000        # R$ 50.000,00
    TRANSFER_DAILY_LIMIT: int = 10_000_000      # R$ 100.000,00

    WITHDRAWAL_MIN_AMOUNT: int = 1_000          # R$ 10,00
    WITHDRAWAL_MAX_AMOUNT: int = 10_000_000

    ACCOUNT_MIN_WITHDRAWAL_AMOUNT: int = 5_000

    SUSPICIOUS_MAX_HOURLY_TRANSACTIONS: int = 10
    SUSPICIOUS_MAX_FAILED_ATTEMPTS: int = 5
    NEW_ACCOUNT_AGE_HOURS: int = 24
    TEMPORARY_LOCK_MINUTES: int = 30

    # per action sliding windows (requests, seconds)
    RL_TRANSFER_LIMIT: int = 5
    RL_TRANSFER_WINDOW: int = 60
    RL_WITHDRAWAL_LIMIT: int = 3
    RL_WITHDRAWAL_WINDOW: int = 300
    RL_ADJUSTMENT_LIMIT: int = 10
    RL_ADJUSTMENT_WINDOW: int = 60
    RL_ACCOUNT_LOOKUP_LIMIT: int = 20
    RL_ACCOUNT_LOOKUP_WINDOW: int = 60

    class Config:
        env_file = ".env"
        env_prefix = "LIMITS_"
        extra="ignore"

limits_config = Settings()
