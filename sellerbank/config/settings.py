from pydantic_settings import BaseSettings

class Settings(BaseSettings):

    DATABASE_URL: str
    DB_ECHO: bool = False
    JWT_SECRET: str
    JWT_ALGO: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    TRANSACTION_SIGNING_SECRET: str
    REDIS_ENABLED: bool = True
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    class Config:
        env_file = ".env"
        extra="ignore"

config_settings = Settings()
