# backend/config.py
from pydantic_settings import BaseSettings
from typing import ClassVar
from pathlib import Path

# Resolve absolute path to the .env file for reliable loading
env_path = Path(__file__).parent.parent / ".env"

class Settings(BaseSettings):
    SECRET_KEY: str = "dev-secret-change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite:///./database_foodorder.db"

    FRONTEND_URL: str = "http://localhost:5173"

    # "development" exposes exception causes in error responses
    ENVIRONMENT: str = "production"
    LOG_LEVEL: str = "INFO"

    DEFAULT_PAGE_SIZE: int = 10

    class Config:
        env_file: ClassVar[str] = str(env_path)
        extra = "ignore"

settings = Settings()
