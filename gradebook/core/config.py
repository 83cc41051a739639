from pydantic_settings import BaseSettings
from typing import Optional
from functools import lru_cache
from pathlib import Path
from dotenv import load_dotenv

# Base directory of the repository
BASE_DIR = Path(__file__).resolve().parent.parent.parent

load_dotenv()

class Settings(BaseSettings):
    BASE_DIR: Path = BASE_DIR

    # Database
    DATABASE_URL_OVERRIDE: Optional[str] = None
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "gradebook_user"
    POSTGRES_PASSWORD: str = "gradebook_password"
    POSTGRES_DB: str = "gradebook_db"
    POSTGRES_PORT: str = "5432"

    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 30
    DB_MAX_OVERFLOW: int = 30
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Grading
    # Allowed drift (percentage points) when checking that baseline weights total 100
    WEIGHT_TOLERANCE: float = 0.01
    # Upper bound on concurrent final grade computations for one roster
    ROSTER_CONCURRENCY: int = 5

    # Logging
    LOG_LEVEL: str = "INFO"

    @property
    def DATABASE_URL(self) -> str:
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

@lru_cache()
def get_settings():
    return Settings()

settings = get_settings()
