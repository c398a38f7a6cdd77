# app/config.py
from pydantic_settings import BaseSettings
from typing import Optional, Set
from pydantic import Field


def _parse_id_list(raw: Optional[str]) -> Set[int]:
    if not raw:
        return set()
    return {int(part.strip()) for part in raw.split(",") if part.strip()}


class Settings(BaseSettings):
    SECRET_KEY: str = Field("change-me-in-production")
    ALGORITHM: str = Field("HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(30)
    REFRESH_TOKEN_EXPIRE_DAYS: int = Field(7)

    DATABASE_URL: str
    SQL_ECHO: bool = False

    # Role overrides: comma-separated user IDs merged with users.role
    ADMIN_IDS: Optional[str] = None
    SUPERVISOR_IDS: Optional[str] = None

    model_config = {
        "env_file": ".env",
        "extra": "allow",
    }

    @property
    def effective_database_url(self) -> str:
        url = self.DATABASE_URL or "sqlite+aiosqlite:///./feedback.db"
        # Ensure asyncpg is used
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url

    @property
    def admin_id_overrides(self) -> Set[int]:
        return _parse_id_list(self.ADMIN_IDS)

    @property
    def supervisor_id_overrides(self) -> Set[int]:
        return _parse_id_list(self.SUPERVISOR_IDS)

settings = Settings()
