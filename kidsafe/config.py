"""Runtime settings, read from ``KIDSAFE_*`` environment variables."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Moderation pipeline settings."""

    model_config = SettingsConfigDict(env_prefix="KIDSAFE_", extra="ignore")

    # Storage
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".kidsafe")
    store_backend: Literal["memory", "json", "sql"] = "json"
    database_url: str = "sqlite:///./kidsafe.db"

    # Policy table; None means the packaged default lexicon
    lexicon_path: Optional[Path] = None

    # Age bands (primary school: 7-15)
    age_floor: int = 7
    age_upper: int = 15

    # Content types that are always persisted, whatever the decision
    audit_content_types: Annotated[list[str], NoDecode] = Field(default_factory=list)

    log_level: str = "WARNING"

    @field_validator("audit_content_types", mode="before")
    @classmethod
    def split_content_types(cls, v: Any) -> list[str]:
        """Accept a comma-separated string as well as a list."""
        if v is None:
            return []
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        if isinstance(v, (list, tuple, set)):
            return [str(item) for item in v]
        raise ValueError(v)

    @field_validator("age_upper")
    @classmethod
    def upper_above_floor(cls, v: int, info) -> int:
        floor = info.data.get("age_floor", 0)
        if v < floor:
            raise ValueError(f"age_upper ({v}) must not be below age_floor ({floor})")
        return v


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
