"""Library wide defaults with environment variable support."""
from typing import Literal, Optional

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Default values for search, loading and the REST service.

    Every component still receives its configuration explicitly; these values
    are only what the config models fall back to.
    """

    # Search
    search_mode: Literal["keyword", "vector", "hybrid"] = "keyword"
    search_limit: int = 5
    vector_size: int = 1536
    vector_similarity: float = 0.3
    keyword_weight: float = 0.5
    vector_weight: float = 0.5

    # Loader
    loader_max_size: int = 100
    loader_ttl_seconds: float = 300.0

    # Service
    log_level: str = "INFO"
    auth_secret: Optional[SecretStr] = None

    model_config = SettingsConfigDict(
        env_prefix="BIGTOOL_", env_file=".env", env_file_encoding="utf-8", case_sensitive=False, extra="ignore"
    )


# Global settings instance
settings = Settings()
