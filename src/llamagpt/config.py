"""Application Configuration

Type-safe configuration using Pydantic Settings for environment variable handling.

Every setting has a working default so a missing or partial environment never
prevents the assistant from starting. Values come from (highest first):
constructor arguments, `LLAMAGPT_*` environment variables, a `.env` file.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from .domain.domain_type import HistoryBackend
from .domain.model_catalog import DEFAULT_CATALOG_PATH
from .domain.model_pool import DEFAULT_OLLAMA_BASE_URL

DEFAULT_SYSTEM_PROMPT = "You are LlamaGPT, a concise and helpful assistant running on the user's own machine."


class Settings(BaseSettings):
    """Application settings from environment variables"""

    # =============================================================================
    # APPLICATION
    # =============================================================================

    app_name: str = Field(default="llamagpt", alias="LLAMAGPT_APP_NAME")
    app_version: str = Field(default="0.1.0", alias="LLAMAGPT_APP_VERSION")
    app_description: str = Field(
        default="Intelligent CLI assistant with on-device inference",
        alias="LLAMAGPT_APP_DESCRIPTION",
    )
    environment: str = Field(default="development", alias="LLAMAGPT_ENVIRONMENT")
    log_level: str = Field(default="WARNING", alias="LLAMAGPT_LOG_LEVEL")

    # =============================================================================
    # CHAT HISTORY
    # =============================================================================

    history_backend: HistoryBackend = Field(default=HistoryBackend.FILE, alias="LLAMAGPT_HISTORY_BACKEND")
    history_dir: Path = Field(
        default_factory=lambda: Path.home() / ".llamagpt" / "chats",
        alias="LLAMAGPT_HISTORY_DIR",
    )
    redis_url: str = Field(default="redis://localhost:6379/0", alias="LLAMAGPT_REDIS_URL")
    redis_key_prefix: str = Field(default="chat", alias="LLAMAGPT_REDIS_KEY_PREFIX")
    default_chat: str = Field(default="default", alias="LLAMAGPT_DEFAULT_CHAT")

    # =============================================================================
    # INFERENCE
    # =============================================================================

    model_catalog_path: Path = Field(default=DEFAULT_CATALOG_PATH, alias="LLAMAGPT_MODEL_CATALOG_PATH")
    default_model: str = Field(default="llama3-8b-q4", alias="LLAMAGPT_DEFAULT_MODEL")
    default_temperature: float = Field(default=0.7, alias="LLAMAGPT_DEFAULT_TEMPERATURE")
    inference_timeout: float | None = Field(default=120.0, alias="LLAMAGPT_INFERENCE_TIMEOUT")
    ollama_base_url: str = Field(default=DEFAULT_OLLAMA_BASE_URL, alias="LLAMAGPT_OLLAMA_BASE_URL")
    system_prompt: str = Field(default=DEFAULT_SYSTEM_PROMPT, alias="LLAMAGPT_SYSTEM_PROMPT")

    # =============================================================================
    # CACHE / API
    # =============================================================================

    cache_max_entries: int | None = Field(default=None, alias="LLAMAGPT_CACHE_MAX_ENTRIES")
    cors_origins: str = Field(default="", alias="LLAMAGPT_CORS_ORIGINS")

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
        "extra": "ignore",
        "populate_by_name": True,
        "protected_namespaces": (),
    }

    @field_validator("default_temperature")
    @classmethod
    def temperature_in_range(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError("LLAMAGPT_DEFAULT_TEMPERATURE must be between 0 and 2")
        return v

    @field_validator("inference_timeout")
    @classmethod
    def timeout_positive(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            return None
        return v


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.model_validate({})


settings = get_settings()
