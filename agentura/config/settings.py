"""Environment-bound configuration objects.

This module provides Pydantic BaseSettings-based configuration loading from .env files.
All settings classes automatically load from environment variables with support for
multiple alias names (e.g., MODEL_CHAT and MODEL_CHAT_ID both work).

Example:
    from agentura.config.settings import get_settings

    settings = get_settings()  # Cached singleton
    api_key = settings.models.chat_api_key
    threshold = settings.governance.quality_threshold
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Literal, Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


load_dotenv()


class ModelRoutingSettings(BaseSettings):
    """Vendor-neutral model identifiers and credentials.

    Six model slots are available: base, reason, vision, code, chat, embedding.
    Each slot has three fields: id, api_key, base_url. Agent definitions bind
    to a slot, never to a concrete model id.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base: str = Field(
        default="gpt-4o-mini",
        validation_alias=AliasChoices("MODEL_BASE", "MODEL_BASE_ID", "MODEL_BASIC_ID"),
    )
    base_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_BASE_API_KEY", "MODEL_BASIC_API_KEY"),
    )
    base_base_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_BASE_URL", "MODEL_BASIC_BASE_URL"),
    )

    reason: str = Field(
        default="o3-mini",
        validation_alias=AliasChoices("MODEL_REASON", "MODEL_REASON_ID", "MODEL_REASONING_ID"),
    )
    reason_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_REASON_API_KEY", "MODEL_REASONING_API_KEY"),
    )
    reason_base_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_REASON_URL", "MODEL_REASONING_BASE_URL"),
    )

    vision: str = Field(
        default="gpt-4o",
        validation_alias=AliasChoices("MODEL_VISION", "MODEL_VISION_ID", "MODEL_MULTIMODAL_ID"),
    )
    vision_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_VISION_API_KEY", "MODEL_MULTIMODAL_API_KEY"),
    )
    vision_base_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_VISION_URL", "MODEL_MULTIMODAL_BASE_URL"),
    )

    code: str = Field(
        default="gpt-4o",
        validation_alias=AliasChoices("MODEL_CODE", "MODEL_CODE_ID"),
    )
    code_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_CODE_API_KEY"),
    )
    code_base_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_CODE_URL", "MODEL_CODE_BASE_URL"),
    )

    chat: str = Field(
        default="gpt-4o-mini",
        validation_alias=AliasChoices("MODEL_CHAT", "MODEL_CHAT_ID"),
    )
    chat_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_CHAT_API_KEY", "MODEL_DEFAULT_CHAT_API_KEY"),
    )
    chat_base_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_CHAT_URL", "MODEL_CHAT_BASE_URL"),
    )

    embedding: str = Field(
        default="text-embedding-3-small",
        validation_alias=AliasChoices("MODEL_EMBEDDING", "MODEL_EMBEDDING_ID"),
    )
    embedding_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_EMBEDDING_API_KEY"),
    )
    embedding_base_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_EMBEDDING_URL", "MODEL_EMBEDDING_BASE_URL"),
    )


class GovernanceSettings(BaseSettings):
    """Runtime governance and control settings.

    - max_loops: Hard cap on supervisor iterations per request
    - retry_budget: Reflexion passes per top-level request (safety bound, default 1)
    - quality_threshold: Average critique score (0-5) below which an output fails
    - router_history_window: Messages of history the router sees
    - critique_single_agent_kinds: Single-agent routes that get a critique pass
    - chat_mode: "developer" allows planning, "normal" downgrades Planner to Chat
    - persona: Instruction prefix for user-facing agents
    """

    max_loops: int = Field(default=12, ge=1, le=100, alias="MAX_LOOPS")
    retry_budget: int = Field(default=1, ge=0, le=1, alias="RETRY_BUDGET")
    quality_threshold: float = Field(default=4.0, ge=0.0, le=5.0, alias="QUALITY_THRESHOLD")
    router_history_window: int = Field(default=5, ge=0, le=50, alias="ROUTER_HISTORY_WINDOW")
    critique_single_agent_kinds: List[str] = Field(
        default_factory=lambda: ["Research", "Complex"],
        alias="CRITIQUE_SINGLE_AGENT_KINDS",
    )
    chat_mode: Literal["developer", "normal"] = Field(default="developer", alias="CHAT_MODE")
    persona: Literal["default", "creative", "concise"] = Field(default="default", alias="PERSONA")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class GatewaySettings(BaseSettings):
    """Retry-with-backoff policy wrapped around every remote generation call."""

    max_attempts: int = Field(default=3, ge=1, le=10, alias="REMOTE_MAX_ATTEMPTS")
    backoff_base_seconds: float = Field(default=1.0, ge=0.0, alias="REMOTE_BACKOFF_BASE")
    backoff_multiplier: float = Field(default=2.0, ge=1.0, alias="REMOTE_BACKOFF_MULTIPLIER")
    backoff_max_seconds: float = Field(default=30.0, ge=0.0, alias="REMOTE_BACKOFF_MAX")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class ArchiveSettings(BaseModel):
    """Local document archive and reflexion memory configuration."""

    top_k: int = 5
    rerank_enabled: bool = False
    min_chunk_chars: int = 20
    reflexion_top_k: int = 3
    reflexion_similarity_threshold: float = 0.75


class SafetySettings(BaseSettings):
    """Constitution check on input and output."""

    constitution_enabled: bool = Field(default=True, alias="CONSTITUTION_ENABLED")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class ExecutionSettings(BaseModel):
    """Sandboxed code execution limits."""

    timeout_seconds: float = 30.0
    python_executable: Optional[str] = None  # Defaults to the running interpreter


class ObservabilitySettings(BaseSettings):
    """Tracing, logging, and persistence configuration.

    - LangSmith tracing (LANGCHAIN_TRACING_V2, LANGCHAIN_PROJECT, etc.)
    - Log directory (LOG_DIR)
    - Session persistence (SESSION_DB_PATH for SQLite storage, unset disables it)
    """

    langsmith_project: Optional[str] = Field(default=None, alias="LANGCHAIN_PROJECT")
    langsmith_api_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("LANGCHAIN_API_KEY", "LANGSMITH_API_KEY")
    )
    langsmith_endpoint: Optional[str] = Field(default=None, alias="LANGCHAIN_ENDPOINT")
    tracing_enabled: bool = Field(default=False, alias="LANGCHAIN_TRACING_V2")

    log_dir: str = Field(default="logs", alias="LOG_DIR")
    session_db_path: Optional[str] = Field(default=None, alias="SESSION_DB_PATH")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class Settings(BaseSettings):
    """Root application settings loaded from .env file.

    Use get_settings() to obtain a cached singleton instance.
    """

    environment: str = Field(default="dev", alias="APP_ENV")
    agents_config_path: Optional[str] = Field(default=None, alias="AGENTS_CONFIG_PATH")
    models: ModelRoutingSettings = Field(default_factory=ModelRoutingSettings)
    governance: GovernanceSettings = Field(default_factory=GovernanceSettings)
    gateway: GatewaySettings = Field(default_factory=GatewaySettings)
    archive: ArchiveSettings = Field(default_factory=ArchiveSettings)
    safety: SafetySettings = Field(default_factory=SafetySettings)
    execution: ExecutionSettings = Field(default_factory=ExecutionSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_assignment=True,
        case_sensitive=False,
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton Settings instance."""
    return Settings()
