"""Environment-driven settings using pydantic-settings."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class SharedConfig(BaseSettings):
    """Settings shared by every entry point."""
    log_level: str = Field(default="info", validation_alias="LOG_LEVEL")

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
    }


class OracleSettings(SharedConfig):
    """Provider choice, credentials and endpoints for the LLM-backed match oracle."""
    api_key: str = Field(default="", validation_alias="ANTHROPIC_API_KEY")
    model: str = Field(
        default="claude-3-5-sonnet-20241022",
        validation_alias="TRACEABILITY_ORACLE_MODEL",
    )
    base_url: str = Field(
        default="https://api.anthropic.com",
        validation_alias="TRACEABILITY_ORACLE_URL",
    )
    max_tokens: int = Field(default=1024, validation_alias="TRACEABILITY_ORACLE_MAX_TOKENS")
    request_timeout: float = Field(
        default=60.0, validation_alias="TRACEABILITY_ORACLE_TIMEOUT"
    )
    provider: str = Field(default="anthropic", validation_alias="TRACEABILITY_ORACLE_PROVIDER")
    openai_api_key: str = Field(default="", validation_alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o", validation_alias="TRACEABILITY_OPENAI_MODEL")
    openai_base_url: str = Field(
        default="https://api.openai.com",
        validation_alias="TRACEABILITY_OPENAI_URL",
    )
