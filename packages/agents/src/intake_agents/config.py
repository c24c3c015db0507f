"""Configuration system for Intake Agents.

This module provides Pydantic Settings-based configuration with environment
variable support and sensible defaults for the intake pipeline. The core
package never reads the environment; the processor builds its collaborators
from these settings.

Usage:
    from intake_agents.config import IntakeConfig

    # Load from environment variables and .env file
    config = IntakeConfig()

    # Access LLM settings
    print(config.llm.model)

    # Access pipeline settings
    if config.pipeline.extract_facts:
        print("Fact extraction enabled")
"""

import logging
from enum import Enum
from typing import Optional

import structlog
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMProvider(str, Enum):
    """Supported LLM providers."""

    ANTHROPIC = "anthropic"


class LLMConfig(BaseSettings):
    """LLM classifier settings.

    Environment Variables:
        INTAKE_LLM_PROVIDER: LLM provider (anthropic)
        INTAKE_LLM_MODEL: Model name
        INTAKE_LLM_TEMPERATURE: Sampling temperature (0.0-1.0)
        INTAKE_LLM_MAX_TOKENS: Maximum output tokens
        INTAKE_LLM_API_KEY: API key for the provider
        INTAKE_LLM_TIMEOUT: Request timeout in seconds
        INTAKE_LLM_MAX_DOCUMENT_CHARS: Document characters sent to the model
    """

    model_config = SettingsConfigDict(
        env_prefix="INTAKE_LLM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    provider: LLMProvider = Field(
        default=LLMProvider.ANTHROPIC,
        description="LLM provider to use",
    )
    model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Model identifier for the LLM",
    )
    temperature: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Sampling temperature for classification",
    )
    max_tokens: int = Field(
        default=1024,
        gt=0,
        le=8192,
        description="Maximum tokens in response",
    )
    api_key: Optional[str] = Field(
        default=None,
        description="API key for the LLM provider",
    )
    timeout: float = Field(
        default=60.0,
        gt=0,
        description="Request timeout in seconds",
    )
    max_document_chars: int = Field(
        default=15000,
        gt=0,
        description="Document characters sent before truncation",
    )

    @field_validator("model")
    @classmethod
    def validate_model(cls, v: str) -> str:
        """Ensure model name is not empty."""
        if not v or not v.strip():
            raise ValueError("Model name cannot be empty")
        return v.strip()


class OcrConfig(BaseSettings):
    """Local text acquisition settings.

    Environment Variables:
        INTAKE_OCR_ENABLED: Run the OCR provider when no cached text exists
        INTAKE_OCR_MIN_TEXT_CHARS: Below this, PyPDF2 output triggers pdfplumber
        INTAKE_OCR_STORAGE_DIR: Directory relative storage paths resolve against
    """

    model_config = SettingsConfigDict(
        env_prefix="INTAKE_OCR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    enabled: bool = Field(default=True, description="Run OCR for uncached documents")
    min_text_chars: int = Field(
        default=100,
        ge=0,
        description="Minimum PyPDF2 characters before trying pdfplumber",
    )
    storage_dir: Optional[str] = Field(
        default=None,
        description="Base directory for relative storage paths",
    )


class PipelineConfig(BaseSettings):
    """Artifact pipeline settings.

    Environment Variables:
        INTAKE_PIPELINE_DEBUG_MODE: Enable verbose debug logging
        INTAKE_PIPELINE_MAX_RETRIES: Requeue ceiling for failed artifacts
        INTAKE_PIPELINE_AUTO_APPLY_THRESHOLD: Confidence for auto-applied matches
        INTAKE_PIPELINE_DOCAI_ACCEPT_THRESHOLD: Structured-label acceptance
        INTAKE_PIPELINE_RULES_ACCEPT_THRESHOLD: Rules acceptance
        INTAKE_PIPELINE_BATCH_SIZE: Artifacts per batch
        INTAKE_PIPELINE_WORKER_COUNT: Concurrent workers
        INTAKE_PIPELINE_EXTRACT_FACTS: Run fact extraction after stamping
    """

    model_config = SettingsConfigDict(
        env_prefix="INTAKE_PIPELINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    debug_mode: bool = Field(
        default=False,
        description="Enable verbose debug logging for development",
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Maximum requeues for a failed artifact",
    )
    auto_apply_threshold: float = Field(
        default=0.85,
        ge=0.0,
        le=1.0,
        description="Minimum confidence for an auto-applied checklist match",
    )
    docai_accept_threshold: float = Field(default=0.75, ge=0.0, le=1.0)
    rules_accept_threshold: float = Field(default=0.65, ge=0.0, le=1.0)
    batch_size: int = Field(
        default=10,
        gt=0,
        le=1000,
        description="Maximum artifacts processed per batch",
    )
    worker_count: int = Field(
        default=1,
        ge=1,
        le=64,
        description="Concurrent workers for process_concurrently",
    )
    extract_facts: bool = Field(
        default=True,
        description="Run deterministic fact extraction after stamping",
    )


class IntakeConfig(BaseSettings):
    """Root configuration for Intake Agents.

    Environment Variables:
        INTAKE_ENV: Environment name (development, staging, production, test)
        INTAKE_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)

    Example:
        config = IntakeConfig(
            llm=LLMConfig(api_key="sk-..."),
            pipeline=PipelineConfig(worker_count=4),
        )
    """

    model_config = SettingsConfigDict(
        env_prefix="INTAKE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    env: str = Field(
        default="development",
        description="Environment name (development, staging, production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )

    # Nested configuration
    llm: LLMConfig = Field(default_factory=LLMConfig)
    ocr: OcrConfig = Field(default_factory=OcrConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)

    @field_validator("env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment name."""
        valid_envs = {"development", "staging", "production", "test"}
        v_lower = v.lower().strip()
        if v_lower not in valid_envs:
            raise ValueError(f"Invalid environment: {v}. Must be one of: {valid_envs}")
        return v_lower

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper().strip()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of: {valid_levels}")
        return v_upper

    @property
    def is_debug(self) -> bool:
        """Check if debug mode is enabled (via pipeline or log level)."""
        return self.pipeline.debug_mode or self.log_level == "DEBUG"


def configure_logging(config: IntakeConfig) -> None:
    """Apply the configured log level to structlog.

    Debug mode lowers the level to DEBUG regardless of ``log_level``.
    Calls below the level are dropped before any processor runs.
    """
    level_name = "DEBUG" if config.is_debug else config.log_level
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level_name)),
    )


__all__ = [
    "IntakeConfig",
    "LLMConfig",
    "LLMProvider",
    "OcrConfig",
    "PipelineConfig",
    "configure_logging",
]
