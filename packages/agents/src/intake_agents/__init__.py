"""Intake Agents - Configuration and orchestration for the lending intake pipeline."""

from intake_agents.config import (
    IntakeConfig,
    LLMConfig,
    LLMProvider,
    OcrConfig,
    PipelineConfig,
    configure_logging,
)
from intake_agents.interfaces import BatchResult, ProcessArtifactResult
from intake_agents.processor import ArtifactProcessor

__version__ = "0.1.0"

__all__ = [
    "ArtifactProcessor",
    "BatchResult",
    "IntakeConfig",
    "LLMConfig",
    "LLMProvider",
    "OcrConfig",
    "PipelineConfig",
    "ProcessArtifactResult",
    "configure_logging",
]
