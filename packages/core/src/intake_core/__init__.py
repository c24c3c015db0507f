"""Intake Core - Document classification, checklist matching and fact extraction."""

__version__ = "0.1.0"

from .checklist import (
    ChecklistReconciler,
    DocTyping,
    ReadinessCalculator,
    map_doc_type_to_checklist_keys,
    resolve_doc_typing,
)
from .classification import ClassificationEngine
from .exceptions import (
    ClassifierError,
    ConfigurationError,
    ExtractionError,
    IntakeError,
    PersistenceError,
)
from .extractors import ExtractorArgs, extract_for_document
from .ledger import LedgerWriter
from .llm_classifier import AnthropicClassifier, create_llm_classifier
from .models import ClassificationResult, DocumentType
from .pdf_text import PdfTextOcr
from .queue import ArtifactQueue
from .store import IntakeStore

__all__ = [
    "AnthropicClassifier",
    "ArtifactQueue",
    "ChecklistReconciler",
    "ClassificationEngine",
    "ClassificationResult",
    "ClassifierError",
    "ConfigurationError",
    "DocTyping",
    "DocumentType",
    "ExtractionError",
    "ExtractorArgs",
    "IntakeError",
    "IntakeStore",
    "LedgerWriter",
    "PdfTextOcr",
    "PersistenceError",
    "ReadinessCalculator",
    "create_llm_classifier",
    "extract_for_document",
    "map_doc_type_to_checklist_keys",
    "resolve_doc_typing",
]
