"""Custom exceptions for the lending intake pipeline.

This module provides a hierarchy of exception classes for consistent error
handling across intake processing. All exceptions inherit from IntakeError,
making it easy to catch every application-specific error in one place.

Example:
    try:
        result = classifier.classify(text, filename, mime_type)
    except ClassifierError as e:
        if e.recoverable:
            # Fall through to the next classification tier
            result = fallback.classify(request)
        else:
            raise
    except IntakeError as e:
        logger.error("intake_failed", error=str(e))
"""

from typing import Any, Optional


class IntakeError(Exception):
    """Base exception for all intake pipeline errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context.
        recoverable: Whether the error is potentially recoverable.

    Example:
        >>> raise IntakeError("Something went wrong", details={"code": 500})
        IntakeError: Something went wrong
    """

    def __init__(
        self,
        message: str,
        *,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        """Initialize IntakeError.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional context about the error.
            recoverable: Whether the error is potentially recoverable through
                retry or an alternative path. Defaults to False.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        """Return string representation of the error."""
        return self.message

    def __repr__(self) -> str:
        """Return detailed representation of the error."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"recoverable={self.recoverable!r})"
        )


class ExtractionError(IntakeError):
    """Error raised when text or facts cannot be extracted from a document.

    Attributes:
        source: The document or source that failed extraction.
        field: The specific field that failed to extract (if applicable).
        document_type: Type of document being processed (if known).

    Example:
        >>> raise ExtractionError(
        ...     "PDF has no text layer",
        ...     source="rent_roll.pdf",
        ...     document_type="RENT_ROLL",
        ... )
        ExtractionError: PDF has no text layer
    """

    def __init__(
        self,
        message: str,
        *,
        source: Optional[str] = None,
        field: Optional[str] = None,
        document_type: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = True,
    ) -> None:
        """Initialize ExtractionError.

        Args:
            message: Human-readable error description.
            source: The document path or identifier being processed.
            field: The specific field that failed extraction.
            document_type: Type of document (e.g., "T12", "RENT_ROLL").
            details: Optional dictionary with additional context.
            recoverable: Whether extraction can be retried. Defaults to True
                since another extraction path may succeed.
        """
        super().__init__(message, details=details, recoverable=recoverable)
        self.source = source
        self.field = field
        self.document_type = document_type

        if source:
            self.details["source"] = source
        if field:
            self.details["field"] = field
        if document_type:
            self.details["document_type"] = document_type


class ClassifierError(IntakeError):
    """Error raised when an external classification service fails.

    Raised by the LLM classification tier on network errors, timeouts or
    unparseable responses. The classification engine always catches it and
    falls through to the best-effort tier.

    Attributes:
        classifier_name: Name or identifier of the classifier that failed.
        operation: The operation the classifier was attempting.
        api_error: The underlying API error message (if applicable).

    Example:
        >>> raise ClassifierError(
        ...     "No JSON found in response",
        ...     classifier_name="anthropic",
        ...     operation="classify_document",
        ... )
        ClassifierError: No JSON found in response
    """

    def __init__(
        self,
        message: str,
        *,
        classifier_name: Optional[str] = None,
        operation: Optional[str] = None,
        api_error: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = True,
    ) -> None:
        """Initialize ClassifierError.

        Args:
            message: Human-readable error description.
            classifier_name: Identifier for the classifier that encountered the error.
            operation: The specific operation being attempted.
            api_error: The underlying API error message if from an external service.
            details: Optional dictionary with additional context.
            recoverable: Whether the operation can be retried. Defaults to True
                since most service errors (rate limits, timeouts) are transient.
        """
        super().__init__(message, details=details, recoverable=recoverable)
        self.classifier_name = classifier_name
        self.operation = operation
        self.api_error = api_error

        if classifier_name:
            self.details["classifier_name"] = classifier_name
        if operation:
            self.details["operation"] = operation
        if api_error:
            self.details["api_error"] = api_error


class PersistenceError(IntakeError):
    """Error raised when a write to shared intake state is rejected.

    Persistence failures are fatal to the artifact being processed: continuing
    would leave checklist state inconsistent with the document's true type.

    Attributes:
        operation: The write that failed (e.g. "stamp_document").
        entity: The kind of record being written.
        entity_id: Identifier of the record being written.

    Example:
        >>> raise PersistenceError(
        ...     "Document not found",
        ...     operation="stamp_document",
        ...     entity="deal_documents",
        ...     entity_id="doc-1",
        ... )
        PersistenceError: Document not found
    """

    def __init__(
        self,
        message: str,
        *,
        operation: Optional[str] = None,
        entity: Optional[str] = None,
        entity_id: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        """Initialize PersistenceError.

        Args:
            message: Human-readable error description.
            operation: The write operation that failed.
            entity: The table or record type being written.
            entity_id: The identifier of the record being written.
            details: Optional dictionary with additional context.
            recoverable: Whether the write can be retried. Defaults to False.
        """
        super().__init__(message, details=details, recoverable=recoverable)
        self.operation = operation
        self.entity = entity
        self.entity_id = entity_id

        if operation:
            self.details["operation"] = operation
        if entity:
            self.details["entity"] = entity
        if entity_id:
            self.details["entity_id"] = entity_id


class ConfigurationError(IntakeError):
    """Error raised when configuration is invalid or missing.

    Attributes:
        config_key: The configuration key that is problematic.
        expected: Description of the expected value or format.
        actual: The actual value found (if any).

    Example:
        >>> raise ConfigurationError(
        ...     "Missing required API key",
        ...     config_key="ANTHROPIC_API_KEY",
        ...     expected="Valid Anthropic API key",
        ... )
        ConfigurationError: Missing required API key
    """

    def __init__(
        self,
        message: str,
        *,
        config_key: Optional[str] = None,
        expected: Optional[str] = None,
        actual: Optional[Any] = None,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        """Initialize ConfigurationError.

        Args:
            message: Human-readable error description.
            config_key: The name of the configuration key that is problematic.
            expected: Description of what value was expected.
            actual: The actual value found (avoid including secrets).
            details: Optional dictionary with additional context.
            recoverable: Whether the error can be fixed at runtime.
                Defaults to False.
        """
        super().__init__(message, details=details, recoverable=recoverable)
        self.config_key = config_key
        self.expected = expected
        self.actual = actual

        if config_key:
            self.details["config_key"] = config_key
        if expected:
            self.details["expected"] = expected
        if actual is not None:
            self.details["actual"] = actual


__all__ = [
    "IntakeError",
    "ExtractionError",
    "ClassifierError",
    "PersistenceError",
    "ConfigurationError",
]
