"""Domain-specific exceptions"""

from typing import Any, Dict, Optional

from finance_ingest.domain.models import FailureKind


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class IngestionRejected(DomainException):
    """A message was turned away by the pipeline; carries the caller-facing reason"""

    kind: FailureKind = FailureKind.UNEXPECTED_ERROR
    reason: str = "unexpected-error"

    def __init__(self, message: str, reason: Optional[str] = None, metadata: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        if reason is not None:
            self.reason = reason
        self.metadata = metadata or {}


class SourceDisabledError(IngestionRejected):
    """Ingestion from this source type is switched off"""

    kind = FailureKind.SOURCE_DISABLED
    reason = "source-disabled"


class AutoDetectionDisabledError(IngestionRejected):
    """Automatic transaction detection is switched off"""

    kind = FailureKind.AUTO_DETECTION_DISABLED
    reason = "auto-detection-disabled"


class NoTransactionDetectedError(IngestionRejected):
    """No bank pattern or heuristic match, or below the confidence floor"""

    kind = FailureKind.NO_TRANSACTION_DETECTED
    reason = "no transaction detected"


class PersistenceRejectedError(IngestionRejected):
    """Candidate refused at the persistence gate (low confidence or duplicate)"""

    kind = FailureKind.PERSISTENCE_REJECTED


class InvalidBankConfigurationError(DomainException):
    """Bank configuration data is malformed"""

    pass


class InvalidSettingsError(DomainException):
    """Unknown or out-of-range ingestion setting"""

    pass


class ListenerError(DomainException):
    """A message source could not be started"""

    pass


class PermissionDeniedError(ListenerError):
    """The OS refused the permission a listener needs"""

    pass


class SourceUnavailableError(ListenerError):
    """The listener is not supported on this platform"""

    pass


class BankConfigSourceError(DomainException):
    """Remote bank configuration source returned an error or is unavailable"""

    pass
