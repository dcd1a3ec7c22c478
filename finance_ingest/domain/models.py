"""Domain models - pure Python dataclasses representing pipeline entities"""

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class SourceType(str, Enum):
    SMS = "SMS"
    NOTIFICATION = "Notification"
    EMAIL = "Email"
    MANUAL = "Manual"


class Platform(str, Enum):
    ANDROID = "Android"
    IOS = "iOS"


class TransactionIntent(str, Enum):
    CREDIT = "Credit"
    DEBIT = "Debit"
    TRANSFER = "Transfer"
    IGNORE = "Ignore"


class FailureKind(str, Enum):
    """Why an ingest() call did not produce a record"""

    SOURCE_DISABLED = "SourceDisabled"
    AUTO_DETECTION_DISABLED = "AutoDetectionDisabled"
    NO_TRANSACTION_DETECTED = "NoTransactionDetected"
    PERSISTENCE_REJECTED = "PersistenceRejected"
    UNEXPECTED_ERROR = "UnexpectedError"


INTENT_TO_TYPE = {
    TransactionIntent.CREDIT: "income",
    TransactionIntent.DEBIT: "expense",
    TransactionIntent.TRANSFER: "transfer",
}


def clamp_unit(value: float) -> float:
    """Clip a score into [0, 1]"""
    return min(1.0, max(0.0, float(value)))


@dataclass
class UnifiedMessage:
    """Common envelope for an inbound text event, whatever its source. Never persisted."""

    raw_text: str
    source_type: SourceType
    sender_identifier: str
    platform: Optional[Platform] = None
    confidence_hint: float = 0.5
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = field(default_factory=dict)
    message_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        self.confidence_hint = clamp_unit(self.confidence_hint)


@dataclass
class ProcessingMetadata:
    """Audit trail of what normalization stripped or rewrote"""

    noise_removed: List[str] = field(default_factory=list)
    normalizations: List[str] = field(default_factory=list)


@dataclass
class NormalizedMessage:
    """A UnifiedMessage plus its cleaned text"""

    message: UnifiedMessage
    clean_text: str
    original_raw_text: str
    processing_metadata: ProcessingMetadata

    @property
    def source_type(self) -> SourceType:
        return self.message.source_type

    @property
    def sender_identifier(self) -> str:
        return self.message.sender_identifier

    @property
    def confidence_hint(self) -> float:
        return self.message.confidence_hint

    @property
    def timestamp(self) -> datetime:
        return self.message.timestamp


@dataclass
class ExtractedTransactionData:
    type: Optional[str] = None  # "income", "expense" or "transfer"
    amount: Optional[float] = None
    currency: Optional[str] = None
    date: Optional[datetime] = None
    bank_or_provider: Optional[str] = None
    account_identifier: Optional[str] = None
    reference_number: Optional[str] = None
    description: Optional[str] = None
    counterparty: Optional[str] = None


EXTRACTED_FIELDS = frozenset(ExtractedTransactionData.__dataclass_fields__)


@dataclass
class ExtractionDetails:
    matched_patterns: List[str] = field(default_factory=list)
    pattern_matches: Dict[str, str] = field(default_factory=dict)
    field_scores: Dict[str, float] = field(default_factory=dict)
    overall_confidence: float = 0.0
    warnings: List[str] = field(default_factory=list)


@dataclass
class ClassificationResult:
    """Category suggestion with its own confidence"""

    category: str
    confidence: float
    matched_keyword: Optional[str] = None


@dataclass
class TransactionCandidate:
    """Provisional transaction inferred from one message; lives for a single ingest() call"""

    message: NormalizedMessage
    intent: TransactionIntent
    confidence_score: float
    extracted_data: ExtractedTransactionData
    extraction_details: ExtractionDetails
    classification: Optional[ClassificationResult] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    processed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        self.confidence_score = clamp_unit(self.confidence_score)

    @property
    def effective_date(self) -> datetime:
        """Date stated in the message text, else when the message was received"""
        return self.extracted_data.date or self.message.timestamp


@dataclass
class RuleSource:
    """Where a field value comes from: a numbered capture group or a named extractor"""

    kind: str  # "group" | "named"
    index: Optional[int] = None
    ref: Optional[str] = None


@dataclass
class FieldRule:
    field: str
    source: RuleSource
    transform: Optional[str] = None
    required: bool = False


@dataclass
class PatternRule:
    name: str
    regex: str
    intent: TransactionIntent
    field_extraction: List[FieldRule] = field(default_factory=list)
    minimum_confidence: float = 0.7
    active: bool = True
    compiled: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.compiled = re.compile(self.regex, re.IGNORECASE)


@dataclass
class BankConfiguration:
    """One bank's sender identifiers and message formats. Read-only reference data."""

    id: str
    name: str
    sender_identifiers: List[str]
    patterns: List[PatternRule]
    currency: str = "INR"
    active: bool = True


@dataclass
class IngestionSettings:
    """Runtime policy, mutable through the manager"""

    auto_detection_enabled: bool = True
    confidence_threshold: float = 0.6
    android_sms_enabled: bool = True
    notifications_enabled: bool = True
    email_parsing_enabled: bool = False
    manual_scan_enabled: bool = True
    auto_category_enabled: bool = True
    debug_mode: bool = False
    bank_configurations: List[BankConfiguration] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.confidence_threshold = clamp_unit(self.confidence_threshold)

    def is_source_enabled(self, source_type: SourceType) -> bool:
        flag = SOURCE_SETTING_FLAGS.get(source_type)
        return bool(flag and getattr(self, flag))


SOURCE_SETTING_FLAGS = {
    SourceType.SMS: "android_sms_enabled",
    SourceType.NOTIFICATION: "notifications_enabled",
    SourceType.EMAIL: "email_parsing_enabled",
    SourceType.MANUAL: "manual_scan_enabled",
}


@dataclass
class IngestionResult:
    """Terminal value returned to every ingest() caller"""

    success: bool
    message_id: str
    record_id: Optional[str] = None
    error: Optional[str] = None
    reason: Optional[str] = None
    failure: Optional[FailureKind] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DeduplicationRules:
    amount_tolerance: float = 0.01
    time_window_seconds: int = 60
    require_account_match: bool = True
    require_provider_match: bool = True
    hash_date_granularity: str = "day"  # "day" | "minute" | "second"


@dataclass
class DuplicateCheckResult:
    is_duplicate: bool
    duplicate_ids: List[str]
    similarity_score: float
    reason: str


@dataclass
class ExistingRecord:
    """A stored transaction as seen by the deduplication engine"""

    id: str
    amount: Optional[float]
    transaction_date: Optional[datetime]
    currency: Optional[str] = None
    account_identifier: Optional[str] = None
    provider: Optional[str] = None
    notes: Optional[str] = None
    dedup_hash: Optional[str] = None


@dataclass
class FinalTransactionRecord:
    """What the persistence layer hands to the storage collaborator"""

    user_id: str
    account_id: str
    type: str
    amount: float
    currency: Optional[str]
    transaction_date: datetime
    dedup_hash: str
    notes: str = ""
    provider: Optional[str] = None
    account_identifier: Optional[str] = None
    reference_number: Optional[str] = None
    category_name: Optional[str] = None
    category_id: Optional[str] = None
    source_metadata: Dict[str, Any] = field(default_factory=dict)
