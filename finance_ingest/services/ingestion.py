"""Unified ingestion service - runs one message through the whole pipeline"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import fields, replace
from typing import Any, Deque, Dict, List, Optional, Tuple

from finance_ingest.domain.bank_configs import parse_bank_configuration
from finance_ingest.domain.classification import Classifier
from finance_ingest.domain.detection import TransactionDetectionEngine
from finance_ingest.domain.exceptions import (
    AutoDetectionDisabledError,
    IngestionRejected,
    InvalidBankConfigurationError,
    InvalidSettingsError,
    NoTransactionDetectedError,
    SourceDisabledError,
)
from finance_ingest.domain.models import (
    SOURCE_SETTING_FLAGS,
    BankConfiguration,
    FailureKind,
    IngestionResult,
    IngestionSettings,
    SourceType,
    UnifiedMessage,
)
from finance_ingest.domain.normalization import MessageNormalizationEngine
from finance_ingest.domain.persistence import PersistenceLayer
from finance_ingest.infrastructure.observability.logging import log_ingestion
from finance_ingest.infrastructure.observability.metrics import (
    record_detection,
    record_duplicate,
    record_ingestion,
)

logger = logging.getLogger(__name__)

SETTING_NAMES = frozenset(f.name for f in fields(IngestionSettings))
BOOLEAN_SETTINGS = SETTING_NAMES - {"confidence_threshold", "bank_configurations"}

QueuedMessage = Tuple[UnifiedMessage, str, str]


def coerce_bank_configurations(values: Any) -> List[BankConfiguration]:
    """Accept BankConfiguration objects or plain dicts"""
    if not isinstance(values, (list, tuple)):
        raise InvalidSettingsError("bank_configurations must be a list")
    configs = []
    for value in values:
        if isinstance(value, BankConfiguration):
            configs.append(value)
            continue
        if not isinstance(value, dict):
            raise InvalidSettingsError(f"Unsupported bank configuration entry: {value!r}")
        try:
            configs.append(parse_bank_configuration(value))
        except InvalidBankConfigurationError as e:
            raise InvalidSettingsError(f"Invalid bank configuration: {e}") from e
    return configs


class UnifiedIngestionService:
    """
    Orchestrates normalize -> detect -> classify -> persist for each message.

    ingest() never raises: every failure comes back as an unsuccessful
    IngestionResult with a reason. Holds the runtime IngestionSettings and a FIFO
    queue for messages delivered by listeners.
    """

    def __init__(
        self,
        normalizer: MessageNormalizationEngine,
        detector: TransactionDetectionEngine,
        classifier: Classifier,
        persistence: PersistenceLayer,
        settings: Optional[IngestionSettings] = None,
        batch_delay_seconds: float = 0.1,
    ):
        self.normalizer = normalizer
        self.detector = detector
        self.classifier = classifier
        self.persistence = persistence
        self.settings = settings or IngestionSettings()
        self.batch_delay_seconds = batch_delay_seconds

        self._queue: Deque[QueuedMessage] = deque()
        self._processing = False

        if self.settings.bank_configurations:
            self.detector.replace_custom_configs(self.settings.bank_configurations)

    async def ingest(self, message: UnifiedMessage, user_id: str, account_id: str) -> IngestionResult:
        start_time = time.time()

        try:
            result = await self._run_pipeline(message, user_id, account_id)
        except IngestionRejected as e:
            if e.reason == "duplicate":
                record_duplicate(e.metadata.get("mechanism", "unknown"))
            logger.debug(f"Message {message.message_id} rejected: {e}")
            result = IngestionResult(
                success=False,
                message_id=message.message_id,
                error=str(e),
                reason=e.reason,
                failure=e.kind,
                metadata=dict(e.metadata),
            )
        except Exception as e:
            logger.exception(f"Unexpected error ingesting message {message.message_id}: {e}")
            result = IngestionResult(
                success=False,
                message_id=message.message_id,
                error=str(e),
                reason="unexpected-error",
                failure=FailureKind.UNEXPECTED_ERROR,
            )

        duration_ms = (time.time() - start_time) * 1000
        record_ingestion(message.source_type.value, result.success, result.reason)
        log_ingestion(
            message.message_id,
            message.source_type.value,
            result.success,
            duration_ms,
            reason=result.reason,
            record_id=result.record_id,
        )
        if self.settings.debug_mode:
            logger.info(
                "Ingestion debug",
                extra={"message_id": message.message_id, "result": result.metadata, "error": result.error},
            )
        return result

    async def _run_pipeline(self, message: UnifiedMessage, user_id: str, account_id: str) -> IngestionResult:
        settings = self.settings

        if not settings.is_source_enabled(message.source_type):
            raise SourceDisabledError(f"Source {message.source_type.value} is disabled")
        if not settings.auto_detection_enabled:
            raise AutoDetectionDisabledError("Automatic transaction detection is disabled")

        normalized = self.normalizer.normalize(message)

        candidate = self.detector.detect_transaction(normalized, settings.confidence_threshold)
        if candidate is None:
            raise NoTransactionDetectedError("No transaction detected in message")
        record_detection(candidate.confidence_score)

        if settings.auto_category_enabled:
            candidate.classification = self.classifier.classify(candidate)

        result = await self.persistence.create_transaction_from_candidate(
            candidate,
            user_id,
            account_id,
            settings.confidence_threshold,
        )
        result.metadata.update(
            {
                "candidate_id": candidate.id,
                "intent": candidate.intent.value,
                "matched_patterns": list(candidate.extraction_details.matched_patterns),
                "warnings": list(candidate.extraction_details.warnings),
            }
        )
        return result

    async def ingest_batch(
        self,
        messages: List[UnifiedMessage],
        user_id: str,
        account_id: str,
    ) -> List[IngestionResult]:
        """Sequential ingest with a short pause between items; one failure does not stop the rest"""
        results = []
        for index, message in enumerate(messages):
            results.append(await self.ingest(message, user_id, account_id))
            if index < len(messages) - 1 and self.batch_delay_seconds > 0:
                await asyncio.sleep(self.batch_delay_seconds)
        return results

    def queue_message(self, message: UnifiedMessage, user_id: str, account_id: str) -> None:
        self._queue.append((message, user_id, account_id))

    async def process_queue(self) -> List[IngestionResult]:
        """
        Drain the queue in FIFO order.

        Returns an empty list immediately when a drain is already running; that
        drain picks up anything queued in the meantime.
        """
        if self._processing:
            logger.debug("Queue already being processed")
            return []

        self._processing = True
        results = []
        try:
            while self._queue:
                message, user_id, account_id = self._queue.popleft()
                results.append(await self.ingest(message, user_id, account_id))
        finally:
            self._processing = False
        return results

    def clear_queue(self) -> int:
        """Drop queued messages; returns how many were discarded"""
        dropped = len(self._queue)
        self._queue.clear()
        if dropped:
            logger.info(f"Discarded {dropped} queued message(s)")
        return dropped

    def queue_size(self) -> int:
        return len(self._queue)

    def is_processing(self) -> bool:
        return self._processing

    def update_settings(self, partial: Dict[str, Any]) -> IngestionSettings:
        """
        Apply a partial update atomically.

        Raises:
            InvalidSettingsError: Unknown option, wrong value type or invalid bank configuration
        """
        unknown = set(partial) - SETTING_NAMES
        if unknown:
            raise InvalidSettingsError(f"Unknown setting(s): {', '.join(sorted(unknown))}")

        changes = dict(partial)
        for name in BOOLEAN_SETTINGS & set(changes):
            if not isinstance(changes[name], bool):
                raise InvalidSettingsError(f"{name} must be a boolean")

        if "confidence_threshold" in changes:
            value = changes["confidence_threshold"]
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidSettingsError("confidence_threshold must be a number")

        if "bank_configurations" in changes:
            changes["bank_configurations"] = coerce_bank_configurations(changes["bank_configurations"])

        # replace() re-runs __post_init__, which clamps the threshold
        self.settings = replace(self.settings, **changes)

        if "bank_configurations" in changes:
            self.detector.replace_custom_configs(self.settings.bank_configurations)

        logger.info(f"Ingestion settings updated: {', '.join(sorted(changes))}")
        return self.get_settings()

    def get_settings(self) -> IngestionSettings:
        return replace(self.settings, bank_configurations=list(self.settings.bank_configurations))

    def set_source_enabled(self, source_type: SourceType, enabled: bool) -> None:
        self.update_settings({SOURCE_SETTING_FLAGS[source_type]: bool(enabled)})

    def set_confidence_threshold(self, value: float) -> None:
        """Values outside [0, 1] are clamped"""
        self.update_settings({"confidence_threshold": float(value)})

    def toggle_debug_mode(self) -> bool:
        self.update_settings({"debug_mode": not self.settings.debug_mode})
        return self.settings.debug_mode
