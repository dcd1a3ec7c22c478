"""Unit tests for the unified ingestion service"""

import asyncio
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from finance_ingest.domain.exceptions import InvalidSettingsError
from finance_ingest.domain.models import FailureKind, SourceType, UnifiedMessage
from finance_ingest.infrastructure.database.models import TransactionRecord

HDFC_DEBIT_SMS = "HDFC Bank: Amount ₹5,000 debited from A/C XX1234. Ref: TXN123456. Date: 15 Dec 2025"
AXIS_DEBIT_SMS = "Your account XX1234 debited with INR 700.00 on 03/04/2025"
PROMO_TEXT = "50% off! Click here to shop now"


async def test_bank_sms_recorded(service, sms_message, db):
    """Test a bank SMS flows through to a stored transaction"""
    result = await service.ingest(sms_message(), "user_1", "acc_1")

    assert result.success
    assert result.failure is None
    assert result.metadata["matched_patterns"] == ["hdfc_debit"]

    stored = db.query(TransactionRecord).one()
    assert stored.id == result.record_id
    assert stored.type == "expense"
    assert stored.amount == 5000.0
    assert stored.currency == "INR"
    assert stored.reference_number == "TXN123456"
    assert stored.source_metadata["source_type"] == "SMS"


async def test_same_text_twice_is_duplicate(service, sms_message, db):
    """Test ingesting identical text twice for one account records it once"""
    first = await service.ingest(sms_message(), "user_1", "acc_1")
    second = await service.ingest(sms_message(), "user_1", "acc_1")

    assert first.success
    assert not second.success
    assert "duplicate" in second.reason
    assert second.failure == FailureKind.PERSISTENCE_REJECTED
    assert db.query(TransactionRecord).count() == 1


async def test_generic_text_twice_is_duplicate(service, sms_message):
    """Test duplicates are caught for heuristic detections without a stated date"""
    text = "INR 320 paid to Zomato from account XX5678"

    assert (await service.ingest(sms_message(text, sender="AD-XYZ"), "user_1", "acc_1")).success
    second = await service.ingest(sms_message(text, sender="AD-XYZ"), "user_1", "acc_1")

    assert second.reason == "duplicate"


async def test_sms_and_notification_for_same_payment(service, sms_message, db):
    """Test a bank notification repeating an earlier SMS is rejected as a duplicate"""
    sms = sms_message()
    sms.timestamp = datetime(2025, 12, 15, 14, 3, tzinfo=timezone.utc)
    notification = UnifiedMessage(
        raw_text="HDFC Bank: INR 5,000 debited from A/C XX1234",
        source_type=SourceType.NOTIFICATION,
        sender_identifier="hdfc",
        confidence_hint=0.8,
        timestamp=datetime(2025, 12, 15, 14, 3, 10, tzinfo=timezone.utc),
    )

    assert (await service.ingest(sms, "user_1", "acc_1")).success
    second = await service.ingest(notification, "user_1", "acc_1")

    assert second.reason == "duplicate"
    assert second.metadata["mechanism"] == "similarity"
    assert db.query(TransactionRecord).count() == 1


async def test_promotional_text_not_detected(service, sms_message):
    """Test promotional messages are rejected with a reason"""
    result = await service.ingest(sms_message(PROMO_TEXT), "user_1", "acc_1")

    assert not result.success
    assert result.reason == "no transaction detected"
    assert result.failure == FailureKind.NO_TRANSACTION_DETECTED


async def test_disabled_source_rejected(service):
    """Test email parsing is off by default"""
    message = UnifiedMessage(raw_text=HDFC_DEBIT_SMS, source_type=SourceType.EMAIL, sender_identifier="alerts@hdfcbank.net")

    result = await service.ingest(message, "user_1", "acc_1")

    assert result.reason == "source-disabled"
    assert result.failure == FailureKind.SOURCE_DISABLED


async def test_auto_detection_disabled(service, sms_message):
    """Test the global detection switch short-circuits before normalization"""
    service.update_settings({"auto_detection_enabled": False})
    service.normalizer = MagicMock()

    result = await service.ingest(sms_message(), "user_1", "acc_1")

    assert result.reason == "auto-detection-disabled"
    service.normalizer.normalize.assert_not_called()


async def test_low_confidence_rejected_at_persistence(service, sms_message, db):
    """Test a bank match below the configured threshold is not written"""
    service.set_confidence_threshold(0.85)

    result = await service.ingest(sms_message(AXIS_DEBIT_SMS, sender="AX-AXISBK"), "user_1", "acc_1")

    assert not result.success
    assert result.reason == "low-confidence"
    assert db.query(TransactionRecord).count() == 0


async def test_message_without_amount_never_persisted(service, sms_message):
    """Test text with no amount never reaches the persistence layer"""
    service.persistence.create_transaction_from_candidate = AsyncMock()

    result = await service.ingest(sms_message("Your account was debited today", hint=1.0), "user_1", "acc_1")

    assert not result.success
    service.persistence.create_transaction_from_candidate.assert_not_awaited()


async def test_unexpected_error_contained(service, sms_message):
    """Test exceptions inside the pipeline come back as a failed result"""
    service.detector = MagicMock()
    service.detector.detect_transaction.side_effect = RuntimeError("regex engine exploded")

    result = await service.ingest(sms_message(), "user_1", "acc_1")

    assert not result.success
    assert result.reason == "unexpected-error"
    assert result.failure == FailureKind.UNEXPECTED_ERROR
    assert "exploded" in result.error


async def test_classification_toggle(service, sms_message, db):
    """Test auto-categorization can be switched off"""
    service.update_settings({"auto_category_enabled": False})
    await service.ingest(sms_message(), "user_1", "acc_1")

    assert db.query(TransactionRecord).one().category_name is None


async def test_batch_continues_past_failures(service, sms_message):
    """Test a rejected item does not stop the batch"""
    messages = [
        sms_message(PROMO_TEXT),
        sms_message(),
        sms_message(AXIS_DEBIT_SMS, sender="AX-AXISBK"),
    ]

    results = await service.ingest_batch(messages, "user_1", "acc_1")

    assert [r.success for r in results] == [False, True, True]


async def test_queue_drains_in_order(service, sms_message):
    """Test queued messages are ingested FIFO"""
    promo = sms_message(PROMO_TEXT)
    debit = sms_message()
    service.queue_message(promo, "user_1", "acc_1")
    service.queue_message(debit, "user_1", "acc_1")
    assert service.queue_size() == 2

    results = await service.process_queue()

    assert [r.message_id for r in results] == [promo.message_id, debit.message_id]
    assert service.queue_size() == 0
    assert not service.is_processing()


async def test_queue_processing_not_reentrant(service, sms_message):
    """Test a second drain started during the first returns immediately"""
    service.queue_message(sms_message(), "user_1", "acc_1")
    service.queue_message(sms_message(PROMO_TEXT), "user_1", "acc_1")

    first, second = await asyncio.gather(service.process_queue(), service.process_queue())

    assert sorted([len(first), len(second)]) == [0, 2]


def test_clear_queue(service, sms_message):
    """Test clearing reports how many messages were dropped"""
    service.queue_message(sms_message(), "user_1", "acc_1")

    assert service.clear_queue() == 1
    assert service.queue_size() == 0


def test_update_settings_validation(service):
    """Test unknown keys and wrong types are rejected without partial updates"""
    with pytest.raises(InvalidSettingsError):
        service.update_settings({"sms_enabled": False})

    with pytest.raises(InvalidSettingsError):
        service.update_settings({"android_sms_enabled": "no"})

    with pytest.raises(InvalidSettingsError):
        service.update_settings({"debug_mode": True, "bank_configurations": [{"id": "broken"}]})

    assert service.get_settings().debug_mode is False


def test_threshold_clamped(service):
    """Test thresholds outside [0, 1] are clamped"""
    service.set_confidence_threshold(1.5)
    assert service.get_settings().confidence_threshold == 1.0

    service.update_settings({"confidence_threshold": -0.2})
    assert service.get_settings().confidence_threshold == 0.0


def test_bank_configurations_setting_reaches_detector(service):
    """Test custom bank configurations supplied as plain data are installed"""
    service.update_settings(
        {
            "bank_configurations": [
                {
                    "id": "demo",
                    "name": "Demo Bank",
                    "sender_identifiers": ["DEMO"],
                    "patterns": [
                        {
                            "name": "demo_debit",
                            "regex": r"inr\s*(\d+) gone",
                            "intent": "Debit",
                            "field_extraction": [
                                {"field": "amount", "source": {"kind": "group", "index": 1}, "transform": "parse_amount"},
                            ],
                        }
                    ],
                }
            ]
        }
    )

    assert "demo" in service.detector.bank_configs
    assert [c.id for c in service.get_settings().bank_configurations] == ["demo"]


def test_get_settings_returns_copy(service):
    """Test callers cannot mutate live settings through the returned object"""
    snapshot = service.get_settings()
    snapshot.android_sms_enabled = False
    snapshot.bank_configurations.append(object())

    assert service.settings.android_sms_enabled is True
    assert service.settings.bank_configurations == []


def test_source_toggle_and_debug_mode(service):
    """Test per-source switches and the debug toggle"""
    service.set_source_enabled(SourceType.NOTIFICATION, False)
    assert service.get_settings().notifications_enabled is False

    assert service.toggle_debug_mode() is True
    assert service.toggle_debug_mode() is False
