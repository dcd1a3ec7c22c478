"""Unit tests for the cross-platform ingestion manager"""

from finance_ingest.domain.models import SourceType
from finance_ingest.infrastructure.database.models import TransactionRecord
from finance_ingest.services.manager import CrossPlatformIngestionManager
from finance_ingest.sources.android_sms import AndroidSmsListener
from finance_ingest.sources.base import LoopbackBridge, StaticPermissionProvider

HDFC_DEBIT_SMS = "HDFC Bank: Amount ₹5,000 debited from A/C XX1234. Ref: TXN123456. Date: 15 Dec 2025"
ICICI_CREDIT_TEXT = "ICICI Bank: ₹2,500 credited to your account. Balance: ₹45,000"


async def test_manual_ingest_requires_initialization(manager):
    """Test manual ingest before initialize() is refused without raising"""
    result = await manager.manual_ingest(ICICI_CREDIT_TEXT)

    assert not result.success
    assert result.reason == "not-initialized"
    assert result.failure is None


async def test_manual_ingest_records_pasted_text(manager, created_results, db):
    """Test pasted bank text is detected, categorized and reported to the callback"""
    await manager.initialize("user_1", "acc_1")

    result = await manager.manual_ingest(ICICI_CREDIT_TEXT)

    assert result.success
    assert result.metadata["type"] == "income"
    assert result.metadata["amount"] == 2500.0
    assert created_results == [result]

    stored = db.query(TransactionRecord).one()
    assert stored.provider == "ICICI Bank"
    assert stored.source_metadata["source_type"] == "Manual"
    assert stored.source_metadata["sender_identifier"] == "manual_input"
    assert stored.source_metadata["platform"] == "Android"


async def test_initialize_starts_listener(manager, bridge):
    """Test initialize() starts the platform listener when its source is enabled"""
    assert not manager.is_initialized()

    await manager.initialize("user_1", "acc_1")

    assert manager.is_initialized()
    assert manager.is_listening()
    assert bridge.is_registered("sms_received")


async def test_listener_messages_are_ingested(manager, sms_listener, created_results, db):
    """Test an SMS delivered by the OS ends up as a stored transaction"""
    await manager.initialize("user_1", "acc_1")

    assert sms_listener.test_sms(HDFC_DEBIT_SMS, sender="VM-HDFCBK")
    await manager.flush()

    assert len(created_results) == 1
    stored = db.query(TransactionRecord).one()
    assert stored.account_id == "acc_1"
    assert stored.amount == 5000.0
    assert stored.source_metadata["source_type"] == "SMS"


async def test_listener_duplicate_not_reported(manager, sms_listener, created_results, db):
    """Test the same SMS delivered twice is stored and reported once"""
    await manager.initialize("user_1", "acc_1")

    sms_listener.test_sms(HDFC_DEBIT_SMS, sender="VM-HDFCBK")
    sms_listener.test_sms(HDFC_DEBIT_SMS, sender="VM-HDFCBK")
    await manager.flush()

    assert len(created_results) == 1
    assert db.query(TransactionRecord).count() == 1


async def test_source_toggle_controls_listener(manager):
    """Test disabling the SMS source stops the listener and enabling restarts it"""
    await manager.initialize("user_1", "acc_1")

    await manager.set_source_enabled(SourceType.SMS, False)
    assert not manager.is_listening()
    assert manager.get_settings().android_sms_enabled is False

    await manager.set_source_enabled(SourceType.SMS, True)
    assert manager.is_listening()


async def test_auto_detection_off_stops_listener(manager):
    """Test the global switch stops listening"""
    await manager.initialize("user_1", "acc_1")

    await manager.update_settings({"auto_detection_enabled": False})

    assert not manager.is_listening()


async def test_permission_denied_does_not_block_manual_ingest(service, bridge):
    """Test a refused permission leaves the manager usable for pasted text"""
    listener = AndroidSmsListener(bridge=bridge, permissions=StaticPermissionProvider(granted=False))
    manager = CrossPlatformIngestionManager(service, source=listener)

    await manager.initialize("user_1", "acc_1")

    assert manager.is_initialized()
    assert not manager.is_listening()
    assert (await manager.manual_ingest(ICICI_CREDIT_TEXT)).success


async def test_context_switch_discards_queue(manager, service, sms_message):
    """Test messages queued for the previous account are dropped on switch"""
    await manager.initialize("user_1", "acc_1")
    service.queue_message(sms_message(), "user_1", "acc_1")

    await manager.initialize("user_1", "acc_2")

    assert service.queue_size() == 0
    assert manager.is_listening()


async def test_cleanup(manager, sms_listener, service, sms_message):
    """Test cleanup stops listening, clears the queue and forgets the context"""
    await manager.initialize("user_1", "acc_1")
    service.queue_message(sms_message(), "user_1", "acc_1")

    await manager.cleanup()

    assert not manager.is_initialized()
    assert not manager.is_listening()
    assert service.queue_size() == 0
    assert sms_listener.test_sms(HDFC_DEBIT_SMS, sender="VM-HDFCBK") is False


async def test_failing_callback_does_not_fail_ingest(service, sms_listener):
    """Test errors raised by on_transaction_created are contained"""

    def explode(result):
        raise RuntimeError("ui gone")

    manager = CrossPlatformIngestionManager(service, source=sms_listener, on_transaction_created=explode)
    await manager.initialize("user_1", "acc_1")

    assert (await manager.manual_ingest(ICICI_CREDIT_TEXT)).success


def test_confidence_threshold_passthrough(manager):
    """Test threshold reads and writes go through to the service"""
    manager.set_confidence_threshold(0.75)
    assert manager.get_confidence_threshold() == 0.75

    manager.set_confidence_threshold(3)
    assert manager.get_confidence_threshold() == 1.0


async def test_manager_without_source(service):
    """Test a manager on a host with no listener still handles manual input"""
    manager = CrossPlatformIngestionManager(service)
    await manager.initialize("user_1", "acc_1")

    assert not manager.is_listening()
    result = await manager.manual_ingest(ICICI_CREDIT_TEXT)
    assert result.success


async def test_listener_registration_failure_does_not_abort_initialize(service):
    """Test a bridge that fails to register leaves the manager initialized and usable"""

    class FailingBridge(LoopbackBridge):
        def register(self, event_name, handler):
            raise RuntimeError("native receiver registration failed")

    manager = CrossPlatformIngestionManager(service, source=AndroidSmsListener(bridge=FailingBridge()))

    await manager.initialize("user_1", "acc_1")

    assert manager.is_initialized()
    assert not manager.is_listening()
    assert (await manager.manual_ingest(ICICI_CREDIT_TEXT)).success
