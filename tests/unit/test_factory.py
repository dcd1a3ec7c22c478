"""Unit tests for startup wiring"""

import logging

from finance_ingest.config import Settings
from finance_ingest.infrastructure.database.session import build_engine
from finance_ingest.infrastructure.observability.logging import CustomJsonFormatter
from finance_ingest.services.factory import create_ingestion_manager
from finance_ingest.sources.android_sms import AndroidSmsListener
from finance_ingest.sources.ios_notifications import IosNotificationListener

ICICI_CREDIT_TEXT = "ICICI Bank: ₹2,500 credited to your account. Balance: ₹45,000"


def test_manager_uses_platform_override(session_factory):
    """Test the configured platform picks the listener"""
    android = create_ingestion_manager(Settings(platform="android"), session_factory)
    ios = create_ingestion_manager(Settings(platform="ios"), session_factory)

    assert isinstance(android.source, AndroidSmsListener)
    assert isinstance(ios.source, IosNotificationListener)


def test_manager_applies_configuration(session_factory):
    """Test process configuration reaches the service and dedup rules"""
    config = Settings(
        platform="android",
        default_confidence_threshold=0.7,
        hash_date_granularity="minute",
        duplicate_time_window_seconds=120,
        similarity_threshold=0.9,
        batch_delay_seconds=0,
    )

    manager = create_ingestion_manager(config, session_factory)

    service = manager.service
    assert service.settings.confidence_threshold == 0.7
    assert service.batch_delay_seconds == 0
    assert service.persistence.similarity_threshold == 0.9
    rules = service.persistence.dedup_engine.get_rules()
    assert rules.hash_date_granularity == "minute"
    assert rules.time_window_seconds == 120


async def test_wired_manager_records_transactions(session_factory):
    """Test a factory-built manager writes through the given session factory"""
    manager = create_ingestion_manager(Settings(platform="android", batch_delay_seconds=0), session_factory)
    await manager.initialize("user_1", "acc_1")

    result = await manager.manual_ingest(ICICI_CREDIT_TEXT)

    assert result.success
    assert manager.is_listening()


def test_build_engine_sqlite():
    """Test SQLite engines are usable across threads"""
    engine = build_engine("sqlite://")
    assert engine.dialect.name == "sqlite"
    engine.dispose()


def test_json_formatter_adds_service_fields():
    """Test every log line carries level and service"""
    formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
    record = logging.LogRecord("finance_ingest", logging.INFO, __file__, 1, "Ingestion completed", None, None)

    output = formatter.format(record)

    assert '"level": "INFO"' in output
    assert '"service": "finance-ingest"' in output
