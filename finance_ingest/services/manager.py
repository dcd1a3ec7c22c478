"""Cross-platform ingestion manager - binds a user/account context to a live listener"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional, Set, Tuple

from finance_ingest.domain.models import (
    IngestionResult,
    IngestionSettings,
    SourceType,
    UnifiedMessage,
)
from finance_ingest.infrastructure.observability.metrics import listener_error_counter
from finance_ingest.services.ingestion import UnifiedIngestionService
from finance_ingest.sources.base import MessageSource

logger = logging.getLogger(__name__)

MANUAL_SENDER = "manual_input"
MANUAL_CONFIDENCE_HINT = 0.5

TransactionCallback = Callable[[IngestionResult], None]


class CrossPlatformIngestionManager:
    """
    Entry point for UI and settings callers.

    Listener events may arrive on any thread. They are handed to the event loop
    captured in initialize(), queued on the service with the context current at
    arrival, and drained there by background tasks.
    """

    def __init__(
        self,
        service: UnifiedIngestionService,
        source: Optional[MessageSource] = None,
        on_transaction_created: Optional[TransactionCallback] = None,
    ):
        self.service = service
        self.source = source
        self.on_transaction_created = on_transaction_created

        self._context: Optional[Tuple[str, str]] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._drain_tasks: Set[asyncio.Task] = set()

    async def initialize(self, user_id: str, account_id: str) -> None:
        """Bind the active (user, account) and start the listener if settings allow"""
        if self._context and self._context != (user_id, account_id):
            logger.info(f"Switching ingestion context to account {account_id}")
            self.service.clear_queue()

        self._context = (user_id, account_id)
        self._loop = asyncio.get_running_loop()
        await self._reconcile_listener()
        logger.info(
            "Ingestion manager initialized",
            extra={"user_id": user_id, "account_id": account_id, "listening": self.is_listening()},
        )

    async def manual_ingest(self, text: str) -> IngestionResult:
        """Pasted text goes through the same pipeline as automatic sources"""
        message = UnifiedMessage(
            raw_text=text,
            source_type=SourceType.MANUAL,
            sender_identifier=MANUAL_SENDER,
            platform=self.source.platform if self.source else None,
            confidence_hint=MANUAL_CONFIDENCE_HINT,
        )
        if self._context is None:
            return IngestionResult(
                success=False,
                message_id=message.message_id,
                error="Ingestion manager is not initialized",
                reason="not-initialized",
            )

        user_id, account_id = self._context
        result = await self.service.ingest(message, user_id, account_id)
        self._notify(result)
        return result

    async def update_settings(self, partial: Dict[str, Any]) -> IngestionSettings:
        updated = self.service.update_settings(partial)
        await self._reconcile_listener()
        return updated

    async def set_source_enabled(self, source_type: SourceType, enabled: bool) -> None:
        self.service.set_source_enabled(source_type, enabled)
        await self._reconcile_listener()

    def set_confidence_threshold(self, value: float) -> None:
        self.service.set_confidence_threshold(value)

    def get_settings(self) -> IngestionSettings:
        return self.service.get_settings()

    def get_confidence_threshold(self) -> float:
        return self.service.settings.confidence_threshold

    async def flush(self) -> None:
        """Wait until every message delivered so far has been ingested"""
        # Let pending thread-safe handoffs run first
        await asyncio.sleep(0)
        while self._drain_tasks:
            await asyncio.gather(*list(self._drain_tasks))
            await asyncio.sleep(0)
        await self._drain()

    async def stop_listeners(self) -> None:
        if self.source and self.source.is_active():
            await self.source.stop_listening()

    async def cleanup(self) -> None:
        """Stop listening and drop the context; drains already running are left to finish"""
        await self.stop_listeners()
        self.service.clear_queue()
        self._context = None
        logger.info("Ingestion manager cleaned up")

    def is_initialized(self) -> bool:
        return self._context is not None

    def is_listening(self) -> bool:
        return bool(self.source and self.source.is_active())

    async def _reconcile_listener(self) -> None:
        if self.source is None:
            return

        settings = self.service.settings
        wanted = (
            self._context is not None
            and settings.auto_detection_enabled
            and settings.is_source_enabled(self.source.source_type)
        )

        if wanted and not self.source.is_active():
            await self.source.start_listening(self._on_message, self._on_listener_error)
        elif not wanted and self.source.is_active():
            await self.source.stop_listening()

    def _on_message(self, message: UnifiedMessage) -> None:
        if self._loop is None or self._loop.is_closed():
            logger.warning(f"Dropping message {message.message_id}: no running event loop bound")
            return
        self._loop.call_soon_threadsafe(self._enqueue, message)

    def _on_listener_error(self, error: Exception) -> None:
        source = self.source.source_type.value if self.source else "unknown"
        listener_error_counter.labels(source=source).inc()
        logger.error(f"Listener error from {source}: {error}")

    def _enqueue(self, message: UnifiedMessage) -> None:
        if self._context is None:
            logger.debug(f"Dropping message {message.message_id}: manager has no active context")
            return

        user_id, account_id = self._context
        self.service.queue_message(message, user_id, account_id)
        task = self._loop.create_task(self._drain())
        self._drain_tasks.add(task)
        task.add_done_callback(self._drain_tasks.discard)

    async def _drain(self) -> None:
        for result in await self.service.process_queue():
            self._notify(result)

    def _notify(self, result: IngestionResult) -> None:
        if result.success and self.on_transaction_created:
            try:
                self.on_transaction_created(result)
            except Exception as e:
                logger.error(f"on_transaction_created callback failed: {e}")
