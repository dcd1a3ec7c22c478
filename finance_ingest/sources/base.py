"""Message source interface and the seams to the host OS (permissions, native callbacks)"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Protocol

from finance_ingest.domain.exceptions import ListenerError, PermissionDeniedError
from finance_ingest.domain.models import Platform, SourceType, UnifiedMessage

logger = logging.getLogger(__name__)

MessageCallback = Callable[[UnifiedMessage], None]
ErrorCallback = Callable[[Exception], None]
EventHandler = Callable[[Any], None]


class PermissionProvider(Protocol):
    async def request(self, permission: str) -> bool:
        ...


class NativeEventBridge(Protocol):
    """Delivers OS events (incoming SMS, posted notifications) to a registered handler"""

    def register(self, event_name: str, handler: EventHandler) -> None:
        ...

    def unregister(self, event_name: str) -> None:
        ...


class StaticPermissionProvider:
    """Answers every permission request the same way"""

    def __init__(self, granted: bool = True):
        self.granted = granted
        self.requested: List[str] = []

    async def request(self, permission: str) -> bool:
        self.requested.append(permission)
        return self.granted


class LoopbackBridge:
    """In-process bridge; emit() plays the role of the OS"""

    def __init__(self):
        self._handlers: Dict[str, EventHandler] = {}

    def register(self, event_name: str, handler: EventHandler) -> None:
        self._handlers[event_name] = handler

    def unregister(self, event_name: str) -> None:
        self._handlers.pop(event_name, None)

    def is_registered(self, event_name: str) -> bool:
        return event_name in self._handlers

    def emit(self, event_name: str, payload: Any) -> bool:
        """Deliver an event; False when nobody is listening"""
        handler = self._handlers.get(event_name)
        if handler is None:
            return False
        handler(payload)
        return True


class MessageSource(ABC):
    """
    A platform listener that turns native events into UnifiedMessages.

    Starting an already-active source is a no-op. Registration and permission
    failures go to on_error when one is given, otherwise they are raised.
    """

    source_type: SourceType
    platform: Platform
    confidence_hint: float
    event_name: str
    permission: str

    def __init__(
        self,
        bridge: Optional[NativeEventBridge] = None,
        permissions: Optional[PermissionProvider] = None,
    ):
        self.bridge = bridge or LoopbackBridge()
        self.permissions = permissions or StaticPermissionProvider()
        self._on_message: Optional[MessageCallback] = None
        self._on_error: Optional[ErrorCallback] = None
        self._active = False

    @classmethod
    def supports(cls, platform: Optional[Platform]) -> bool:
        return platform == cls.platform

    async def start_listening(self, on_message: MessageCallback, on_error: Optional[ErrorCallback] = None) -> None:
        if self._active:
            logger.warning(f"{type(self).__name__} is already listening")
            return

        try:
            await self._register()
        except ListenerError as e:
            logger.error(f"{type(self).__name__} failed to start: {e}")
            if on_error is None:
                raise
            on_error(e)
            return

        self._on_message = on_message
        self._on_error = on_error
        self._active = True
        logger.info(f"{type(self).__name__} started listening")

    async def _register(self) -> None:
        """Request the permission and attach to the bridge; every failure surfaces as a ListenerError"""
        try:
            granted = await self.permissions.request(self.permission)
            if granted:
                self.bridge.register(self.event_name, self._handle_event)
        except ListenerError:
            raise
        except Exception as e:
            raise ListenerError(f"Could not register for {self.event_name}: {e}") from e

        if not granted:
            raise PermissionDeniedError(f"Permission {self.permission} was denied")

    async def stop_listening(self) -> None:
        if not self._active:
            return
        self.bridge.unregister(self.event_name)
        self._active = False
        self._on_message = None
        self._on_error = None
        logger.info(f"{type(self).__name__} stopped listening")

    def is_active(self) -> bool:
        return self._active

    def _handle_event(self, event: Any) -> bool:
        """Translate and forward one native event; True if a message was delivered"""
        if not self._active or self._on_message is None:
            return False

        try:
            message = self.translate(event)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.warning(f"{type(self).__name__} could not read event: {e}")
            if self._on_error:
                self._on_error(ListenerError(f"Malformed {self.event_name} event: {e}"))
            return False

        if message is None:
            return False
        self._on_message(message)
        return True

    @abstractmethod
    def translate(self, event: Any) -> Optional[UnifiedMessage]:
        """Build a UnifiedMessage, or None when the event should be filtered out"""
