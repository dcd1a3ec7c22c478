"""Android SMS listener"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from finance_ingest.domain.detection import matches_sender
from finance_ingest.domain.models import Platform, SourceType, UnifiedMessage
from finance_ingest.sources.base import MessageSource, NativeEventBridge, PermissionProvider


@dataclass
class AndroidSmsEvent:
    """An incoming SMS as reported by the OS broadcast"""

    sender: str
    body: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    subscription_id: Optional[int] = None


class AndroidSmsListener(MessageSource):
    source_type = SourceType.SMS
    platform = Platform.ANDROID
    confidence_hint = 0.9
    event_name = "sms_received"
    permission = "android.permission.RECEIVE_SMS"

    def __init__(
        self,
        bridge: Optional[NativeEventBridge] = None,
        permissions: Optional[PermissionProvider] = None,
        allowed_senders: Optional[List[str]] = None,
    ):
        super().__init__(bridge, permissions)
        self.allowed_senders = allowed_senders

    def translate(self, event: AndroidSmsEvent) -> Optional[UnifiedMessage]:
        body = (event.body or "").strip()
        if not body:
            return None
        if self.allowed_senders and not any(matches_sender(event.sender, s) for s in self.allowed_senders):
            return None

        metadata = {}
        if event.subscription_id is not None:
            metadata["subscription_id"] = event.subscription_id

        return UnifiedMessage(
            raw_text=body,
            source_type=self.source_type,
            sender_identifier=event.sender or "unknown",
            platform=self.platform,
            confidence_hint=self.confidence_hint,
            timestamp=event.timestamp,
            metadata=metadata,
        )

    def test_sms(self, body: str, sender: str = "TEST-BANK") -> bool:
        """Inject an SMS as if the OS had delivered it"""
        return self._handle_event(AndroidSmsEvent(sender=sender, body=body))
