"""iOS banking notification listener"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Set

from finance_ingest.domain.models import Platform, SourceType, UnifiedMessage
from finance_ingest.sources.base import MessageSource, NativeEventBridge, PermissionProvider

DEFAULT_BANKING_APPS = [
    "com.hdfcbank.app",
    "com.icicibank.android",
    "com.axisbank.bm",
    "com.kotak.m.banking",
    "com.ibl.mobilebanking",
    "in.co.barodampay",
]

BANKING_KEYWORDS = [
    "bank", "finance", "payment", "paypal", "stripe", "wallet",
    "google pay", "apple pay", "gpay", "phonepe", "paytm", "razorpay",
]

# Title fragments identifying the sending app; the first match wins
APP_IDENTIFIERS = [
    (re.compile(r"\bhdfc\b", re.IGNORECASE), "hdfc"),
    (re.compile(r"\bicici\b", re.IGNORECASE), "icici"),
    (re.compile(r"\baxis\b", re.IGNORECASE), "axis"),
    (re.compile(r"\bsbi\b|state bank", re.IGNORECASE), "sbi"),
    (re.compile(r"\bkotak\b", re.IGNORECASE), "kotak"),
    (re.compile(r"\bidbi\b", re.IGNORECASE), "idbi"),
    (re.compile(r"\bbob\b|bank of baroda", re.IGNORECASE), "bob"),
    (re.compile(r"\bpaypal\b", re.IGNORECASE), "paypal"),
    (re.compile(r"\bstripe\b", re.IGNORECASE), "stripe"),
    (re.compile(r"\bgoogle\s*pay\b|\bgpay\b", re.IGNORECASE), "googlepay"),
    (re.compile(r"\bapple\s*pay\b", re.IGNORECASE), "applepay"),
    (re.compile(r"\bphonepe\b", re.IGNORECASE), "phonepe"),
    (re.compile(r"\bpaytm\b", re.IGNORECASE), "paytm"),
    (re.compile(r"\brazorpay\b", re.IGNORECASE), "razorpay"),
]


@dataclass
class NotificationEvent:
    title: str
    body: str
    source_app: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    notification_id: Optional[str] = None


def extract_app_identifier(title: str) -> str:
    for pattern, identifier in APP_IDENTIFIERS:
        if pattern.search(title or ""):
            return identifier
    return "unknown"


class IosNotificationListener(MessageSource):
    """
    Forwards banking notifications only.

    A notification passes when its bundle id is on the allowlist, or when its
    title or body mentions a banking keyword.
    """

    source_type = SourceType.NOTIFICATION
    platform = Platform.IOS
    confidence_hint = 0.8
    event_name = "notification_posted"
    permission = "notifications"

    def __init__(
        self,
        bridge: Optional[NativeEventBridge] = None,
        permissions: Optional[PermissionProvider] = None,
        banking_apps: Optional[List[str]] = None,
    ):
        super().__init__(bridge, permissions)
        self.banking_apps: Set[str] = set(banking_apps if banking_apps is not None else DEFAULT_BANKING_APPS)

    def is_banking_notification(self, event: NotificationEvent) -> bool:
        if event.source_app in self.banking_apps:
            return True
        text = f"{event.title} {event.body}".lower()
        return any(re.search(r"\b" + re.escape(kw) + r"\b", text) for kw in BANKING_KEYWORDS)

    def translate(self, event: NotificationEvent) -> Optional[UnifiedMessage]:
        title = (event.title or "").strip()
        body = (event.body or "").strip()
        if not body or not self.is_banking_notification(event):
            return None

        sender = extract_app_identifier(title)
        if sender == "unknown" and event.source_app:
            sender = event.source_app

        return UnifiedMessage(
            raw_text=f"{title}: {body}" if title else body,
            source_type=self.source_type,
            sender_identifier=sender,
            platform=self.platform,
            confidence_hint=self.confidence_hint,
            timestamp=event.timestamp,
            metadata={
                "source_app": event.source_app,
                "title": title,
                "notification_id": event.notification_id,
            },
        )

    def add_banking_app(self, bundle_id: str) -> None:
        self.banking_apps.add(bundle_id)

    def remove_banking_app(self, bundle_id: str) -> None:
        self.banking_apps.discard(bundle_id)

    def get_banking_apps(self) -> List[str]:
        return sorted(self.banking_apps)

    def test_notification(self, title: str, body: str, source_app: str = "com.hdfcbank.app") -> bool:
        """Inject a notification as if the OS had posted it"""
        return self._handle_event(NotificationEvent(title=title, body=body, source_app=source_app))
