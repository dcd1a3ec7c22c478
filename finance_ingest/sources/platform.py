"""Platform capability detection and listener selection"""

import sys
from typing import Optional

from finance_ingest.domain.models import Platform
from finance_ingest.sources.android_sms import AndroidSmsListener
from finance_ingest.sources.base import MessageSource, NativeEventBridge, PermissionProvider
from finance_ingest.sources.ios_notifications import IosNotificationListener

_PLATFORM_NAMES = {"android": Platform.ANDROID, "ios": Platform.IOS}

SOURCE_CLASSES = [AndroidSmsListener, IosNotificationListener]


def detect_platform(override: Optional[str] = None) -> Optional[Platform]:
    """
    Explicit override first, then the interpreter's sys.platform; None on desktop/server.

    sys.platform only reports "android" or "ios" from CPython 3.13 onward. Hosts
    embedding an older interpreter must set the override (the PLATFORM setting).
    """
    name = (override or sys.platform).lower()
    return _PLATFORM_NAMES.get(name)


def create_message_source(
    platform: Optional[Platform],
    bridge: Optional[NativeEventBridge] = None,
    permissions: Optional[PermissionProvider] = None,
) -> Optional[MessageSource]:
    for source_class in SOURCE_CLASSES:
        if source_class.supports(platform):
            return source_class(bridge=bridge, permissions=permissions)
    return None
