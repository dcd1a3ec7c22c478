"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from finance_ingest.domain.models import IngestionResult, IngestionSettings, Platform, SourceType


class SessionRequest(BaseModel):
    """Request body for POST /v1/session"""

    user_id: str = Field(..., min_length=1, description="User identifier")
    account_id: str = Field(..., min_length=1, description="Account that detected transactions are recorded against")


class SessionResponse(BaseModel):
    initialized: bool
    listening: bool


class IngestMessageRequest(BaseModel):
    """A message captured on a device, for an explicit user/account"""

    user_id: str = Field(..., min_length=1)
    account_id: str = Field(..., min_length=1)
    raw_text: str
    source_type: SourceType
    sender_identifier: str = ""
    platform: Optional[Platform] = None
    confidence_hint: float = Field(0.5, ge=0.0, le=1.0)
    timestamp: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ManualIngestRequest(BaseModel):
    """Request body for POST /v1/ingest/manual"""

    text: str = Field(..., min_length=1, description="Pasted message text")


class IngestionResultResponse(BaseModel):
    success: bool
    message_id: str
    record_id: Optional[str] = None
    error: Optional[str] = None
    reason: Optional[str] = None
    failure: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_result(cls, result: IngestionResult) -> "IngestionResultResponse":
        return cls(
            success=result.success,
            message_id=result.message_id,
            record_id=result.record_id,
            error=result.error,
            reason=result.reason,
            failure=result.failure.value if result.failure else None,
            metadata=result.metadata,
        )


class SettingsResponse(BaseModel):
    auto_detection_enabled: bool
    confidence_threshold: float
    android_sms_enabled: bool
    notifications_enabled: bool
    email_parsing_enabled: bool
    manual_scan_enabled: bool
    auto_category_enabled: bool
    debug_mode: bool
    bank_configuration_ids: List[str]
    listening: bool

    @classmethod
    def from_settings(cls, settings: IngestionSettings, listening: bool) -> "SettingsResponse":
        return cls(
            auto_detection_enabled=settings.auto_detection_enabled,
            confidence_threshold=settings.confidence_threshold,
            android_sms_enabled=settings.android_sms_enabled,
            notifications_enabled=settings.notifications_enabled,
            email_parsing_enabled=settings.email_parsing_enabled,
            manual_scan_enabled=settings.manual_scan_enabled,
            auto_category_enabled=settings.auto_category_enabled,
            debug_mode=settings.debug_mode,
            bank_configuration_ids=[c.id for c in settings.bank_configurations],
            listening=listening,
        )


class SettingsUpdateRequest(BaseModel):
    """Partial update; only the fields sent are changed"""

    model_config = ConfigDict(extra="forbid")

    auto_detection_enabled: Optional[bool] = None
    confidence_threshold: Optional[float] = None
    android_sms_enabled: Optional[bool] = None
    notifications_enabled: Optional[bool] = None
    email_parsing_enabled: Optional[bool] = None
    manual_scan_enabled: Optional[bool] = None
    auto_category_enabled: Optional[bool] = None
    debug_mode: Optional[bool] = None
    bank_configurations: Optional[List[Dict[str, Any]]] = None


class SourceToggleRequest(BaseModel):
    enabled: bool


class ConfidenceThresholdRequest(BaseModel):
    """Values outside [0, 1] are clamped, not rejected"""

    value: float


class BankConfigurationRefreshResponse(BaseModel):
    loaded: int
    configuration_ids: List[str]
