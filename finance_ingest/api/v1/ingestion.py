"""Session binding and ingestion endpoints"""

import logging
from datetime import timezone

from fastapi import APIRouter, Depends, HTTPException, Request

from finance_ingest.api.dependencies import get_manager, get_request_id
from finance_ingest.api.v1.schemas import (
    IngestionResultResponse,
    IngestMessageRequest,
    ManualIngestRequest,
    SessionRequest,
    SessionResponse,
)
from finance_ingest.domain.models import UnifiedMessage
from finance_ingest.services.manager import CrossPlatformIngestionManager

router = APIRouter()


@router.post("/session", response_model=SessionResponse)
async def start_session(
    request_body: SessionRequest,
    manager: CrossPlatformIngestionManager = Depends(get_manager),
):
    """Bind the active user/account and start the platform listener if enabled"""
    await manager.initialize(request_body.user_id, request_body.account_id)
    return SessionResponse(initialized=manager.is_initialized(), listening=manager.is_listening())


@router.delete("/session", response_model=SessionResponse)
async def end_session(manager: CrossPlatformIngestionManager = Depends(get_manager)):
    await manager.cleanup()
    return SessionResponse(initialized=manager.is_initialized(), listening=manager.is_listening())


@router.post("/ingest", response_model=IngestionResultResponse)
async def ingest_message(
    request_body: IngestMessageRequest,
    request: Request,
    manager: CrossPlatformIngestionManager = Depends(get_manager),
):
    """
    Run a device-captured message through the pipeline.

    Rejections (disabled source, nothing detected, duplicate, low confidence) are
    returned with success=false and a reason, not as HTTP errors.
    """
    message = UnifiedMessage(
        raw_text=request_body.raw_text,
        source_type=request_body.source_type,
        sender_identifier=request_body.sender_identifier,
        platform=request_body.platform,
        confidence_hint=request_body.confidence_hint,
        metadata={**request_body.metadata, "request_id": get_request_id(request)},
    )
    if request_body.timestamp:
        ts = request_body.timestamp
        message.timestamp = ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)

    result = await manager.service.ingest(message, request_body.user_id, request_body.account_id)
    return IngestionResultResponse.from_result(result)


@router.post("/ingest/manual", response_model=IngestionResultResponse)
async def ingest_manual(
    request_body: ManualIngestRequest,
    request: Request,
    manager: CrossPlatformIngestionManager = Depends(get_manager),
):
    """Ingest pasted text for the active session"""
    if not manager.is_initialized():
        logging.warning("Manual ingest without an active session", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=409, detail="No active session; POST /v1/session first")

    result = await manager.manual_ingest(request_body.text)
    return IngestionResultResponse.from_result(result)
