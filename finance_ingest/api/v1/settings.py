"""Ingestion settings endpoints"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from finance_ingest.api.dependencies import get_bank_config_client, get_manager, get_request_id
from finance_ingest.api.v1.schemas import (
    BankConfigurationRefreshResponse,
    ConfidenceThresholdRequest,
    SettingsResponse,
    SettingsUpdateRequest,
    SourceToggleRequest,
)
from finance_ingest.domain.exceptions import BankConfigSourceError, InvalidSettingsError
from finance_ingest.domain.models import SourceType
from finance_ingest.infrastructure.clients.bank_configs import BankConfigClient
from finance_ingest.services.manager import CrossPlatformIngestionManager

router = APIRouter()


def _settings_response(manager: CrossPlatformIngestionManager) -> SettingsResponse:
    return SettingsResponse.from_settings(manager.get_settings(), manager.is_listening())


@router.get("/settings", response_model=SettingsResponse)
def get_settings(manager: CrossPlatformIngestionManager = Depends(get_manager)):
    return _settings_response(manager)


@router.patch("/settings", response_model=SettingsResponse)
async def update_settings(
    request_body: SettingsUpdateRequest,
    request: Request,
    manager: CrossPlatformIngestionManager = Depends(get_manager),
):
    """Apply a partial settings update; listener start/stop follows the new settings"""
    try:
        await manager.update_settings(request_body.model_dump(exclude_unset=True))
    except InvalidSettingsError as e:
        logging.warning(f"Invalid settings update: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=422, detail=str(e))
    return _settings_response(manager)


@router.put("/settings/sources/{source_type}", response_model=SettingsResponse)
async def set_source_enabled(
    source_type: SourceType,
    request_body: SourceToggleRequest,
    manager: CrossPlatformIngestionManager = Depends(get_manager),
):
    await manager.set_source_enabled(source_type, request_body.enabled)
    return _settings_response(manager)


@router.put("/settings/confidence-threshold", response_model=SettingsResponse)
def set_confidence_threshold(
    request_body: ConfidenceThresholdRequest,
    manager: CrossPlatformIngestionManager = Depends(get_manager),
):
    manager.set_confidence_threshold(request_body.value)
    return _settings_response(manager)


@router.post("/bank-configurations/refresh", response_model=BankConfigurationRefreshResponse)
async def refresh_bank_configurations(
    request: Request,
    manager: CrossPlatformIngestionManager = Depends(get_manager),
    client: BankConfigClient = Depends(get_bank_config_client),
):
    """Replace custom bank configurations with the remote source's list"""
    request_id = get_request_id(request)
    try:
        configs = await client.fetch_configurations()
    except BankConfigSourceError as e:
        logging.error(f"Bank configuration refresh failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Bank configuration source unavailable")

    await manager.update_settings({"bank_configurations": configs})
    logging.info(f"Loaded {len(configs)} bank configuration(s)", extra={"request_id": request_id})
    return BankConfigurationRefreshResponse(loaded=len(configs), configuration_ids=[c.id for c in configs])
