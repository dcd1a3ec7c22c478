"""Dependency injection for FastAPI endpoints"""

from fastapi import Request

from finance_ingest.infrastructure.clients.bank_configs import BankConfigClient
from finance_ingest.services.manager import CrossPlatformIngestionManager


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_manager(request: Request) -> CrossPlatformIngestionManager:
    """The manager built once in create_app()"""
    return request.app.state.manager


def get_bank_config_client() -> BankConfigClient:
    """Provide remote bank configuration client instance"""
    return BankConfigClient()
