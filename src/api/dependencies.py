"""
Shared FastAPI dependencies for the reconciliation services
"""

from typing import Optional

from fastapi import HTTPException
from loguru import logger

from src.core.errors import ConfigurationError
from src.services.chain_reader import ChainReader, get_chain_reader
from src.services.reconciliation.service import (
    ReconciliationService,
    get_reconciliation_service,
)


def get_service() -> ReconciliationService:
    """Reconciliation service, 503 when the chain is not configured"""
    try:
        return get_reconciliation_service()
    except ConfigurationError as e:
        logger.error(f"Reconciliation unavailable: {e}")
        raise HTTPException(status_code=503, detail=str(e))


def get_optional_chain_reader() -> Optional[ChainReader]:
    """Chain reader, or None when the chain is not configured"""
    try:
        return get_chain_reader()
    except ConfigurationError as e:
        logger.warning(f"Chain reader unavailable: {e}")
        return None
