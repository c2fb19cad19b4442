# coding: utf-8
"""
Admin API Key Authentication

Protects the /admin reconciliation endpoints with a shared key.

Usage:
    @router.post("/admin/protected-endpoint")
    async def protected(_: str = Depends(verify_admin_key)):
        # Only accessible with a valid admin key
        pass
"""
from fastapi import Header, HTTPException
from typing import Optional

from loguru import logger
from config.config import ADMIN_API_KEY


async def verify_admin_key(
    x_admin_key: Optional[str] = Header(None, description="Admin API key")
) -> str:
    """
    Verify admin key from request header

    Headers:
        X-Admin-Key: your-secret-admin-key

    Raises:
        HTTPException 401: If the key is missing or invalid
        HTTPException 500: If ADMIN_API_KEY is not configured

    Returns:
        Admin key if valid
    """
    if not x_admin_key:
        logger.warning("Admin key missing in request")
        raise HTTPException(
            status_code=401,
            detail="Missing admin key. Provide X-Admin-Key header."
        )

    # Check if admin key is configured
    if not ADMIN_API_KEY:
        logger.error("ADMIN_API_KEY not configured in .env")
        raise HTTPException(
            status_code=500,
            detail="Admin authentication not configured"
        )

    if x_admin_key != ADMIN_API_KEY:
        logger.warning(f"Invalid admin key attempt: {x_admin_key[:4]}...")
        raise HTTPException(
            status_code=401,
            detail="Invalid admin key"
        )

    return x_admin_key
