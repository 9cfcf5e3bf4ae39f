"""
API key authentication for the FastAPI application.
"""
import os
from typing import Optional

from fastapi import Header, HTTPException, status


def get_api_key() -> str:
    """Get API key from environment variables."""
    api_key = os.getenv("API_KEY")
    if not api_key:
        raise ValueError("API_KEY environment variable is required")
    return api_key


def verify_api_key_header(x_api_key: Optional[str] = Header(None)) -> str:
    """Verify API key from x-api-key header."""
    try:
        expected_key = get_api_key()
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "auth_not_configured", "hint": "Authentication not configured"},
        )

    if not x_api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "unauthorized", "hint": "Missing x-api-key header"},
        )

    if x_api_key != expected_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "unauthorized", "hint": "Invalid API key"},
        )

    return x_api_key
