"""
Natours API — Shared Response Schemas
======================================

What:  Pydantic models for the responses this layer produces itself.
Who:   Used as ``response_model`` by the health and webhook routes and as
       OpenAPI documentation for error responses. Resource routers define
       their own schemas.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Body of every API error response.

    ``status`` is "fail" for 4xx and "error" otherwise. The remaining fields
    are only present in development.
    """

    status: str = Field(description="'fail' for client errors, 'error' otherwise")
    message: str = Field(description="Human-readable error description")
    error: Optional[Dict[str, Any]] = Field(default=None, description="Error type and flags (development)")
    stack: Optional[List[str]] = Field(default=None, description="Formatted traceback (development)")
    origin: Optional[str] = Field(default=None, description="Frame that raised the failure (development)")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID (development)")


class HealthResponse(BaseModel):
    status: str = Field(description="Service status")
    version: str = Field(description="Application version")
    environment: str = Field(description="Value of NODE_ENV")
    uptime_seconds: float = Field(description="Seconds since service started")


class WebhookAck(BaseModel):
    received: bool = Field(default=True, description="Payload accepted by the handler")
