"""
API models and schemas for the FastAPI application.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class MonitorRequest(BaseModel):
    """Body of a monitor trigger request; empty fields fall back to configured credentials."""
    username: Optional[str] = Field(None, alias="credentialA", description="Reservation site username")
    password: Optional[str] = Field(None, alias="credentialB", description="Reservation site password")
    request_id: Optional[str] = Field(None, alias="requestId", description="Caller supplied request identifier")

    class Config:
        populate_by_name = True


class MonitorResponse(BaseModel):
    """Result of a monitor run."""
    success: bool = Field(..., description="Whether the run completed")
    request_id: str = Field(..., alias="requestId")
    timestamp: str = Field(..., description="Completion time (ISO format)")
    months_checked: int = Field(..., alias="monthsChecked")
    changed_months: int = Field(..., alias="changedMonths", description="Months that warrant a notification")
    summary: Dict[str, Any] = Field(..., description="Aggregate counts")
    results: List[Dict[str, Any]] = Field(..., description="Per-month outcomes")
    webhook_sent: bool = Field(..., alias="webhookSent")

    class Config:
        populate_by_name = True


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    status_code: int = Field(..., description="HTTP status code")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    browser: str = Field(..., description="Browser automation readiness")
    credentials_configured: bool = Field(..., description="Whether fallback credentials are configured")
    run_in_progress: bool = Field(False, description="Whether a monitor run is currently active")
