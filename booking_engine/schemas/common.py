"""
Common schemas for API responses and error handling.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Schema for detailed error information."""

    error_code: str = Field(..., description="Error code for programmatic handling")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error context")
    suggestions: Optional[List[str]] = Field(None, description="Helpful suggestions for resolving the error")
    retry_after: Optional[int] = Field(None, description="Seconds to wait before retrying")


class ErrorResponse(BaseModel):
    """Schema for API error responses."""

    error: ErrorDetail
    error_id: str
    timestamp: str

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "error": {
                        "error_code": "DUPLICATE_BOOKING",
                        "message": "You already have an active booking for this event (Status: confirmed)",
                        "details": {
                            "event_id": "0190f3c2-7d1e-7a4b-9c33-5b2a1d4e6f70",
                            "existing_status": "confirmed"
                        },
                        "suggestions": ["Cancel the existing booking first"]
                    },
                    "error_id": "6b1f0c1e-2f43-4bb4-8a61-3f0a8c2b9e11",
                    "timestamp": "2026-01-01T12:00:00+00:00"
                }
            ]
        }
    }


class PaginationMeta(BaseModel):
    """Schema for pagination metadata."""

    page: int = Field(..., ge=1, description="Current page number")
    limit: int = Field(..., ge=1, description="Number of items per page")
    total: int = Field(..., ge=0, description="Total number of items")
    pages: int = Field(..., ge=0, description="Total number of pages")


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    checks: Dict[str, str] = {}
