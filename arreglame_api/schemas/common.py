from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class IDModel(BaseModel):
    """Base schema exposing a UUID primary key."""
    id: UUID = Field(..., description="Unique identifier")


class MessageResponse(BaseModel):
    """Standard message response."""
    message: str = Field(..., description="Human readable message")
    details: Optional[dict] = Field(default=None, description="Optional extra data")


class SuccessResponse(BaseModel):
    """Boolean outcome of a mutation."""
    success: bool = Field(..., description="Whether the operation succeeded")


class ErrorInfo(BaseModel):
    """Structured error description."""
    code: str = Field(..., description="Client-facing error code (e.g. UNAUTHENTICATED, BAD_USER_INPUT)")
    title: str = Field(..., description="Short title to show in a toast")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Any] = Field(default=None, description="Optional error details (e.g., validation issues)")


# PUBLIC_INTERFACE
class ErrorResponse(BaseModel):
    """Standardized API error envelope returned by exception handlers."""
    status: int = Field(..., description="HTTP status code")
    error: ErrorInfo = Field(..., description="Error details")
    correlation_id: Optional[str] = Field(default=None, description="Request correlation ID")
    path: Optional[str] = Field(default=None, description="Request path")
    method: Optional[str] = Field(default=None, description="HTTP method")
    timestamp: datetime = Field(..., description="Error timestamp (UTC)")


class ApiInfo(BaseModel):
    endpoint: str
    available: bool


class HealthResponse(BaseModel):
    """Liveness payload."""
    status: str = Field(..., description="Always 'ok' when the process is serving")
    message: str = Field(..., description="Human readable status")
    timestamp: datetime = Field(..., description="Server time (UTC)")
    environment: str = Field(..., description="Deployment environment label")
    api: ApiInfo
    version: str = Field(..., description="API version")


class EnumInfo(BaseModel):
    """A registered enumeration and its values."""
    name: str
    description: Optional[str] = None
    values: List[str]


class EnumListResponse(BaseModel):
    enums: List[EnumInfo]


class EngineStatus(BaseModel):
    ai: bool
    rule_based: bool
    active_engine: str


ErrorResponses: Dict[int | str, Dict[str, Any]] = {
    400: {"model": ErrorResponse, "description": "Bad user input"},
    401: {"model": ErrorResponse, "description": "Unauthenticated"},
    403: {"model": ErrorResponse, "description": "Forbidden"},
    404: {"model": ErrorResponse, "description": "Not found"},
}
