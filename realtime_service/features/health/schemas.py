"""Health check response schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

HealthStatus = Literal["healthy", "degraded", "unhealthy"]


class HealthResponse(BaseModel):
    """Service health.

    Example:
        ```json
        {
            "status": "healthy",
            "timestamp": "2025-01-01T00:00:00Z",
            "service": "realtime-service",
            "version": "1.0.0",
            "environment": "production",
            "uptime_seconds": 3600.5,
            "checks": {"realtime": true, "realtime_fresh": true}
        }
        ```
    """

    status: HealthStatus = Field(description="Health status (healthy, degraded, unhealthy)")
    timestamp: datetime = Field(description="Check timestamp")
    service: str = Field(min_length=1, max_length=100, description="Service name")
    version: str = Field(min_length=1, max_length=50, description="Service version")
    environment: str = Field(description="Deployment environment")
    uptime_seconds: float = Field(ge=0.0, description="Seconds since startup")
    checks: dict[str, bool] = Field(
        default_factory=dict, description="Individual component checks"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "degraded",
                "timestamp": "2025-01-01T00:00:00Z",
                "service": "realtime-service",
                "version": "1.0.0",
                "environment": "development",
                "uptime_seconds": 12.0,
                "checks": {"realtime": False, "realtime_fresh": True},
            }
        }
    )
