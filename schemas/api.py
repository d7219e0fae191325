"""
Pydantic schemas for the status API responses
"""

from pydantic import BaseModel, Field, validator
from typing import Optional, List, Dict
from datetime import datetime
from schemas.sync import SyncRunSummary


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response model"""
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    database_connected: bool
    last_runs: Dict[str, SyncRunSummary] = Field(default_factory=dict)
    total_entity_types: int = 0
    failed_entity_types: int = 0
    status: str = Field("healthy", description="Overall system status: healthy, degraded, unhealthy")

    @validator("status", pre=True, always=True)
    def determine_status(cls, v, values):
        """Determine overall health status from the store and the last runs"""
        if not values.get("database_connected", False):
            return "unhealthy"

        failed = values.get("failed_entity_types", 0)
        total = values.get("total_entity_types", 0)

        if total == 0 or failed == 0:
            return "healthy"
        if failed < total:
            return "degraded"
        return "unhealthy"

    class Config:
        json_schema_extra = {
            "example": {
                "status": "healthy",
                "timestamp": "2026-01-15T10:30:00Z",
                "database_connected": True,
                "total_entity_types": 2,
                "failed_entity_types": 0,
                "last_runs": {}
            }
        }


# ============================================================================
# Run History Schemas
# ============================================================================

class RunsResponse(BaseModel):
    """Recent sync runs, newest first"""
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    count: int
    runs: List[SyncRunSummary]


# ============================================================================
# Statistics Schemas
# ============================================================================

class EntityCount(BaseModel):
    """Local row counts and detail progress for one collection"""
    entity_type: str
    rows: int
    two_phase: bool
    detail_fetched: Optional[int] = None
    detail_pending: Optional[int] = None


class EntityStatistics(EntityCount):
    """Row counts plus the last successful run for one collection"""
    last_successful_run: Optional[SyncRunSummary] = None
    successful_runs: int = 0
    total_fetched: int = 0


class StatsResponse(BaseModel):
    """Statistics response model"""
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    total_records: int
    pending_details: int
    entities: List[EntityStatistics]

    class Config:
        json_schema_extra = {
            "example": {
                "timestamp": "2026-01-15T10:30:00Z",
                "total_records": 237,
                "pending_details": 12,
                "entities": [
                    {
                        "entity_type": "contacts",
                        "rows": 237,
                        "two_phase": True,
                        "detail_fetched": 225,
                        "detail_pending": 12,
                        "successful_runs": 3,
                        "total_fetched": 711
                    }
                ]
            }
        }


# ============================================================================
# Error Response Schema
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response"""
    error: str
    detail: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)
