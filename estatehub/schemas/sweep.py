"""
Pydantic schemas for on-demand expiration sweeps.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime


class SweepRequest(BaseModel):
    """Optional cut-off for a manual sweep; defaults to the current time."""

    now: Optional[datetime] = Field(
        None,
        description="Expire listings due at or before this time; a time after the server clock is treated as now"
    )


class SweepReportResponse(BaseModel):
    started_at: datetime
    finished_at: Optional[datetime] = None
    scanned: int = Field(..., examples=[42])
    expired: int = Field(..., examples=[40])
    skipped: int = Field(..., examples=[2])
    completed: bool

    model_config = ConfigDict(from_attributes=True)
