"""
Pydantic schemas for segment, review, batch and export endpoints.
"""
from pydantic import BaseModel, Field
from typing import List, Literal, Optional

class DraftIn(BaseModel):
    """Draft text sent by the editor on every change."""
    text: str

class DenyIn(BaseModel):
    """
    Request model for denying a submitted transcription.
    reason is validated by the review pipeline so a missing or unknown reason
    comes back as a workflow validation error, not a schema error.
    """
    reason: Optional[str] = None  # One of the denial reasons (see /guidelines)
    comments: Optional[str] = None

class BatchSegmentIn(BaseModel):
    """One extracted audio file of an uploaded batch."""
    filename: str
    duration: float = Field(default=0, ge=0)  # Seconds

class BatchCreateIn(BaseModel):
    """Request model for batch ingestion."""
    name: str
    workerIds: List[str]  # Assigned round-robin, in this order
    segments: List[BatchSegmentIn]

class ExportIn(BaseModel):
    """
    Request model for exports.
    Dates are ISO strings; a bare date (YYYY-MM-DD) covers the whole day.
    """
    format: Literal["json", "csv", "txt"] = "json"
    status: List[str] = Field(default_factory=list)  # Empty means every status
    startDate: Optional[str] = None
    endDate: Optional[str] = None
    assignedTo: Optional[str] = None
    batchId: Optional[str] = None
