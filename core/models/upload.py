"""
Release Upload Models.

A ReleaseUpload is a manually uploaded build artifact for one platform
and upload stage. Rows are written by the upload intake and consumed
exactly once by the manual build gate; consumed rows stay as an audit
trail.

Exports:
    ReleaseUploadRecord: Upload database model
"""

from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, Field, model_validator

from .enums import Platform, UploadStage


class ReleaseUploadRecord(BaseModel):
    """Database representation of a manual build upload."""

    upload_id: str = Field(..., description="Unique upload identifier")
    release_id: str = Field(..., description="Owning release")
    stage: UploadStage
    platform: Platform
    artifact_path: Optional[str] = Field(default=None, description="Storage key of the artifact")

    used: bool = False
    used_by_task_id: Optional[str] = None
    used_in_cycle_id: Optional[str] = None
    used_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def _consumer_only_when_used(self) -> "ReleaseUploadRecord":
        if not self.used and self.used_by_task_id is not None:
            raise ValueError("used_by_task_id set on an unused upload")
        return self


__all__ = ['ReleaseUploadRecord']
