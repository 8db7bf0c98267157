"""Pydantic schemas for photographer photo operations"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UploadInitRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(alias="fileName", min_length=1, max_length=255)
    mime_type: str = Field(alias="mimeType", min_length=1, max_length=120)
    file_size: int = Field(alias="fileSize", ge=1, le=50_000_000)
    width: Optional[int] = Field(default=None, ge=1, le=50_000)
    height: Optional[int] = Field(default=None, ge=1, le=50_000)
    captured_at: Optional[datetime] = Field(default=None, alias="capturedAt")
