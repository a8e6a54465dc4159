"""Schemas shared by module schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class TimestampSchema(BaseModel):
    created_at: datetime
    updated_at: Optional[datetime] = Field(default=None)
