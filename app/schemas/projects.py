#app/schemas/projects.py
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ProjectCreateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(..., min_length=1, max_length=256)
    description: str = Field(default="", max_length=10000)
    budget: Optional[Decimal] = Field(default=None, gt=0)


class ProjectPatchRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, min_length=1, max_length=256)
    description: Optional[str] = Field(default=None, max_length=10000)
    budget: Optional[Decimal] = Field(default=None, gt=0)


class ProjectCompleteRequest(BaseModel):
    finalAmount: Optional[Decimal] = Field(default=None, ge=0)
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    review: Optional[str] = Field(default=None, min_length=1, max_length=2000)
