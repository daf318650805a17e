#app/schemas/bids.py
from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class BidSubmitRequest(BaseModel):
    """
    deliveryDays wins over deliveryTime; deliveryTime is free text such as
    "2 weeks" and is parsed server-side.
    """
    model_config = ConfigDict(extra="forbid")

    amount: Decimal = Field(..., gt=0)
    deliveryDays: Optional[int] = Field(default=None, gt=0, le=3650)
    deliveryTime: Optional[str] = Field(default=None, max_length=64)
    coverLetter: str = Field(..., min_length=10, max_length=2000)

    @model_validator(mode="after")
    def _strip_letter(self):
        self.coverLetter = self.coverLetter.strip()
        if len(self.coverLetter) < 10:
            raise ValueError("coverLetter must be at least 10 characters")
        return self
