from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class PreferencesUpdateRequest(BaseModel):
    pushEnabled: Optional[bool] = None
    smsEnabled: Optional[bool] = None
    emailEnabled: Optional[bool] = None
