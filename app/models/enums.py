#app/models/enums.py
from __future__ import annotations
from enum import Enum

# re-exported so models and schemas import every enum from one place
from app.core.lifecycle import BidStatus, ProjectStatus  # noqa: F401


class UserRole(str, Enum):
    CLIENT = "client"
    FREELANCER = "freelancer"
    ADMIN = "admin"


class NotificationType(str, Enum):
    bid_received = "bid_received"
    bid_accepted = "bid_accepted"
    bid_rejected = "bid_rejected"
    bid_withdrawn = "bid_withdrawn"
    project_started = "project_started"
    project_completed = "project_completed"
    project_cancelled = "project_cancelled"
