"""Shared Pydantic models for account activity logs."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ActivityType(str, Enum):
    created = "account.created"
    updated = "account.updated"
    password_changed = "account.password_changed"
    deleted = "account.deleted"


class ActivityLog(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    activity_log_id: str
    activity_class: str = "account"
    activity_type: ActivityType
    activity_at: datetime
    user_id: str
    device_id: str | None = None
    activity_info: dict[str, Any] = Field(default_factory=dict)
