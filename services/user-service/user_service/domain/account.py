from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(slots=True)
class Account:
    """Aggregate root for an active user account."""

    account_id: str
    email: str
    password_hash: str
    in_group: bool
    is_head: bool
    address_id: str
    profile_id: str
    created_at: datetime
    updated_at: datetime
    is_deleted: bool = False


@dataclass(slots=True)
class DeletedAccount:
    """Tombstone kept after an account leaves the active space."""

    account_id: str
    email: str
    password_hash: str
    in_group: bool
    is_head: bool
    address_id: str
    profile_id: str
    created_at: datetime
    deleted_at: datetime
    address: dict[str, Any] = field(default_factory=dict)
    profile: dict[str, Any] = field(default_factory=dict)
    is_deleted: bool = True


@dataclass(slots=True)
class CreatedAccount:
    """Identifiers assigned to the account, address and profile of a new user."""

    account_id: str
    address_id: str
    profile_id: str


@dataclass(slots=True)
class ActivityLog:
    """Lifecycle event recorded against an account."""

    activity_log_id: str
    activity_class: str
    activity_type: str
    activity_at: datetime
    user_id: str
    device_id: str | None = None
    activity_info: dict[str, Any] = field(default_factory=dict)
