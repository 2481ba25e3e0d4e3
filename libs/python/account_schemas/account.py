"""Account-related DTOs shared across services."""

from __future__ import annotations

from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field


class Address(BaseModel):
    model_config = ConfigDict(extra="forbid")

    street_name: str | None = None
    barangay: str | None = None
    town: str | None = None
    province: str | None = None
    zip_code: str | None = None


class Profile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    first_name: str | None = None
    middle_name: str | None = None
    last_name: str | None = None
    birth_date: str | None = None
    phone_number: str | None = None


class Account(BaseModel):
    """Public view of an active account; never carries the password hash."""

    user_id: str
    email: EmailStr
    in_group: bool
    is_head: bool
    address_id: str
    profile_id: str
    created_at: datetime
    is_deleted: bool = False


class DeletedAccount(BaseModel):
    user_id: str
    email: EmailStr
    in_group: bool
    is_head: bool
    address_id: str
    profile_id: str
    created_at: datetime
    deleted_at: datetime
    address: Address = Field(default_factory=Address)
    profile: Profile = Field(default_factory=Profile)
    is_deleted: bool = True
