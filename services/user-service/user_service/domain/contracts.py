"""Domain-level request contracts shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


def normalize_email(email: str) -> str:
    """Return the canonical form used for storing and comparing emails."""
    return email.strip().lower()


@dataclass(slots=True)
class CreateAccountInput:
    """Validated inputs required to create an account with its address and profile."""

    email: str
    password: str
    in_group: bool = False
    is_head: bool = False
    address: dict[str, Any] = field(default_factory=dict)
    profile: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class UpdateAccountInput:
    """Partial update of the mutable account fields; ``None`` means unchanged."""

    email: str | None = None
    in_group: bool | None = None
    is_head: bool | None = None

    def changes(self) -> dict[str, Any]:
        values: dict[str, Any] = {}
        if self.email is not None:
            values["email"] = normalize_email(self.email)
        if self.in_group is not None:
            values["in_group"] = self.in_group
        if self.is_head is not None:
            values["is_head"] = self.is_head
        return values
