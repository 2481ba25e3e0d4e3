"""Shared schema exports."""

from .account import Account, Address, DeletedAccount, Profile
from .activity import ActivityLog, ActivityType

__all__ = [
    "Account",
    "ActivityLog",
    "ActivityType",
    "Address",
    "DeletedAccount",
    "Profile",
]
