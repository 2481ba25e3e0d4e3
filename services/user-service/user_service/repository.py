"""Document store repository for user account data."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from .domain.account import Account, ActivityLog, DeletedAccount
from .store.contracts import AbsentGuard, BatchWrite, DocumentStore

USERS = "users"
DELETED_USERS = "deletedUsers"
ADDRESSES = "addresses"
PROFILES = "profiles"
ACTIVITY_LOGS = "activityLogs"


def active_email_guard(email: str, exclude_id: str | None = None) -> AbsentGuard:
    """Guard asserting no other active account uses ``email``."""
    return AbsentGuard(USERS, {"email": email, "is_deleted": False}, exclude_id=exclude_id)


class AccountRepository:
    """Maps accounts, addresses, profiles and tombstones onto document collections."""

    def __init__(self, store: DocumentStore) -> None:
        """Store the document store used for all persistence."""
        self._store = store

    def create_account(
        self,
        account: Account,
        address: dict[str, Any],
        profile: dict[str, Any],
        activity: ActivityLog,
    ) -> None:
        """Write the account, its address and profile in one guarded batch.

        Raises ``GuardViolationError`` when an active account already holds the email.
        """
        self._store.atomic_batch(
            [
                BatchWrite.set(ADDRESSES, account.address_id, address),
                BatchWrite.set(PROFILES, account.profile_id, profile),
                BatchWrite.set(USERS, account.account_id, self._account_document(account)),
                self._activity_write(activity),
            ],
            guards=[active_email_guard(account.email)],
        )

    def list_accounts(self) -> list[Account]:
        documents = self._store.query(USERS, {"is_deleted": False})
        return [self._map_account(doc.doc_id, doc.data) for doc in documents]

    def find_active_by_email(self, email: str) -> Account | None:
        documents = self._store.query(USERS, {"email": email, "is_deleted": False})
        if not documents:
            return None
        return self._map_account(documents[0].doc_id, documents[0].data)

    def get_account(self, account_id: str) -> Account | None:
        data = self._store.get(USERS, account_id)
        if data is None or data.get("is_deleted", False):
            return None
        return self._map_account(account_id, data)

    def get_address(self, address_id: str) -> dict[str, Any] | None:
        return self._store.get(ADDRESSES, address_id)

    def get_profile(self, profile_id: str) -> dict[str, Any] | None:
        return self._store.get(PROFILES, profile_id)

    def update_account(
        self, account_id: str, changes: dict[str, Any], activity: ActivityLog
    ) -> None:
        """Merge ``changes`` into the account, re-checking email uniqueness when it changes.

        Raises ``DocumentNotFoundError`` when the account does not exist.
        """
        guards = []
        if "email" in changes:
            guards.append(active_email_guard(changes["email"], exclude_id=account_id))
        self._store.atomic_batch(
            [
                BatchWrite.update(USERS, account_id, self._encode(changes)),
                self._activity_write(activity),
            ],
            guards=guards,
        )

    def soft_delete(
        self, account: Account, deleted_at: datetime, activity: ActivityLog
    ) -> DeletedAccount:
        """Move the account, with copies of its address and profile, into the deleted space.

        The batch opens by updating the active account document, so it raises
        ``DocumentNotFoundError`` and writes nothing when a concurrent soft delete
        already moved the account.
        """
        tombstone = DeletedAccount(
            account_id=account.account_id,
            email=account.email,
            password_hash=account.password_hash,
            in_group=account.in_group,
            is_head=account.is_head,
            address_id=account.address_id,
            profile_id=account.profile_id,
            created_at=account.created_at,
            deleted_at=deleted_at,
            address=self.get_address(account.address_id) or {},
            profile=self.get_profile(account.profile_id) or {},
        )
        self._store.atomic_batch(
            [
                BatchWrite.update(USERS, account.account_id, {"is_deleted": True}),
                BatchWrite.set(
                    DELETED_USERS, account.account_id, self._deleted_document(tombstone)
                ),
                BatchWrite.delete(USERS, account.account_id),
                BatchWrite.delete(ADDRESSES, account.address_id),
                BatchWrite.delete(PROFILES, account.profile_id),
                self._activity_write(activity),
            ]
        )
        return tombstone

    def list_deleted_accounts(self) -> list[DeletedAccount]:
        documents = self._store.query(DELETED_USERS)
        return [self._map_deleted(doc.doc_id, doc.data) for doc in documents]

    def list_activity(self, account_id: str) -> list[ActivityLog]:
        """Return activity entries for an account, newest first."""
        documents = self._store.query(ACTIVITY_LOGS, {"user_id": account_id})
        records = [self._map_activity(doc.doc_id, doc.data) for doc in documents]
        records.sort(key=lambda record: record.activity_at, reverse=True)
        return records

    def _activity_write(self, activity: ActivityLog) -> BatchWrite:
        return BatchWrite.set(
            ACTIVITY_LOGS,
            activity.activity_log_id,
            {
                "activity_class": activity.activity_class,
                "activity_type": activity.activity_type,
                "activity_at": activity.activity_at.isoformat(),
                "user_id": activity.user_id,
                "device_id": activity.device_id,
                "activity_info": activity.activity_info,
            },
        )

    def _encode(self, values: dict[str, Any]) -> dict[str, Any]:
        return {
            key: value.isoformat() if isinstance(value, datetime) else value
            for key, value in values.items()
        }

    def _account_document(self, account: Account) -> dict[str, Any]:
        return {
            "email": account.email,
            "password_hash": account.password_hash,
            "in_group": account.in_group,
            "is_head": account.is_head,
            "address_id": account.address_id,
            "profile_id": account.profile_id,
            "is_deleted": account.is_deleted,
            "created_at": account.created_at.isoformat(),
            "updated_at": account.updated_at.isoformat(),
        }

    def _deleted_document(self, tombstone: DeletedAccount) -> dict[str, Any]:
        return {
            "email": tombstone.email,
            "password_hash": tombstone.password_hash,
            "in_group": tombstone.in_group,
            "is_head": tombstone.is_head,
            "address_id": tombstone.address_id,
            "profile_id": tombstone.profile_id,
            "is_deleted": True,
            "created_at": tombstone.created_at.isoformat(),
            "deleted_at": tombstone.deleted_at.isoformat(),
            "address": tombstone.address,
            "profile": tombstone.profile,
        }

    def _map_account(self, account_id: str, data: dict[str, Any]) -> Account:
        """Convert a stored document into the domain ``Account`` dataclass."""
        return Account(
            account_id=account_id,
            email=data["email"],
            password_hash=data["password_hash"],
            in_group=data.get("in_group", False),
            is_head=data.get("is_head", False),
            address_id=data["address_id"],
            profile_id=data["profile_id"],
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data.get("updated_at", data["created_at"])),
            is_deleted=data.get("is_deleted", False),
        )

    def _map_deleted(self, account_id: str, data: dict[str, Any]) -> DeletedAccount:
        return DeletedAccount(
            account_id=account_id,
            email=data["email"],
            password_hash=data["password_hash"],
            in_group=data.get("in_group", False),
            is_head=data.get("is_head", False),
            address_id=data["address_id"],
            profile_id=data["profile_id"],
            created_at=datetime.fromisoformat(data["created_at"]),
            deleted_at=datetime.fromisoformat(data["deleted_at"]),
            address=data.get("address") or {},
            profile=data.get("profile") or {},
        )

    def _map_activity(self, activity_log_id: str, data: dict[str, Any]) -> ActivityLog:
        return ActivityLog(
            activity_log_id=activity_log_id,
            activity_class=data["activity_class"],
            activity_type=data["activity_type"],
            activity_at=datetime.fromisoformat(data["activity_at"]),
            user_id=data["user_id"],
            device_id=data.get("device_id"),
            activity_info=data.get("activity_info") or {},
        )
