"""Account service orchestrating hashing, identifiers, and document persistence."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Callable

from account_schemas import ActivityType

from .account import Account, ActivityLog, CreatedAccount, DeletedAccount
from .contracts import CreateAccountInput, UpdateAccountInput, normalize_email
from .errors import AccountNotFoundError, DuplicateEmailError
from ..repository import AccountRepository
from ..security.identifiers import new_id
from ..security.passwords import CredentialHasher
from ..store.contracts import DocumentNotFoundError, GuardViolationError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountService:
    """Account lifecycle workflows: create, look up, authenticate, mutate, soft delete.

    The service keeps no account state of its own. Consistency between the account,
    address and profile documents, and uniqueness of active emails, rely on
    the guarded atomic batches issued by :class:`AccountRepository`.
    """

    def __init__(
        self,
        repository: AccountRepository,
        hasher: CredentialHasher,
        id_factory: Callable[[], str] = new_id,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Store dependencies used to orchestrate hashing and persistence."""
        self._repository = repository
        self._hasher = hasher
        self._new_id = id_factory
        self._now = clock
        self._dummy_hash: str | None = None
        self._dummy_hash_lock = Lock()

    def create_account(self, payload: CreateAccountInput) -> CreatedAccount:
        """Create an account together with its address and profile.

        Raises
        ------
        DuplicateEmailError
            When an active account already uses the email. Nothing is written.
        """
        email = normalize_email(payload.email)
        # Fast path; the guarded batch below is what actually enforces uniqueness.
        if self._repository.find_active_by_email(email) is not None:
            logger.warning("account creation rejected: email already in use")
            raise DuplicateEmailError(email)

        now = self._now()
        account = Account(
            account_id=self._new_id(),
            email=email,
            password_hash=self._hasher.hash(payload.password),
            in_group=payload.in_group,
            is_head=payload.is_head,
            address_id=self._new_id(),
            profile_id=self._new_id(),
            created_at=now,
            updated_at=now,
        )
        activity = self._activity(
            account.account_id, ActivityType.created, now, {"email": email}
        )
        try:
            self._repository.create_account(
                account, dict(payload.address), dict(payload.profile), activity
            )
        except GuardViolationError as exc:
            logger.warning("account creation rejected: email already in use")
            raise DuplicateEmailError(email) from exc

        logger.info("account %s created", account.account_id)
        return CreatedAccount(
            account_id=account.account_id,
            address_id=account.address_id,
            profile_id=account.profile_id,
        )

    def get_all_accounts(self) -> list[Account]:
        return self._repository.list_accounts()

    def get_account(self, account_id: str) -> Account | None:
        return self._repository.get_account(account_id)

    def get_account_by_email(self, email: str) -> Account | None:
        """Return the active account registered with ``email`` or ``None``."""
        return self._repository.find_active_by_email(normalize_email(email))

    def update_account(self, account_id: str, changes: UpdateAccountInput) -> Account:
        """Apply a partial update to the mutable account fields.

        Changing the email re-checks uniqueness against the other active accounts.
        """
        values = changes.changes()
        if not values:
            account = self._repository.get_account(account_id)
            if account is None:
                raise AccountNotFoundError(account_id)
            return account

        now = self._now()
        values["updated_at"] = now
        activity = self._activity(
            account_id,
            ActivityType.updated,
            now,
            {"fields": sorted(key for key in values if key != "updated_at")},
        )
        try:
            self._repository.update_account(account_id, values, activity)
        except DocumentNotFoundError as exc:
            raise AccountNotFoundError(account_id) from exc
        except GuardViolationError as exc:
            logger.warning("update of account %s rejected: email already in use", account_id)
            raise DuplicateEmailError(values["email"]) from exc

        account = self._repository.get_account(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    def authenticate(self, email: str, password: str) -> Account | None:
        """Return the account when ``password`` matches, ``None`` otherwise.

        Unknown emails still pay for one hash verification so callers cannot
        tell a missing account from a wrong password.
        """
        account = self._repository.find_active_by_email(normalize_email(email))
        if account is None:
            self._hasher.verify(password, self._placeholder_hash())
            logger.debug("authentication failed: no active account")
            return None
        if not self._hasher.verify(password, account.password_hash):
            logger.debug("authentication failed for account %s", account.account_id)
            return None
        return account

    def change_password(self, email: str, new_password: str) -> str | None:
        """Rotate the password of the active account with ``email``.

        Returns the account id, or ``None`` when no active account matches.
        """
        account = self._repository.find_active_by_email(normalize_email(email))
        if account is None:
            return None

        now = self._now()
        values: dict[str, Any] = {
            "password_hash": self._hasher.hash(new_password),
            "updated_at": now,
        }
        activity = self._activity(account.account_id, ActivityType.password_changed, now, {})
        try:
            self._repository.update_account(account.account_id, values, activity)
        except DocumentNotFoundError:
            return None
        logger.info("password changed for account %s", account.account_id)
        return account.account_id

    def soft_delete_account(self, account_id: str) -> str:
        """Move an account into the deleted space; missing accounts are a silent no-op."""
        account = self._repository.get_account(account_id)
        if account is None:
            logger.info("soft delete of unknown account %s ignored", account_id)
            return account_id

        now = self._now()
        activity = self._activity(
            account_id, ActivityType.deleted, now, {"email": account.email}
        )
        try:
            self._repository.soft_delete(account, now, activity)
        except DocumentNotFoundError:
            logger.info("account %s already soft deleted by a concurrent request", account_id)
            return account_id
        logger.info("account %s soft deleted", account_id)
        return account_id

    def get_all_deleted_accounts(self) -> list[DeletedAccount]:
        return self._repository.list_deleted_accounts()

    def list_activity(self, account_id: str) -> list[ActivityLog]:
        return self._repository.list_activity(account_id)

    def _activity(
        self, account_id: str, activity_type: ActivityType, at: datetime, info: dict[str, Any]
    ) -> ActivityLog:
        return ActivityLog(
            activity_log_id=self._new_id(),
            activity_class="account",
            activity_type=activity_type.value,
            activity_at=at,
            user_id=account_id,
            activity_info=info,
        )

    def _placeholder_hash(self) -> str:
        with self._dummy_hash_lock:
            if self._dummy_hash is None:
                self._dummy_hash = self._hasher.hash(self._new_id())
            return self._dummy_hash
