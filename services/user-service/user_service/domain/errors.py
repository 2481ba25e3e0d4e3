"""Failures raised by account workflows."""

from __future__ import annotations


class AccountError(Exception):
    """Base class for recoverable account workflow rejections."""


class DuplicateEmailError(AccountError):
    """Raised when an active account already uses the requested email."""

    def __init__(self, email: str) -> None:
        super().__init__("email already in use")
        self.email = email


class AccountNotFoundError(AccountError):
    """Raised when an operation references an account that is not active."""

    def __init__(self, account_id: str) -> None:
        super().__init__("account not found")
        self.account_id = account_id
