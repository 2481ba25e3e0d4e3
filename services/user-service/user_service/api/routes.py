"""HTTP route definitions for the user service."""

from __future__ import annotations

import logging
from typing import Any

import jwt
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from pydantic import BaseModel, EmailStr, Field

from account_schemas import Account as AccountResponse
from account_schemas import ActivityLog as ActivityLogResponse
from account_schemas import Address, DeletedAccount as DeletedAccountResponse, Profile

from ..domain.account import Account, ActivityLog, DeletedAccount
from ..domain.contracts import CreateAccountInput, UpdateAccountInput
from ..domain.errors import AccountNotFoundError, DuplicateEmailError
from ..domain.service import AccountService
from ..security.tokens import decode_access_token, issue_access_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


class CreateUserRequest(BaseModel):
    """Payload accepted when registering a user with address and profile."""

    email: EmailStr
    password: str = Field(..., min_length=6)
    in_group: bool
    is_head: bool
    address: Address
    profile: Profile


class CreateUserResponse(BaseModel):
    message: str = "User created"
    user_id: str
    address_id: str
    profile_id: str


class UpdateUserRequest(BaseModel):
    """Partial update; password, address and profile cannot change through this route."""

    email: EmailStr | None = None
    in_group: bool | None = None
    is_head: bool | None = None


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    success: bool = True
    user_id: str
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class ChangePasswordRequest(BaseModel):
    email: str
    new_password: str = Field(..., min_length=6)


class SuccessResponse(BaseModel):
    success: bool = True
    user_id: str


def get_service(request: Request) -> AccountService:
    """Resolve the `AccountService` stored on the FastAPI application state."""
    service: AccountService = request.app.state.account_service
    return service


def require_token(authorization: str | None = Header(default=None)) -> dict[str, Any]:
    """Verify the bearer token issued at login and return its claims."""
    if not authorization:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="missing token")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="missing token")
    try:
        return decode_access_token(token)
    except jwt.PyJWTError as exc:
        logger.warning("rejected bearer token: %s", exc)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="invalid token") from exc


@router.post("", response_model=CreateUserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: CreateUserRequest,
    service: AccountService = Depends(get_service),
) -> CreateUserResponse:
    """Create an account together with its address and profile."""
    try:
        created = service.create_account(
            CreateAccountInput(
                email=payload.email,
                password=payload.password,
                in_group=payload.in_group,
                is_head=payload.is_head,
                address=payload.address.model_dump(),
                profile=payload.profile.model_dump(),
            )
        )
    except DuplicateEmailError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Existing email") from exc
    return CreateUserResponse(
        user_id=created.account_id,
        address_id=created.address_id,
        profile_id=created.profile_id,
    )


@router.get("", response_model=list[AccountResponse], dependencies=[Depends(require_token)])
def list_users(service: AccountService = Depends(get_service)) -> list[AccountResponse]:
    return [_account_response(account) for account in service.get_all_accounts()]


@router.get("/by-email", response_model=AccountResponse, dependencies=[Depends(require_token)])
def get_user_by_email(
    email: str = Query(...),
    service: AccountService = Depends(get_service),
) -> AccountResponse:
    account = service.get_account_by_email(email)
    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="user not found")
    return _account_response(account)


@router.get(
    "/deleted",
    response_model=list[DeletedAccountResponse],
    dependencies=[Depends(require_token)],
)
def list_deleted_users(
    service: AccountService = Depends(get_service),
) -> list[DeletedAccountResponse]:
    return [_deleted_response(record) for record in service.get_all_deleted_accounts()]


@router.post("/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    service: AccountService = Depends(get_service),
) -> LoginResponse:
    """Verify credentials and issue a signed access token."""
    account = service.authenticate(payload.email, payload.password)
    if account is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid email or password"
        )
    token, expires_in = issue_access_token(subject=account.account_id, email=account.email)
    return LoginResponse(user_id=account.account_id, access_token=token, expires_in=expires_in)


@router.post(
    "/change-password", response_model=SuccessResponse, dependencies=[Depends(require_token)]
)
def change_password(
    payload: ChangePasswordRequest,
    service: AccountService = Depends(get_service),
) -> SuccessResponse:
    account_id = service.change_password(payload.email, payload.new_password)
    if account_id is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="user not found")
    return SuccessResponse(user_id=account_id)


@router.get("/{user_id}", response_model=AccountResponse, dependencies=[Depends(require_token)])
def get_user(user_id: str, service: AccountService = Depends(get_service)) -> AccountResponse:
    account = service.get_account(user_id)
    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="user not found")
    return _account_response(account)


@router.patch("/{user_id}", response_model=AccountResponse, dependencies=[Depends(require_token)])
def update_user(
    user_id: str,
    payload: UpdateUserRequest,
    service: AccountService = Depends(get_service),
) -> AccountResponse:
    """Apply a partial update to the account's email and flags."""
    try:
        account = service.update_account(
            user_id,
            UpdateAccountInput(
                email=payload.email,
                in_group=payload.in_group,
                is_head=payload.is_head,
            ),
        )
    except AccountNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except DuplicateEmailError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Existing email") from exc
    return _account_response(account)


@router.patch(
    "/{user_id}/soft-delete", response_model=SuccessResponse, dependencies=[Depends(require_token)]
)
def soft_delete_user(
    user_id: str,
    service: AccountService = Depends(get_service),
) -> SuccessResponse:
    return SuccessResponse(user_id=service.soft_delete_account(user_id))


@router.get(
    "/{user_id}/activity",
    response_model=list[ActivityLogResponse],
    dependencies=[Depends(require_token)],
)
def list_user_activity(
    user_id: str,
    service: AccountService = Depends(get_service),
) -> list[ActivityLogResponse]:
    return [_activity_response(record) for record in service.list_activity(user_id)]


def _account_response(account: Account) -> AccountResponse:
    return AccountResponse(
        user_id=account.account_id,
        email=account.email,
        in_group=account.in_group,
        is_head=account.is_head,
        address_id=account.address_id,
        profile_id=account.profile_id,
        created_at=account.created_at,
        is_deleted=account.is_deleted,
    )


def _deleted_response(record: DeletedAccount) -> DeletedAccountResponse:
    return DeletedAccountResponse(
        user_id=record.account_id,
        email=record.email,
        in_group=record.in_group,
        is_head=record.is_head,
        address_id=record.address_id,
        profile_id=record.profile_id,
        created_at=record.created_at,
        deleted_at=record.deleted_at,
        address=Address(**record.address),
        profile=Profile(**record.profile),
    )


def _activity_response(record: ActivityLog) -> ActivityLogResponse:
    return ActivityLogResponse(
        activity_log_id=record.activity_log_id,
        activity_class=record.activity_class,
        activity_type=record.activity_type,
        activity_at=record.activity_at,
        user_id=record.user_id,
        device_id=record.device_id,
        activity_info=record.activity_info,
    )
