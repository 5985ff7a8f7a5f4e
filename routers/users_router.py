import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Path

from auth import get_database, require_roles
from database import Database
from errors import NotFound, ValidationFailed
from models import MAX_ID, Account, AccountStatusUpdate, Role, UserListResponse, UserProfile

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["User Management"])

admin_only = require_roles(Role.ADMIN)
UserId = Annotated[int, Path(ge=1, le=MAX_ID)]


@router.get("", response_model=UserListResponse)
def list_users(
    role: Optional[Role] = None,
    active: Optional[bool] = None,
    current_user: Account = Depends(admin_only),
    db: Database = Depends(get_database),
):
    """List accounts, optionally filtered by role and active flag (Administrator only)"""
    accounts = db.list_accounts(role=role, active=active)
    return UserListResponse(users=[UserProfile(**account.model_dump()) for account in accounts])


@router.get("/{user_id}", response_model=UserProfile)
def get_user(
    user_id: UserId,
    current_user: Account = Depends(admin_only),
    db: Database = Depends(get_database),
):
    """Get one account (Administrator only)"""
    account = db.get_account(user_id)
    if account is None:
        raise NotFound("User not found")
    return UserProfile(**account.model_dump())


@router.patch("/{user_id}/status", response_model=UserProfile)
def set_user_status(
    user_id: UserId,
    update: AccountStatusUpdate,
    current_user: Account = Depends(admin_only),
    db: Database = Depends(get_database),
):
    """Activate or deactivate an account (Administrator only)"""
    account = db.get_account(user_id)
    if account is None:
        raise NotFound("User not found")
    if account.id == current_user.id and not update.is_active:
        raise ValidationFailed("You cannot deactivate your own account")

    account = db.set_active(user_id, update.is_active)
    logger.info("Account %s %s account %s", current_user.id,
                "activated" if update.is_active else "deactivated", user_id)
    return UserProfile(**account.model_dump())
