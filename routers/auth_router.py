import logging
import sqlite3

from fastapi import APIRouter, Depends, Response

from auth import TokenService, authenticate_account, get_current_user, get_database, get_token_service
from database import Database
from errors import ValidationFailed
from models import (
    Account,
    AuthResponse,
    LoginRequest,
    PasswordChange,
    ProfileUpdate,
    Role,
    SignupRequest,
    UserProfile,
    UserSummary,
)
from security import hash_password, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def _auth_response(account: Account, tokens: TokenService) -> AuthResponse:
    return AuthResponse(
        token=tokens.issue(account.id, account.role),
        user=UserSummary(**account.model_dump()),
    )


@router.post("/signup", response_model=AuthResponse, status_code=201)
def signup(
    request: SignupRequest,
    db: Database = Depends(get_database),
    tokens: TokenService = Depends(get_token_service),
):
    """Create an account and return a token for it"""
    tokens.ensure_configured()

    if db.identity_taken(request.username, request.email):
        raise ValidationFailed("User already exists")

    try:
        account = db.create_account(
            username=request.username,
            email=request.email,
            password_hash=hash_password(request.password),
            role=Role(request.role),
            first_name=request.first_name,
            last_name=request.last_name,
            phone_number=request.phone_number,
        )
    except sqlite3.IntegrityError:
        # Lost a race with a concurrent signup for the same identity
        raise ValidationFailed("User already exists")

    logger.info("Created %s account %s (%s)", account.role.value, account.id, account.username)
    return _auth_response(account, tokens)


@router.post("/login", response_model=AuthResponse)
def login(
    request: LoginRequest,
    db: Database = Depends(get_database),
    tokens: TokenService = Depends(get_token_service),
):
    """Authenticate with username or email and return a token"""
    account = authenticate_account(db, request.email, request.password)
    tokens.ensure_configured()
    db.record_login(account.id)
    logger.info("Account %s logged in", account.id)
    return _auth_response(account, tokens)


@router.get("/me", response_model=UserProfile)
def get_me(current_user: Account = Depends(get_current_user)):
    """Get current user info"""
    return UserProfile(**current_user.model_dump())


@router.patch("/me", response_model=UserProfile)
def update_me(
    changes: ProfileUpdate,
    current_user: Account = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    """Update the caller's name or phone number"""
    fields = changes.model_dump(exclude_unset=True)
    if not fields:
        raise ValidationFailed("No changes provided")
    account = db.update_profile(current_user.id, fields)
    return UserProfile(**account.model_dump())


@router.post("/me/password", status_code=204)
def change_password(
    change: PasswordChange,
    current_user: Account = Depends(get_current_user),
    db: Database = Depends(get_database),
):
    """Replace the caller's password after checking the current one"""
    if not verify_password(change.current_password, current_user.password_hash):
        raise ValidationFailed("Current password is incorrect")
    db.set_password_hash(current_user.id, hash_password(change.new_password))
    logger.info("Account %s changed its password", current_user.id)
    return Response(status_code=204)
