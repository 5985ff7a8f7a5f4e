"""
Bearer-token authentication and role-based authorization.

TokenService signs and checks the JWTs handed out at signup and login.
get_current_user is the authentication gate every protected route depends
on, and require_roles builds authorization gates on top of it, so a role
check can never run before the account has been resolved.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from config import Settings
from database import Database
from errors import AuthenticationError, ConfigurationError, PermissionDenied, ValidationFailed
from models import MAX_ID, Account, Role
from security import dummy_verify, verify_password

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
INVALID_TOKEN = "Invalid or expired token"

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class TokenClaims:
    account_id: int
    role: Role
    issued_at: datetime
    expires_at: datetime


class TokenService:
    """Issues and verifies signed, time-limited access tokens"""

    def __init__(self, secret: Optional[str], algorithm: str = "HS256",
                 lifetime: timedelta = timedelta(hours=24)):
        self._secret = secret or None
        self.algorithm = algorithm
        self.lifetime = lifetime

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            lifetime=timedelta(minutes=settings.access_token_expire_minutes),
        )

    @property
    def configured(self) -> bool:
        return self._secret is not None

    def ensure_configured(self):
        if not self.configured:
            logger.error("JWT_SECRET is not set; cannot sign or verify tokens")
            raise ConfigurationError()

    def issue(self, account_id: int, role: Role) -> str:
        """Create a JWT carrying the account id and role"""
        self.ensure_configured()
        now = datetime.now(timezone.utc)
        claims = {
            "sub": str(account_id),
            "role": Role(role).value,
            "iat": now,
            "exp": now + self.lifetime,
        }
        return jwt.encode(claims, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenClaims:
        """Check signature, expiry and claim shape; raises AuthenticationError on any problem"""
        self.ensure_configured()
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"require_exp": True, "require_iat": True, "require_sub": True},
            )
            account_id = int(payload["sub"])
            if not 1 <= account_id <= MAX_ID:
                raise ValueError("subject out of range")
            return TokenClaims(
                account_id=account_id,
                role=Role(payload["role"]),
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (JWTError, KeyError, TypeError, ValueError) as exc:
            logger.info("Rejected token: %s", type(exc).__name__)
            raise AuthenticationError(INVALID_TOKEN)


def get_database(request: Request) -> Database:
    return request.app.state.db


def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


def authenticate_account(db: Database, identifier: str, password: str) -> Account:
    """Resolve login credentials to an active account"""
    account = db.find_account(identifier)
    if account is None:
        dummy_verify(password)
        raise ValidationFailed(INVALID_CREDENTIALS)
    if not verify_password(password, account.password_hash):
        logger.info("Failed login for account %s", account.id)
        raise ValidationFailed(INVALID_CREDENTIALS)
    if not account.is_active:
        logger.info("Login refused for deactivated account %s", account.id)
        raise AuthenticationError("Account is deactivated")
    return account


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Database = Depends(get_database),
    tokens: TokenService = Depends(get_token_service),
) -> Account:
    """Resolve the bearer token to an active account and attach it to the request"""
    if credentials is None:
        raise AuthenticationError("Authentication required")

    claims = tokens.verify(credentials.credentials)

    account = db.get_account(claims.account_id)
    if account is None:
        raise AuthenticationError("User not found")
    if not account.is_active:
        raise AuthenticationError("Account is deactivated")

    request.state.user = account
    request.state.token = credentials.credentials
    return account


def require_roles(*roles: Role):
    """Build a dependency that admits only accounts holding one of ``roles``"""
    if not roles:
        raise ValueError("require_roles needs at least one role")
    for role in roles:
        if not isinstance(role, Role):
            raise TypeError(f"Expected a Role, got {role!r}")
    allowed = frozenset(roles)

    def check_role(current_user: Account = Depends(get_current_user)) -> Account:
        if current_user.role not in allowed:
            logger.info("Account %s (%s) denied access to %s-only operation",
                        current_user.id, current_user.role.value,
                        "/".join(sorted(role.value for role in allowed)))
            raise PermissionDenied()
        return current_user

    return check_role
