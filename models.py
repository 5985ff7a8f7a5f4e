from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from security import MAX_PASSWORD_BYTES

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6
# Largest value SQLite can store in an INTEGER column
MAX_ID = 2**63 - 1


class Role(str, Enum):
    ADMIN = "admin"
    DOCTOR = "doctor"
    PATIENT = "patient"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class CamelModel(BaseModel):
    """JSON bodies use camelCase keys, Python code uses snake_case"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UpdateModel(CamelModel):
    """Partial updates accept only the fields they declare"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


def _check_password(value: str) -> str:
    if len(value) < MIN_PASSWORD_LENGTH:
        raise PydanticCustomError(
            "password_too_short",
            "Password must be at least {min_length} characters long",
            {"min_length": MIN_PASSWORD_LENGTH},
        )
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise PydanticCustomError(
            "password_too_long",
            "Password must be at most {max_bytes} bytes long",
            {"max_bytes": MAX_PASSWORD_BYTES},
        )
    return value


def _required(value: str, message: str) -> str:
    value = (value or "").strip()
    if not value:
        raise PydanticCustomError("required", message)
    return value


# Stored records

class Account(BaseModel):
    id: int
    username: str
    email: str
    password_hash: str
    role: Role
    first_name: str
    last_name: str
    phone_number: Optional[str] = None
    is_active: bool = True
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PatientRecord(BaseModel):
    id: int
    user_id: int
    date_of_birth: date
    gender: Gender
    phone_number: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# Requests

class SignupRequest(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, validate_default=True)

    username: str = ""
    email: str = ""
    password: str = ""
    role: str = Role.PATIENT.value
    first_name: str = ""
    last_name: str = ""
    phone_number: Optional[str] = None

    @field_validator("username")
    @classmethod
    def check_username(cls, value: str) -> str:
        value = (value or "").strip()
        if len(value) < MIN_USERNAME_LENGTH:
            raise PydanticCustomError(
                "username_too_short",
                "Username must be at least {min_length} characters long",
                {"min_length": MIN_USERNAME_LENGTH},
            )
        return value

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        try:
            result = validate_email((value or "").strip(), check_deliverability=False)
        except EmailNotValidError:
            raise PydanticCustomError("invalid_email", "Please enter a valid email")
        return result.normalized.lower()

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return _check_password(value)

    @field_validator("role")
    @classmethod
    def check_role(cls, value: str) -> str:
        if value not in {role.value for role in Role}:
            raise PydanticCustomError("invalid_role", "Invalid role")
        return value

    @field_validator("first_name")
    @classmethod
    def check_first_name(cls, value: str) -> str:
        return _required(value, "First name is required")

    @field_validator("last_name")
    @classmethod
    def check_last_name(cls, value: str) -> str:
        return _required(value, "Last name is required")


class LoginRequest(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, validate_default=True)

    # Holds either the username or the email address
    email: str = ""
    password: str = ""

    @field_validator("email")
    @classmethod
    def check_identifier(cls, value: str) -> str:
        return _required(value, "Email or username is required")

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        if not value:
            raise PydanticCustomError("required", "Password is required")
        return value


class ProfileUpdate(UpdateModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None

    @field_validator("first_name")
    @classmethod
    def check_first_name(cls, value: Optional[str]) -> str:
        return _required(value, "First name is required")

    @field_validator("last_name")
    @classmethod
    def check_last_name(cls, value: Optional[str]) -> str:
        return _required(value, "Last name is required")


class PasswordChange(UpdateModel):
    current_password: str
    new_password: str

    @field_validator("current_password")
    @classmethod
    def check_current_password(cls, value: str) -> str:
        if not value:
            raise PydanticCustomError("required", "Current password is required")
        return value

    @field_validator("new_password")
    @classmethod
    def check_new_password(cls, value: str) -> str:
        return _check_password(value)


class AccountStatusUpdate(UpdateModel):
    is_active: bool


class PatientCreate(UpdateModel):
    user_id: int = Field(ge=1, le=MAX_ID)
    date_of_birth: date
    gender: Gender
    phone_number: Optional[str] = None
    notes: Optional[str] = None


class PatientUpdate(UpdateModel):
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    phone_number: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("date_of_birth", "gender")
    @classmethod
    def check_not_null(cls, value, info):
        if value is None:
            raise PydanticCustomError("required", "{field} cannot be empty", {"field": to_camel(info.field_name)})
        return value


# Responses

class UserSummary(CamelModel):
    id: int
    first_name: str
    last_name: str
    email: str
    role: Role


class UserProfile(UserSummary):
    username: str
    phone_number: Optional[str] = None
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None


class AuthResponse(BaseModel):
    token: str
    user: UserSummary


class UserListResponse(BaseModel):
    users: List[UserProfile]


class PatientResponse(CamelModel):
    id: int
    user_id: int
    date_of_birth: date
    gender: Gender
    phone_number: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PatientListResponse(BaseModel):
    patients: List[PatientResponse]
