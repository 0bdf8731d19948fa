"""
Account domain objects shared by services and stores.

Stores hand out copies of these dataclasses; nothing outside a store keeps a
reference to persisted state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional
import uuid


@dataclass
class User:
    first_name: str = ""
    last_name: str = ""
    address1: str = ""
    zip_code: str = ""
    email: str = ""
    address2: str = ""
    id: Optional[uuid.UUID] = None

    def profile_fields(self) -> dict[str, str]:
        """Non-empty profile values, used as search criteria."""
        values = {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "address1": self.address1,
            "address2": self.address2,
            "zip_code": self.zip_code,
            "email": self.email,
        }
        return {key: value for key, value in values.items() if value}


@dataclass
class Account:
    username: str
    password: str = field(default="", repr=False)
    user_id: Optional[uuid.UUID] = None
    token: Optional[str] = field(default=None, repr=False)
    last_login: Optional[datetime] = None
    id: Optional[uuid.UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


ACCOUNT_FIELDS = ("username", "password", "user_id", "token", "last_login")


def check_account_fields(
    fields: Optional[Iterable[str]], expected: Optional[Mapping[str, Any]] = None
) -> tuple[str, ...]:
    """Names a store update may write or guard on; None means every mutable field."""
    names = ACCOUNT_FIELDS if fields is None else tuple(fields)
    unknown = (set(names) | set(expected or {})) - set(ACCOUNT_FIELDS)
    if unknown:
        raise ValueError(f"Unknown account fields: {sorted(unknown)}")
    return names


@dataclass(frozen=True)
class CallerIdentity:
    """Authenticated caller, resolved from a live bearer token."""

    account_id: uuid.UUID
    username: str
    token: str = field(repr=False)


@dataclass
class NewAccountRequest:
    first_name: str
    last_name: str
    address1: str
    zip_code: str
    email: str
    username: str
    password: str = field(repr=False)
    password_confirm: str = field(repr=False)
    address2: Optional[str] = None

    def to_user(self) -> User:
        return User(
            first_name=(self.first_name or "").strip(),
            last_name=(self.last_name or "").strip(),
            address1=(self.address1 or "").strip(),
            address2=(self.address2 or "").strip(),
            zip_code=(self.zip_code or "").strip(),
            email=(self.email or "").strip(),
        )


@dataclass
class UpdateAccountRequest:
    id: uuid.UUID
    address1: str
    zip_code: str
    email: str
    address2: Optional[str] = None
