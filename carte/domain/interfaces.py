"""Collaborator contracts consumed by the account service."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional, Protocol
import uuid

from carte.core.tokens import Claims
from carte.domain.accounts import Account, User


class UserStore(Protocol):
    def search(self, profile: User) -> User: ...

    def create(self, user: User) -> User: ...

    def view(self, user_id: uuid.UUID) -> User: ...

    def update(self, user: User) -> None: ...

    def delete(self, user: User) -> None: ...


class AccountStore(Protocol):
    def find_by_username(self, username: str) -> Account: ...

    def find_by_token(self, token: str) -> Account: ...

    def find_by_id(self, account_id: uuid.UUID) -> Account: ...

    def create(self, account: Account) -> Account: ...

    def update(
        self,
        account: Account,
        *,
        fields: Optional[Iterable[str]] = None,
        expected: Optional[Mapping[str, Any]] = None,
    ) -> None: ...

    def delete(self, account: Account) -> None: ...

    def list_all(self) -> list[Account]: ...


class SecurityPolicy(Protocol):
    def confirmation_matches(self, password: str, confirmation: str) -> bool: ...

    def validate(self, password: str, previous_digest: Optional[str] = None) -> None: ...

    def hash(self, password: str) -> str: ...

    def verify(self, digest: Optional[str], candidate: str) -> bool: ...

    def needs_rehash(self, digest: str) -> bool: ...


class TokenAuthority(Protocol):
    def generate_token(self, account: Account) -> str: ...

    def token_valid(self, token: str) -> None: ...

    def extract_claims(self, token: str) -> Claims: ...
