"""
In-process user/account stores.

Same contracts and uniqueness rules as the SQL stores; handy for tests and
local experiments. Every read and write copies, so callers never share state
with the store.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
import threading
from typing import Any, Dict, Iterable, Mapping, Optional
import uuid

from carte.core.errors import AlreadyExistsError, ConflictError, NotFoundError
from carte.domain.accounts import Account, User, check_account_fields


class InMemoryUserRepository:
    collaborator = "user_store"

    def __init__(self) -> None:
        self._users: Dict[uuid.UUID, User] = {}
        self._lock = threading.Lock()

    def search(self, profile: User) -> User:
        criteria = profile.profile_fields()
        if criteria:
            with self._lock:
                for user in self._users.values():
                    if all(getattr(user, key) == value for key, value in criteria.items()):
                        return replace(user)
        raise NotFoundError("User not found", collaborator=self.collaborator)

    def create(self, user: User) -> User:
        with self._lock:
            user_id = user.id or uuid.uuid4()
            if user_id in self._users:
                raise AlreadyExistsError("User already exists", field="id", collaborator=self.collaborator)
            stored = replace(user, id=user_id)
            self._users[user_id] = stored
            return replace(stored)

    def view(self, user_id: uuid.UUID) -> User:
        with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise NotFoundError("User not found", field="id", collaborator=self.collaborator)
            return replace(user)

    def update(self, user: User) -> None:
        with self._lock:
            if user.id not in self._users:
                raise NotFoundError("User not found", field="id", collaborator=self.collaborator)
            self._users[user.id] = replace(user)

    def delete(self, user: User) -> None:
        with self._lock:
            self._users.pop(user.id, None)

    def __len__(self) -> int:
        return len(self._users)


class InMemoryAccountRepository:
    collaborator = "account_store"

    def __init__(self) -> None:
        self._accounts: Dict[uuid.UUID, Account] = {}
        self._lock = threading.Lock()

    def _find(self, field: str, value) -> Account:
        with self._lock:
            for account in self._accounts.values():
                if value is not None and getattr(account, field) == value:
                    return replace(account)
        raise NotFoundError("Account not found", field=field, collaborator=self.collaborator)

    def find_by_username(self, username: str) -> Account:
        return self._find("username", username)

    def find_by_token(self, token: str) -> Account:
        return self._find("token", token or None)

    def find_by_id(self, account_id: uuid.UUID) -> Account:
        return self._find("id", account_id)

    def _check_unique(self, account: Account) -> None:
        for other in self._accounts.values():
            if other.id == account.id:
                continue
            if other.username == account.username:
                raise AlreadyExistsError("Username already exists", field="username", collaborator=self.collaborator)
            if account.token and other.token == account.token:
                raise AlreadyExistsError("Token already in use", field="token", collaborator=self.collaborator)

    def create(self, account: Account) -> Account:
        now = datetime.now(timezone.utc)
        with self._lock:
            stored = replace(account, id=account.id or uuid.uuid4(), created_at=now, updated_at=now)
            if stored.id in self._accounts:
                raise AlreadyExistsError("Account already exists", field="id", collaborator=self.collaborator)
            self._check_unique(stored)
            self._accounts[stored.id] = stored
            return replace(stored)

    def update(
        self,
        account: Account,
        *,
        fields: Optional[Iterable[str]] = None,
        expected: Optional[Mapping[str, Any]] = None,
    ) -> None:
        names = check_account_fields(fields, expected)
        with self._lock:
            current = self._accounts.get(account.id)
            if current is None:
                raise NotFoundError("Account not found", field="id", collaborator=self.collaborator)
            if any(getattr(current, name) != value for name, value in (expected or {}).items()):
                raise ConflictError(
                    "Account changed concurrently", collaborator=self.collaborator, context={"expected": sorted(expected or {})}
                )
            changes = {name: getattr(account, name) for name in names}
            stored = replace(current, updated_at=datetime.now(timezone.utc), **changes)
            self._check_unique(stored)
            self._accounts[account.id] = stored

    def delete(self, account: Account) -> None:
        with self._lock:
            if self._accounts.pop(account.id, None) is None:
                raise NotFoundError("Account not found", field="id", collaborator=self.collaborator)

    def list_all(self) -> list[Account]:
        with self._lock:
            return [replace(account) for account in self._accounts.values()]
