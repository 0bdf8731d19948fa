"""
Account lifecycle and authentication use cases.

The service coordinates the user store, the account store, the security
policy and the token authority. It holds no locks and performs no retries:
uniqueness under concurrency is enforced by the stores, and collaborator
failures reach the caller as raised.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Optional
import uuid

from carte.core.config import Settings, get_settings
from carte.core.errors import (
    AccountError,
    AlreadyExistsError,
    ConflictError,
    CredentialMismatchError,
    NotFoundError,
    UnauthorizedError,
    WeakCredentialError,
)
from carte.core.log import logger
from carte.core.security import Argon2SecurityPolicy, PasswordRules
from carte.core.tokens import JWTTokenAuthority
from carte.domain.accounts import (
    Account,
    CallerIdentity,
    NewAccountRequest,
    UpdateAccountRequest,
    User,
)
from carte.domain.interfaces import AccountStore, SecurityPolicy, TokenAuthority, UserStore


@dataclass
class AccountService:
    """Registration, login, password, session and deletion flows."""

    users: Optional[UserStore] = None
    accounts: Optional[AccountStore] = None
    policy: Optional[SecurityPolicy] = None
    authority: Optional[TokenAuthority] = None

    def __post_init__(self):
        if any(c is None for c in (self.users, self.accounts, self.policy, self.authority)):
            self._build_defaults(get_settings())

    def _build_defaults(self, settings: Settings) -> None:
        if self.users is None or self.accounts is None:
            from carte.repositories.sql_repository import SQLAccountRepository, SQLUserRepository

            if self.users is None:
                self.users = SQLUserRepository()
            if self.accounts is None:
                self.accounts = SQLAccountRepository()
        if self.policy is None:
            self.policy = Argon2SecurityPolicy(PasswordRules.from_settings(settings))
        if self.authority is None:
            self.authority = JWTTokenAuthority(
                secret=settings.token_secret,
                ttl_seconds=settings.token_ttl_seconds,
                algorithm=settings.token_algorithm,
            )

    # -------------------------------------- helpers --------------------------------------
    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    @staticmethod
    def _username(value: Optional[str]) -> str:
        return (value or "").strip()

    def _verified(self, account: Account, password: str) -> None:
        if not self.policy.verify(account.password, password):
            logger.warning("Password check failed for account {}", account.username)
            raise UnauthorizedError("Password incorrect", field="password", collaborator="security_policy")

    def _discard_user(self, user: User) -> None:
        try:
            self.users.delete(user)
        except AccountError as exc:
            logger.error("Could not remove user {} after failed registration: {}", user.id, exc.kind)

    def _upgrade_hash(self, account: Account, password: str) -> None:
        try:
            self.accounts.update(
                replace(account, password=self.policy.hash(password)),
                fields=("password",),
                expected={"password": account.password},
            )
        except ConflictError:
            logger.info("Skipped hash upgrade for account {}: password changed meanwhile", account.username)

    # -------------------------------------- registration --------------------------------------
    def register(self, request: NewAccountRequest) -> Account:
        profile = request.to_user()
        try:
            self.users.search(profile)
        except NotFoundError:
            pass
        else:
            raise AlreadyExistsError("Account already exists", field="profile", collaborator="user_store")

        if not self.policy.confirmation_matches(request.password, request.password_confirm):
            raise CredentialMismatchError("Passwords don't match", field="password_confirm")

        self.policy.validate(request.password)

        username = self._username(request.username)
        if not username:
            raise WeakCredentialError("Username is required", rule="username", field="username")
        try:
            self.accounts.find_by_username(username)
        except NotFoundError:
            pass
        else:
            raise AlreadyExistsError("Username already exists", field="username", collaborator="account_store")

        digest = self.policy.hash(request.password)

        user = self.users.create(profile)
        try:
            account = self.accounts.create(Account(username=username, password=digest, user_id=user.id))
        except Exception:
            logger.warning("Account creation failed for {}; removing user {}", username, user.id)
            self._discard_user(user)
            raise
        logger.info("Registered account {} ({})", account.username, account.id)
        return account

    # -------------------------------------- sessions --------------------------------------
    def authenticate(self, username: str, password: str) -> str:
        account = self.accounts.find_by_username(self._username(username))
        self._verified(account, password)

        token = self.authority.generate_token(account)

        # Only the session columns: a password changed since the read must survive.
        self.accounts.update(replace(account, token=token, last_login=self._now()), fields=("token", "last_login"))
        if self.policy.needs_rehash(account.password):
            self._upgrade_hash(account, password)
        logger.info("Account {} logged in", account.username)
        return token

    def refresh_authorization(self, caller: CallerIdentity) -> str:
        """Issue a new token for the caller; the previous one stops resolving."""
        account = self.accounts.find_by_username(self._username(caller.username))
        token = self.authority.generate_token(account)
        try:
            self.accounts.update(replace(account, token=token), fields=("token",), expected={"token": caller.token})
        except ConflictError as exc:
            raise UnauthorizedError("Session is no longer active", field="token", collaborator="account_store") from exc
        logger.info("Refreshed session for account {}", account.username)
        return token

    def authorize(self, token: str) -> CallerIdentity:
        """Resolve a presented bearer token to the account holding it as its live session."""
        self.authority.token_valid(token)
        claims = self.authority.extract_claims(token)
        try:
            account = self.accounts.find_by_token(token)
        except NotFoundError as exc:
            raise UnauthorizedError("Session is no longer active", field="token", collaborator="account_store") from exc
        if account.id != claims.account_id:
            raise UnauthorizedError("Token does not belong to this account", field="token")
        return CallerIdentity(account_id=account.id, username=account.username, token=token)

    def logout(self, caller: CallerIdentity) -> None:
        account = self.accounts.find_by_id(caller.account_id)
        try:
            self.accounts.update(replace(account, token=None), fields=("token",), expected={"token": caller.token})
        except ConflictError as exc:
            raise UnauthorizedError("Session is no longer active", field="token", collaborator="account_store") from exc
        logger.info("Account {} logged out", account.username)

    # -------------------------------------- password --------------------------------------
    def change_password(self, username: str, old_password: str, new_password: str, confirm_new_password: str) -> None:
        if not self.policy.confirmation_matches(new_password, confirm_new_password):
            raise CredentialMismatchError("Passwords don't match", field="password_confirm")

        account = self.accounts.find_by_username(self._username(username))
        self._verified(account, old_password)
        self.policy.validate(new_password, previous_digest=account.password)

        try:
            self.accounts.update(
                replace(account, password=self.policy.hash(new_password)),
                fields=("password",),
                expected={"password": account.password},
            )
        except ConflictError as exc:
            raise UnauthorizedError(
                "Password changed meanwhile", field="password", collaborator="account_store"
            ) from exc
        logger.info("Password changed for account {}", account.username)

    # -------------------------------------- account management --------------------------------------
    def delete(self, account_id: uuid.UUID, password: str) -> None:
        """Delete the account and, with it, the linked user profile."""
        account = self.accounts.find_by_id(account_id)
        self._verified(account, password)

        self.accounts.delete(account)
        if account.user_id is not None:
            self.users.delete(User(id=account.user_id))
        logger.info("Deleted account {} ({})", account.username, account.id)

    def update(self, request: UpdateAccountRequest) -> User:
        account = self.accounts.find_by_id(request.id)
        self.accounts.update(account, fields=())

        user = self.users.view(account.user_id)
        user.address1 = request.address1
        if request.address2 is not None:
            user.address2 = request.address2
        user.zip_code = request.zip_code
        user.email = request.email
        self.users.update(user)
        return user

    def list_accounts(self) -> list[Account]:
        return self.accounts.list_all()

    def find_by_username(self, username: str) -> Account:
        return self.accounts.find_by_username(self._username(username))

    def find_by_token(self, token: str) -> Account:
        return self.accounts.find_by_token(token)
