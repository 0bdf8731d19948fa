"""
End-to-end account flows with the default SQL stores on SQLite.
"""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Make the carte package importable when running from a checkout
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from carte.core import config as core_config  # noqa: E402
from carte.core.errors import AlreadyExistsError, NotFoundError, UnauthorizedError  # noqa: E402
from carte.core.tokens import JWTTokenAuthority  # noqa: E402
from carte.db import create_tables  # noqa: E402
from carte.db import session as db_session  # noqa: E402
from carte.domain.accounts import NewAccountRequest  # noqa: E402
from carte.repositories.sql_repository import SQLAccountRepository, SQLUserRepository  # noqa: E402
from carte.services.account_service import AccountService  # noqa: E402


@pytest.fixture()
def db_env(tmp_path, monkeypatch):
    """Temporary SQLite database plus an example password policy from the environment."""
    db_file = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_file}")
    monkeypatch.setenv("TOKEN_SECRET", "sql-test-secret-with-enough-bytes-ok")
    monkeypatch.setenv("PASSWORD_MIXED_CASE", "true")
    monkeypatch.setenv("PASSWORD_SPECIAL_CHAR", "true")
    core_config.get_settings.cache_clear()
    db_session.reset_engine()
    create_tables.create_all()

    yield

    create_tables.drop_all()
    db_session.reset_engine()
    core_config.get_settings.cache_clear()


def request(**changes) -> NewAccountRequest:
    values = dict(
        first_name="Jane",
        last_name="Doe",
        address1="1 Main St",
        zip_code="10001",
        email="jane@example.com",
        username="jdoe",
        password="Abc123!@",
        password_confirm="Abc123!@",
    )
    values.update(changes)
    return NewAccountRequest(**values)


def test_default_service_uses_sql_stores(db_env):
    svc = AccountService()
    assert isinstance(svc.users, SQLUserRepository)
    assert isinstance(svc.accounts, SQLAccountRepository)


def test_register_login_refresh_delete(db_env):
    svc = AccountService()
    account = svc.register(request())

    with pytest.raises(AlreadyExistsError):
        svc.register(request(first_name="Janet", email="janet@example.com"))

    t1 = svc.authenticate("jdoe", "Abc123!@")
    stored = svc.find_by_token(t1)
    assert stored.id == account.id
    assert stored.last_login is not None

    t2 = svc.refresh_authorization(svc.authorize(t1))
    assert t2 != t1
    with pytest.raises(NotFoundError):
        svc.find_by_token(t1)
    assert svc.find_by_token(t2).id == account.id

    with pytest.raises(UnauthorizedError):
        svc.delete(account.id, "nope")
    svc.delete(account.id, "Abc123!@")
    with pytest.raises(NotFoundError):
        svc.find_by_username("jdoe")
    with pytest.raises(NotFoundError):
        svc.users.view(account.user_id)


def test_username_race_rolls_back_user(db_env):
    class StaleAccounts(SQLAccountRepository):
        def find_by_username(self, username):
            raise NotFoundError("Account not found", field="username")

    svc = AccountService(accounts=StaleAccounts())
    svc.register(request())

    with pytest.raises(AlreadyExistsError):
        svc.register(request(first_name="John", email="john@example.com"))

    users = SQLUserRepository()
    with pytest.raises(NotFoundError):
        users.search(request(first_name="John", email="john@example.com").to_user())
    assert len(svc.list_accounts()) == 1


class HookedAuthority(JWTTokenAuthority):
    """Runs a one-shot callback just before the next token is signed."""

    def __init__(self):
        super().__init__()
        self.before_issue = None

    def generate_token(self, account):
        hook, self.before_issue = self.before_issue, None
        if hook is not None:
            hook()
        return super().generate_token(account)


def test_password_change_during_login_survives(db_env):
    authority = HookedAuthority()
    svc = AccountService(authority=authority)
    svc.register(request(password="OldPass1!", password_confirm="OldPass1!"))

    authority.before_issue = lambda: svc.change_password("jdoe", "OldPass1!", "NewPass2!", "NewPass2!")
    token = svc.authenticate("jdoe", "OldPass1!")

    assert svc.authorize(token).username == "jdoe"
    with pytest.raises(UnauthorizedError):
        svc.authenticate("jdoe", "OldPass1!")
    assert svc.authenticate("jdoe", "NewPass2!")


def test_logout_during_password_change_stays_logged_out(db_env):
    svc = AccountService()
    svc.register(request(password="OldPass1!", password_confirm="OldPass1!"))
    caller = svc.authorize(svc.authenticate("jdoe", "OldPass1!"))

    class LoggingOutPolicy(type(svc.policy)):
        def validate(self, password, previous_digest=None):
            svc.logout(caller)
            super().validate(password, previous_digest)

    svc.policy = LoggingOutPolicy(svc.policy.rules)
    svc.change_password("jdoe", "OldPass1!", "NewPass2!", "NewPass2!")

    assert svc.find_by_username("jdoe").token is None
    with pytest.raises(UnauthorizedError):
        svc.authorize(caller.token)
