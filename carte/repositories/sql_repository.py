"""User and account stores backed by SQLAlchemy."""
from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, Mapping, Optional
import uuid

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from carte.core.errors import AlreadyExistsError, ConflictError, NotFoundError, StoreError
from carte.db.models import AccountRecord, UserRecord
from carte.db.session import get_session
from carte.domain.accounts import Account, User, check_account_fields

_PROFILE_COLUMNS = {
    "first_name": UserRecord.first_name,
    "last_name": UserRecord.last_name,
    "address1": UserRecord.address1,
    "address2": UserRecord.address2,
    "zip_code": UserRecord.zip_code,
    "email": UserRecord.email,
}


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone=True columns.
    if value is None:
        return None
    return value.astimezone(timezone.utc) if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _to_user(record: UserRecord) -> User:
    return User(
        id=record.id,
        first_name=record.first_name,
        last_name=record.last_name,
        address1=record.address1,
        address2=record.address2 or "",
        zip_code=record.zip_code,
        email=record.email,
    )


def _to_account(record: AccountRecord) -> Account:
    return Account(
        id=record.id,
        username=record.username,
        password=record.password,
        user_id=record.user_id,
        token=record.token,
        last_login=_aware(record.last_login),
        created_at=_aware(record.created_at),
        updated_at=_aware(record.updated_at),
    )


@contextmanager
def _store_errors(collaborator: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        raise StoreError(str(exc), collaborator=collaborator) from exc


class SQLUserRepository:
    """CRUD and profile search on the users table."""

    collaborator = "user_store"

    def search(self, profile: User) -> User:
        criteria = profile.profile_fields()
        if not criteria:
            raise NotFoundError("User not found", collaborator=self.collaborator)
        stmt = select(UserRecord)
        for name, value in criteria.items():
            stmt = stmt.where(_PROFILE_COLUMNS[name] == value)
        with _store_errors(self.collaborator), get_session() as session:
            record = session.execute(stmt.limit(1)).scalar_one_or_none()
        if record is None:
            raise NotFoundError("User not found", collaborator=self.collaborator)
        return _to_user(record)

    def create(self, user: User) -> User:
        record = UserRecord(
            id=user.id or uuid.uuid4(),
            first_name=user.first_name,
            last_name=user.last_name,
            address1=user.address1,
            address2=user.address2 or "",
            zip_code=user.zip_code,
            email=user.email,
        )
        with _store_errors(self.collaborator), get_session() as session:
            session.add(record)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise AlreadyExistsError("User already exists", field="id", collaborator=self.collaborator) from exc
            session.refresh(record)
            return _to_user(record)

    def view(self, user_id: uuid.UUID) -> User:
        with _store_errors(self.collaborator), get_session() as session:
            record = session.get(UserRecord, user_id)
        if record is None:
            raise NotFoundError("User not found", field="id", collaborator=self.collaborator)
        return _to_user(record)

    def update(self, user: User) -> None:
        with _store_errors(self.collaborator), get_session() as session:
            record = session.get(UserRecord, user.id)
            if record is None:
                raise NotFoundError("User not found", field="id", collaborator=self.collaborator)
            record.first_name = user.first_name
            record.last_name = user.last_name
            record.address1 = user.address1
            record.address2 = user.address2 or ""
            record.zip_code = user.zip_code
            record.email = user.email
            record.updated_at = datetime.now(timezone.utc)
            session.commit()

    def delete(self, user: User) -> None:
        with _store_errors(self.collaborator), get_session() as session:
            session.execute(delete(UserRecord).where(UserRecord.id == user.id))
            session.commit()


class SQLAccountRepository:
    """Account rows; username and token uniqueness come from table constraints."""

    collaborator = "account_store"

    def _find_one(self, stmt, field: str) -> Account:
        with _store_errors(self.collaborator), get_session() as session:
            record = session.execute(stmt).scalar_one_or_none()
        if record is None:
            raise NotFoundError("Account not found", field=field, collaborator=self.collaborator)
        return _to_account(record)

    def find_by_username(self, username: str) -> Account:
        return self._find_one(select(AccountRecord).where(AccountRecord.username == username), "username")

    def find_by_token(self, token: str) -> Account:
        if not token:
            raise NotFoundError("Account not found", field="token", collaborator=self.collaborator)
        return self._find_one(select(AccountRecord).where(AccountRecord.token == token), "token")

    def find_by_id(self, account_id: uuid.UUID) -> Account:
        return self._find_one(select(AccountRecord).where(AccountRecord.id == account_id), "id")

    def _username_taken(self, username: str) -> bool:
        with get_session() as session:
            stmt = select(AccountRecord.id).where(AccountRecord.username == username).limit(1)
            return session.execute(stmt).first() is not None

    def create(self, account: Account) -> Account:
        now = datetime.now(timezone.utc)
        record = AccountRecord(
            id=account.id or uuid.uuid4(),
            username=account.username,
            password=account.password,
            token=account.token,
            last_login=account.last_login,
            user_id=account.user_id,
            created_at=now,
            updated_at=now,
        )
        with _store_errors(self.collaborator), get_session() as session:
            session.add(record)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                if self._username_taken(account.username):
                    raise AlreadyExistsError(
                        "Username already exists", field="username", collaborator=self.collaborator
                    ) from exc
                raise
            session.refresh(record)
            return _to_account(record)

    def update(
        self,
        account: Account,
        *,
        fields: Optional[Iterable[str]] = None,
        expected: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """
        Write ``fields`` (all mutable columns when None) in one UPDATE statement.

        ``expected`` adds column == value guards; if the row no longer matches,
        nothing is written and ConflictError is raised.
        """
        names = check_account_fields(fields, expected)
        values: dict[str, Any] = {name: getattr(account, name) for name in names}
        values["updated_at"] = datetime.now(timezone.utc)
        stmt = update(AccountRecord).where(AccountRecord.id == account.id)
        for name, value in (expected or {}).items():
            stmt = stmt.where(getattr(AccountRecord, name) == value)
        with _store_errors(self.collaborator), get_session() as session:
            try:
                result = session.execute(stmt.values(**values))
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise AlreadyExistsError(
                    "Username or token already in use", field="token", collaborator=self.collaborator
                ) from exc
        if not result.rowcount:
            self.find_by_id(account.id)
            raise ConflictError(
                "Account changed concurrently", collaborator=self.collaborator, context={"expected": sorted(expected or {})}
            )

    def delete(self, account: Account) -> None:
        with _store_errors(self.collaborator), get_session() as session:
            result = session.execute(delete(AccountRecord).where(AccountRecord.id == account.id))
            session.commit()
        if not result.rowcount:
            raise NotFoundError("Account not found", field="id", collaborator=self.collaborator)

    def list_all(self) -> list[Account]:
        with _store_errors(self.collaborator), get_session() as session:
            records = session.execute(select(AccountRecord).order_by(AccountRecord.created_at)).scalars().all()
        return [_to_account(record) for record in records]
