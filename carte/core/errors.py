"""
Error kinds raised by the account core.

Every rejection carries a stable ``kind`` plus structured context (which field
or collaborator triggered it) so delivery layers can branch on the type and
render ``to_dict()`` without parsing messages.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional


class AccountError(Exception):
    """Base class for account/authentication failures."""

    kind = "account_error"

    def __init__(
        self,
        message: str = "",
        *,
        field: Optional[str] = None,
        collaborator: Optional[str] = None,
        context: Optional[Mapping[str, Any]] = None,
    ):
        super().__init__(message or self.kind)
        self.message = message or self.kind
        self.field = field
        self.collaborator = collaborator
        self.context = dict(context or {})

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.kind, "message": self.message}
        details = dict(self.context)
        if self.field:
            details["field"] = self.field
        if self.collaborator:
            details["collaborator"] = self.collaborator
        if details:
            payload["context"] = details
        return payload


class AlreadyExistsError(AccountError):
    kind = "already_exists"


class CredentialMismatchError(AccountError):
    kind = "credential_mismatch"


class WeakCredentialError(AccountError):
    kind = "weak_credential"

    def __init__(self, message: str = "", *, rule: str, **kwargs: Any):
        context = dict(kwargs.pop("context", None) or {})
        context["rule"] = rule
        kwargs.setdefault("field", "password")
        super().__init__(message, context=context, **kwargs)
        self.rule = rule


class UnauthorizedError(AccountError):
    kind = "unauthorized"


class SessionExpiredError(UnauthorizedError):
    kind = "session_expired"


class NotFoundError(AccountError):
    kind = "not_found"


class StoreError(AccountError):
    """Infrastructure failure inside a store (database down, bad SQL, ...)."""

    kind = "store_failure"


class TokenIssueError(AccountError):
    kind = "token_issue"


class ConflictError(AccountError):
    """A guarded write found the row changed since it was read."""

    kind = "conflict"
