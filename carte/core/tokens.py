"""Token authority: issue and validate signed session tokens (JWT)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import secrets
from typing import Optional
import uuid

import jwt

from carte.core.config import get_settings
from carte.core.errors import SessionExpiredError, TokenIssueError, UnauthorizedError
from carte.domain.accounts import Account

_REQUIRED_CLAIMS = ["sub", "username", "jti", "iat", "exp", "iss"]


@dataclass(frozen=True)
class Claims:
    account_id: uuid.UUID
    username: str
    token_id: str
    issued_at: datetime
    expires_at: datetime


class JWTTokenAuthority:
    """HMAC-signed JWTs bound to an account id; a random ``jti`` keeps every token unique."""

    def __init__(
        self,
        secret: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
        algorithm: Optional[str] = None,
        issuer: str = "carte",
    ):
        # Settings are only consulted for what the caller left out.
        if not secret or ttl_seconds is None or not algorithm:
            settings = get_settings()
            secret = secret or settings.token_secret
            ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.token_ttl_seconds
            algorithm = algorithm or settings.token_algorithm
        self._secret = secret
        self._ttl = ttl_seconds
        self._algorithm = algorithm
        self._issuer = issuer

    def generate_token(self, account: Account) -> str:
        if account.id is None:
            raise TokenIssueError("Account has no identifier", field="id", collaborator="token_authority")
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(account.id),
            "username": account.username,
            "jti": secrets.token_urlsafe(16),
            "iat": now,
            "exp": now + timedelta(seconds=max(1, self._ttl)),
            "iss": self._issuer,
        }
        try:
            return jwt.encode(payload, self._secret, algorithm=self._algorithm)
        except (jwt.PyJWTError, NotImplementedError, TypeError) as exc:
            raise TokenIssueError(str(exc), collaborator="token_authority") from exc

    def _decode(self, token: str) -> dict:
        if not token:
            raise UnauthorizedError("Missing token", field="token", collaborator="token_authority")
        try:
            return jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                issuer=self._issuer,
                options={"require": _REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError as exc:
            raise SessionExpiredError("Token expired", field="token", collaborator="token_authority") from exc
        except jwt.InvalidTokenError as exc:
            raise UnauthorizedError("Invalid token", field="token", collaborator="token_authority") from exc

    def token_valid(self, token: str) -> None:
        self._decode(token)

    def extract_claims(self, token: str) -> Claims:
        data = self._decode(token)
        try:
            account_id = uuid.UUID(str(data["sub"]))
        except ValueError as exc:
            raise UnauthorizedError("Invalid token subject", field="token", collaborator="token_authority") from exc
        return Claims(
            account_id=account_id,
            username=str(data["username"]),
            token_id=str(data["jti"]),
            issued_at=datetime.fromtimestamp(int(data["iat"]), tz=timezone.utc),
            expires_at=datetime.fromtimestamp(int(data["exp"]), tz=timezone.utc),
        )
