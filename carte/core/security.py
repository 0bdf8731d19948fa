"""Security policy: password strength rules, hashing and verification."""

from __future__ import annotations

from dataclasses import dataclass
import secrets
from typing import Optional

from argon2 import PasswordHasher, exceptions as argon_exc

from carte.core.config import Settings, get_settings
from carte.core.errors import WeakCredentialError


@dataclass(frozen=True)
class PasswordRules:
    """Strength rules; every flag can be switched off in configuration."""

    min_length: int = 8
    mixed_case: bool = False
    alpha_num: bool = False
    special_char: bool = False
    check_previous: bool = True

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "PasswordRules":
        settings = settings or get_settings()
        return cls(
            min_length=settings.password_min_length,
            mixed_case=settings.password_mixed_case,
            alpha_num=settings.password_alpha_num,
            special_char=settings.password_special_char,
            check_previous=settings.password_check_previous,
        )


class Argon2SecurityPolicy:
    """Argon2id hashing behind the configured strength rules."""

    def __init__(self, rules: Optional[PasswordRules] = None, hasher: Optional[PasswordHasher] = None):
        self.rules = rules or PasswordRules.from_settings()
        self._ph = hasher or PasswordHasher()

    def confirmation_matches(self, password: str, confirmation: str) -> bool:
        return secrets.compare_digest((password or "").encode(), (confirmation or "").encode())

    def validate(self, password: str, previous_digest: Optional[str] = None) -> None:
        """Raise WeakCredentialError naming the first rule the password breaks."""
        rules = self.rules
        value = password or ""
        if len(value) < rules.min_length:
            raise WeakCredentialError(f"Password must have at least {rules.min_length} characters", rule="min_length")
        if rules.mixed_case and not (any(c.islower() for c in value) and any(c.isupper() for c in value)):
            raise WeakCredentialError("Password must mix upper and lower case letters", rule="mixed_case")
        if rules.alpha_num and not (any(c.isalpha() for c in value) and any(c.isdigit() for c in value)):
            raise WeakCredentialError("Password must contain letters and digits", rule="alpha_num")
        if rules.special_char and all(c.isalnum() for c in value):
            raise WeakCredentialError("Password must contain a special character", rule="special_char")
        if rules.check_previous and previous_digest and self.verify(previous_digest, value):
            raise WeakCredentialError("Password must differ from the current one", rule="check_previous")

    def hash(self, password: str) -> str:
        return self._ph.hash(password)

    def verify(self, digest: Optional[str], candidate: str) -> bool:
        if not digest:
            return False
        try:
            return self._ph.verify(digest, candidate or "")
        except (argon_exc.VerificationError, argon_exc.InvalidHashError):
            return False

    def needs_rehash(self, digest: str) -> bool:
        try:
            return self._ph.check_needs_rehash(digest)
        except argon_exc.InvalidHashError:
            return True
