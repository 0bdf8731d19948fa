from __future__ import annotations

import sys
from pathlib import Path

import pytest
from argon2 import PasswordHasher

# Make the carte package importable when running from a checkout
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from carte.core.errors import WeakCredentialError  # noqa: E402
from carte.core.security import Argon2SecurityPolicy, PasswordRules  # noqa: E402

FAST_HASHER = PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)


def make_policy(**rules) -> Argon2SecurityPolicy:
    return Argon2SecurityPolicy(PasswordRules(**rules), hasher=FAST_HASHER)


def test_hash_is_not_plaintext_and_verifies_only_the_original():
    policy = make_policy()
    digest = policy.hash("Abc123!@")

    assert digest != "Abc123!@"
    assert policy.verify(digest, "Abc123!@") is True
    assert policy.verify(digest, "Abc123!#") is False
    assert policy.verify(digest, "") is False


def test_same_password_hashes_differently_each_time():
    policy = make_policy()
    assert policy.hash("Abc123!@") != policy.hash("Abc123!@")


def test_verify_rejects_malformed_or_missing_digest():
    policy = make_policy()
    assert policy.verify("not-a-hash", "whatever") is False
    assert policy.verify(None, "whatever") is False
    assert policy.verify("", "whatever") is False


def test_confirmation_matches():
    policy = make_policy()
    assert policy.confirmation_matches("Abc123!@", "Abc123!@") is True
    assert policy.confirmation_matches("Abc123!@", "abc123!@") is False
    assert policy.confirmation_matches("", "") is True


@pytest.mark.parametrize(
    "rule, password",
    [
        ("min_length", "Ab1!"),
        ("mixed_case", "abc123!@"),
        ("alpha_num", "Abcdefg!"),
        ("special_char", "Abcdefg1"),
    ],
)
def test_each_rule_rejects_then_accepts_when_disabled(rule, password):
    strict = dict(min_length=8, mixed_case=True, alpha_num=True, special_char=True)

    with pytest.raises(WeakCredentialError) as excinfo:
        make_policy(**strict).validate(password)
    assert excinfo.value.rule == rule
    assert excinfo.value.field == "password"

    relaxed = dict(strict)
    if rule == "min_length":
        relaxed["min_length"] = 1
    else:
        relaxed[rule] = False
    make_policy(**relaxed).validate(password)


def test_check_previous_rejects_current_password():
    policy = make_policy(check_previous=True)
    current = policy.hash("Abc123!@")

    with pytest.raises(WeakCredentialError) as excinfo:
        policy.validate("Abc123!@", previous_digest=current)
    assert excinfo.value.rule == "check_previous"

    policy.validate("Xyz789#$", previous_digest=current)
    make_policy(check_previous=False).validate("Abc123!@", previous_digest=current)


def test_needs_rehash_when_parameters_change():
    weak = make_policy()
    digest = weak.hash("Abc123!@")

    assert weak.needs_rehash(digest) is False
    assert Argon2SecurityPolicy(PasswordRules()).needs_rehash(digest) is True


def test_rules_from_settings(monkeypatch):
    from carte.core import config as core_config

    monkeypatch.setenv("PASSWORD_MIN_LENGTH", "12")
    monkeypatch.setenv("PASSWORD_SPECIAL_CHAR", "true")
    monkeypatch.setenv("PASSWORD_CHECK_PREVIOUS", "no")
    core_config.get_settings.cache_clear()
    try:
        rules = PasswordRules.from_settings()
    finally:
        core_config.get_settings.cache_clear()

    assert rules.min_length == 12
    assert rules.special_char is True
    assert rules.mixed_case is False
    assert rules.check_previous is False
