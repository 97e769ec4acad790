"""Secrets and identifier generation.

Staff passwords and one-time codes go through the same adaptive hash
(Werkzeug's scrypt by default). Every random value comes from ``secrets``.
"""

from __future__ import annotations

import re
import secrets
import string
from typing import Callable, Optional

from flask import current_app, has_app_context
from werkzeug.security import check_password_hash, generate_password_hash

DEFAULT_HASH_METHOD = 'scrypt'

UNIQUE_ID_PREFIX = 'KK-'
UNIQUE_ID_ALPHABET = string.digits + string.ascii_uppercase
UNIQUE_ID_LENGTH = 6

PASSWORD_LENGTH = 12
_PASSWORD_CLASSES = (
    string.ascii_lowercase,
    string.ascii_uppercase,
    string.digits,
    '!@#$%',
)

_MAX_GENERATION_TRIES = 50


def _hash_method() -> str:
    if has_app_context():
        return current_app.config.get('PASSWORD_HASH_METHOD') or DEFAULT_HASH_METHOD
    return DEFAULT_HASH_METHOD


def hash_secret(plaintext: str) -> str:
    """Hash a password or one-time code."""
    return generate_password_hash(plaintext, method=_hash_method())


def verify_secret(plaintext: str, hashed: str) -> bool:
    if not plaintext or not hashed:
        return False
    return check_password_hash(hashed, plaintext)


def generate_one_time_code(fixed_code: Optional[str] = None) -> str:
    """6-digit numeric code.

    ``fixed_code`` is the test/dev override (``OTP_FIXED_CODE``) and is never
    configured in production.
    """
    if fixed_code:
        return fixed_code
    return f'{secrets.randbelow(1_000_000):06d}'


def generate_opaque_id(nbytes: int = 32) -> str:
    return secrets.token_hex(nbytes)


def _random_unique_id() -> str:
    return UNIQUE_ID_PREFIX + ''.join(secrets.choice(UNIQUE_ID_ALPHABET) for _ in range(UNIQUE_ID_LENGTH))


def generate_unique_participant_id(is_taken: Callable[[str], bool]) -> str:
    """Draw ``KK-XXXXXX`` ids until one is not taken."""
    for _ in range(_MAX_GENERATION_TRIES):
        candidate = _random_unique_id()
        if not is_taken(candidate):
            return candidate
    raise RuntimeError('Could not generate a free participant id')


def generate_strong_password(length: int = PASSWORD_LENGTH) -> str:
    """At least one character from each class, shuffled with Fisher-Yates."""
    alphabet = ''.join(_PASSWORD_CLASSES)
    chars = [secrets.choice(cls) for cls in _PASSWORD_CLASSES]
    chars += [secrets.choice(alphabet) for _ in range(length - len(chars))]

    for i in range(len(chars) - 1, 0, -1):
        j = secrets.randbelow(i + 1)
        chars[i], chars[j] = chars[j], chars[i]
    return ''.join(chars)


def generate_username(first_name: str, last_name: str, is_taken: Callable[[str], bool]) -> str:
    """``first.last<0-998>``, lowercase letters and dots only."""
    base = re.sub(r'[^a-z.]', '', f'{first_name.lower()}.{last_name.lower()}') or 'staff'
    for _ in range(_MAX_GENERATION_TRIES):
        candidate = f'{base}{secrets.randbelow(999)}'
        if not is_taken(candidate):
            return candidate
    raise RuntimeError('Could not generate a free username')
