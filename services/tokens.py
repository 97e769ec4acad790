"""Session tokens and server-side revocation.

Tokens are stateless JWTs (Flask-JWT-Extended). Revocation is a per-user
watermark in the cache store: any token issued before the watermark is
rejected. The watermark lives as long as the longest token can, so it expires
on its own once every affected token has expired too.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

from flask_jwt_extended import create_access_token, decode_token
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt import PyJWTError

from services.cache_store import CacheStore
from services.errors import AuthError

logger = logging.getLogger(__name__)

TOKEN_LIFETIME_SECONDS = 8 * 60 * 60
ISSUED_AT_CLAIM = 'issued_at_ms'


def _now_ms() -> int:
    return int(time.time() * 1000)


class RevocationStore:
    def __init__(self, store: CacheStore, max_lifetime_seconds: int = TOKEN_LIFETIME_SECONDS):
        self._store = store
        self._ttl = max_lifetime_seconds

    @staticmethod
    def _key(user_id: int) -> str:
        return f'revoked:user:{user_id}'

    def revoke(self, user_id: int) -> int:
        watermark = _now_ms()
        self._store.set(self._key(user_id), str(watermark), self._ttl)
        logger.info('Revoked tokens for staff %s', user_id)
        return watermark

    def revoked_at(self, user_id: int) -> Optional[int]:
        value = self._store.get(self._key(user_id))
        return int(value) if value else None

    def is_revoked(self, user_id: int, issued_at_ms: int) -> bool:
        watermark = self.revoked_at(user_id)
        return watermark is not None and issued_at_ms < watermark

    def is_token_revoked(self, claims: dict[str, Any]) -> bool:
        try:
            user_id = int(claims['sub'])
        except (KeyError, TypeError, ValueError):
            return True
        return self.is_revoked(user_id, issued_at_from_claims(claims))


def issued_at_from_claims(claims: dict[str, Any]) -> int:
    issued = claims.get(ISSUED_AT_CLAIM)
    if issued is not None:
        return int(issued)
    return int(claims.get('iat', 0)) * 1000


def issue_token(user_id: int, username: str, role: str) -> str:
    return create_access_token(
        identity=str(user_id),
        additional_claims={
            'username': username,
            'role': role,
            ISSUED_AT_CLAIM: _now_ms(),
        },
    )


def validate_token(token: str, revocations: RevocationStore) -> dict[str, Any]:
    """Verify signature, expiry and revocation. Raises AuthError."""
    try:
        claims = decode_token(token)
    except (JWTExtendedException, PyJWTError) as e:
        logger.warning('Token rejected: %s', e)
        raise AuthError('Invalid or expired token') from e

    if revocations.is_token_revoked(claims):
        logger.warning('Token rejected: revoked for staff %s', claims.get('sub'))
        raise AuthError('Token has been revoked. Please login again.')
    return claims
