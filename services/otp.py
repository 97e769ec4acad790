"""One-time code pipeline keyed by (channel, contact).

The code itself is stored hashed, with the OTP expiry as TTL. A parallel
attempts counter bounds the number of verification calls per contact, and a
short cooldown key throttles resends. All three keys expire on their own.
"""

from __future__ import annotations

import logging
from typing import Optional

from services.cache_store import CacheStore
from services.credentials import generate_one_time_code, hash_secret, verify_secret
from services.errors import InfrastructureError, InvalidCodeError, NotificationError, RateLimitError
from services.notifications import Notifier, mask_contact

logger = logging.getLogger(__name__)


class OneTimeCodes:
    def __init__(
        self,
        store: CacheStore,
        notifier: Notifier,
        *,
        namespace: str = 'participant',
        ttl_seconds: int = 600,
        max_attempts: int = 3,
        resend_cooldown_seconds: int = 60,
        fixed_code: Optional[str] = None,
    ):
        self.store = store
        self.notifier = notifier
        self.namespace = namespace
        self.ttl_seconds = ttl_seconds
        self.max_attempts = max_attempts
        self.resend_cooldown_seconds = resend_cooldown_seconds
        self.fixed_code = fixed_code

    def _key(self, kind: str, channel: str, contact: str) -> str:
        return f'{kind}:{self.namespace}:{channel}:{contact.lower()}'

    def code_key(self, channel: str, contact: str) -> str:
        return self._key('otp', channel, contact)

    def attempts_key(self, channel: str, contact: str) -> str:
        return self._key('attempts', channel, contact)

    def cooldown_key(self, channel: str, contact: str) -> str:
        return self._key('cooldown', channel, contact)

    def attempts(self, channel: str, contact: str) -> int:
        value = self.store.get(self.attempts_key(channel, contact))
        return int(value) if value else 0

    def issue(self, channel: str, contact: str) -> None:
        """Generate, store and deliver a fresh code for the contact.

        Raises RateLimitError when the contact has used up its attempts or a
        code was sent within the cooldown window. A delivery failure removes
        the cooldown so the operator can retry straight away.
        """
        if self.attempts(channel, contact) >= self.max_attempts:
            logger.warning('OTP send refused for %s: too many attempts', mask_contact(channel, contact))
            raise RateLimitError()

        cooldown_key = self.cooldown_key(channel, contact)
        if self.resend_cooldown_seconds > 0 and not self.store.add(cooldown_key, '1', self.resend_cooldown_seconds):
            remaining = self.store.ttl(cooldown_key) or self.resend_cooldown_seconds
            raise RateLimitError(f'Please wait {remaining} seconds before requesting a new code')

        code = generate_one_time_code(self.fixed_code)
        self.store.set(self.code_key(channel, contact), hash_secret(code), self.ttl_seconds)

        try:
            self.notifier.send_otp(channel, contact, code)
        except NotificationError as e:
            logger.warning('OTP delivery to %s failed: %s', mask_contact(channel, contact), e)
            self.store.delete(cooldown_key)
            raise InfrastructureError('Failed to send verification code') from e

        logger.info('OTP sent via %s to %s', channel, mask_contact(channel, contact))

    def verify(self, channel: str, contact: str, code: str) -> None:
        """Check a code. Every call counts as an attempt; success consumes the code."""
        attempts_key = self.attempts_key(channel, contact)
        attempts = self.store.incr(attempts_key, self.ttl_seconds)
        if attempts > self.max_attempts:
            logger.warning('OTP verify refused for %s: too many attempts', mask_contact(channel, contact))
            raise RateLimitError()

        code_key = self.code_key(channel, contact)
        stored = self.store.get(code_key)
        if not stored:
            raise InvalidCodeError('Code expired or not found')
        if not verify_secret(str(code or ''), stored):
            raise InvalidCodeError('Invalid code')

        self.store.delete(code_key, attempts_key)
