"""Verification sessions for pending participant registrations.

A session is a small JSON record in the cache store, keyed by an opaque id,
that walks one way through::

    INFO_SUBMITTED -> PHONE_OTP_SENT -> PHONE_VERIFIED
                   -> EMAIL_OTP_SENT -> EMAIL_VERIFIED -> CONSUMED

A session that is no longer in the store is EXPIRED. Every rewrite resets the
full TTL. Codes themselves live in the ``OneTimeCodes`` pipeline, keyed by
contact rather than by session, so rate limits follow the phone number or
email address across sessions.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from services.cache_store import CacheStore
from services.credentials import generate_opaque_id
from services.errors import (
    ConflictError,
    InvalidCodeError,
    InvalidTransitionError,
    SessionNotFoundError,
    StateError,
    ValidationError,
)
from services.notifications import CHANNEL_EMAIL, CHANNEL_PHONE, mask_contact
from services.otp import OneTimeCodes

logger = logging.getLogger(__name__)


class VerificationState(str, Enum):
    INFO_SUBMITTED = 'INFO_SUBMITTED'
    PHONE_OTP_SENT = 'PHONE_OTP_SENT'
    PHONE_VERIFIED = 'PHONE_VERIFIED'
    EMAIL_OTP_SENT = 'EMAIL_OTP_SENT'
    EMAIL_VERIFIED = 'EMAIL_VERIFIED'
    CONSUMED = 'CONSUMED'
    EXPIRED = 'EXPIRED'


_ORDER = [
    VerificationState.INFO_SUBMITTED,
    VerificationState.PHONE_OTP_SENT,
    VerificationState.PHONE_VERIFIED,
    VerificationState.EMAIL_OTP_SENT,
    VerificationState.EMAIL_VERIFIED,
    VerificationState.CONSUMED,
]

# channel -> (states the step may start from, state it leads to)
_SEND_TRANSITIONS = {
    CHANNEL_PHONE: (
        {VerificationState.INFO_SUBMITTED, VerificationState.PHONE_OTP_SENT},
        VerificationState.PHONE_OTP_SENT,
    ),
    CHANNEL_EMAIL: (
        {VerificationState.PHONE_VERIFIED, VerificationState.EMAIL_OTP_SENT},
        VerificationState.EMAIL_OTP_SENT,
    ),
}

_VERIFY_TRANSITIONS = {
    CHANNEL_PHONE: (
        {VerificationState.INFO_SUBMITTED, VerificationState.PHONE_OTP_SENT},
        VerificationState.PHONE_VERIFIED,
    ),
    CHANNEL_EMAIL: (
        {VerificationState.PHONE_VERIFIED, VerificationState.EMAIL_OTP_SENT},
        VerificationState.EMAIL_VERIFIED,
    ),
}

_CHANNEL_LABELS = {CHANNEL_PHONE: 'Phone', CHANNEL_EMAIL: 'Email'}


def _rank(state: VerificationState) -> int:
    return _ORDER.index(state)


@dataclass
class VerificationSession:
    session_id: str
    phone: str
    email: str
    state: VerificationState = VerificationState.INFO_SUBMITTED

    @property
    def phone_verified(self) -> bool:
        return _rank(self.state) >= _rank(VerificationState.PHONE_VERIFIED)

    @property
    def email_verified(self) -> bool:
        return _rank(self.state) >= _rank(VerificationState.EMAIL_VERIFIED)

    @property
    def is_complete(self) -> bool:
        return self.phone_verified and self.email_verified

    @property
    def is_consumed(self) -> bool:
        return self.state == VerificationState.CONSUMED

    def contact(self, channel: str) -> str:
        return self.phone if channel == CHANNEL_PHONE else self.email

    def to_json(self) -> str:
        return json.dumps({
            'phone': self.phone,
            'email': self.email,
            'state': self.state.value,
            'phoneVerified': self.phone_verified,
            'emailVerified': self.email_verified,
        })

    @classmethod
    def from_json(cls, session_id: str, raw: str) -> 'VerificationSession':
        data = json.loads(raw)
        return cls(
            session_id=session_id,
            phone=data['phone'],
            email=data['email'],
            state=VerificationState(data['state']),
        )

    def to_dict(self) -> dict:
        return {
            'sessionId': self.session_id,
            'phone': self.phone,
            'email': self.email,
            'state': self.state.value,
            'phoneVerified': self.phone_verified,
            'emailVerified': self.email_verified,
        }


class VerificationSessionManager:
    def __init__(self, store: CacheStore, codes: OneTimeCodes, ttl_seconds: int = 600):
        self.store = store
        self.codes = codes
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def _key(session_id: str) -> str:
        return f'session:{session_id}'

    def _save(self, session: VerificationSession) -> None:
        self.store.set(self._key(session.session_id), session.to_json(), self.ttl_seconds)

    def start(self, phone: str, email: str) -> str:
        """Open a session for a phone/email pair. Uniqueness is the caller's check."""
        session = VerificationSession(session_id=generate_opaque_id(), phone=phone, email=email)
        self._save(session)
        logger.info('Verification session started for %s', mask_contact(CHANNEL_PHONE, phone))
        return session.session_id

    def get(self, session_id: str) -> Optional[VerificationSession]:
        if not session_id:
            return None
        raw = self.store.get(self._key(session_id))
        if not raw:
            return None
        return VerificationSession.from_json(session_id, raw)

    def require(self, session_id: str) -> VerificationSession:
        session = self.get(session_id)
        if session is None:
            raise SessionNotFoundError()
        return session

    def state(self, session_id: str) -> VerificationState:
        session = self.get(session_id)
        return session.state if session else VerificationState.EXPIRED

    def is_complete(self, session_id: str) -> bool:
        session = self.get(session_id)
        return bool(session and session.is_complete)

    def _send(self, session_id: str, channel: str) -> VerificationSession:
        session = self.require(session_id)
        allowed, target = _SEND_TRANSITIONS[channel]
        if session.state not in allowed:
            if _rank(session.state) > _rank(target):
                raise InvalidTransitionError(f'{_CHANNEL_LABELS[channel]} is already verified')
            raise InvalidTransitionError()

        self.codes.issue(channel, session.contact(channel))
        session.state = target
        self._save(session)
        return session

    def _verify(self, session_id: str, channel: str, code: str) -> VerificationSession:
        session = self.require(session_id)
        allowed, target = _VERIFY_TRANSITIONS[channel]
        if session.state not in allowed:
            if _rank(session.state) >= _rank(target):
                # The code for this step was consumed by the earlier success.
                raise InvalidCodeError('Code expired or not found')
            raise InvalidTransitionError()

        self.codes.verify(channel, session.contact(channel), code)
        session.state = target
        self._save(session)
        logger.info('%s verified for session %s', _CHANNEL_LABELS[channel], session_id[:8])
        return session

    def send_phone_code(self, session_id: str) -> VerificationSession:
        return self._send(session_id, CHANNEL_PHONE)

    def verify_phone_code(self, session_id: str, code: str) -> VerificationSession:
        return self._verify(session_id, CHANNEL_PHONE, code)

    def send_email_code(self, session_id: str) -> VerificationSession:
        return self._send(session_id, CHANNEL_EMAIL)

    def verify_email_code(self, session_id: str, code: str) -> VerificationSession:
        return self._verify(session_id, CHANNEL_EMAIL, code)

    def resend_code(self, session_id: str, channel: str) -> VerificationSession:
        if channel not in _SEND_TRANSITIONS:
            raise ValidationError(f'Unknown verification channel: {channel}')
        return self._send(session_id, channel)

    def ensure_ready(self, session_id: str, phone: str, email: str) -> VerificationSession:
        """Session must be fully verified, unused, and match the resubmitted contacts."""
        session = self.require(session_id)
        if session.is_consumed:
            raise ConflictError('Registration already completed for this session')
        if not session.is_complete:
            raise StateError('Phone and email verification required')
        if session.phone != phone or session.email.lower() != (email or '').lower():
            raise ConflictError('Session data mismatch')
        return session

    def mark_consumed(self, session_id: str) -> VerificationSession:
        session = self.require(session_id)
        if session.state != VerificationState.EMAIL_VERIFIED:
            raise InvalidTransitionError()
        session.state = VerificationState.CONSUMED
        self._save(session)
        return session
