"""Participant registration: uniqueness check, two OTP steps, then the ledger insert."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from models.participant import Participant
from services.errors import InfrastructureError, RateLimitError
from services.participants import ParticipantLedger
from services.verification import VerificationSession, VerificationSessionManager

logger = logging.getLogger(__name__)


@dataclass
class ParticipantInfo:
    first_name: str
    last_name: str
    gov_id: str
    phone: str
    email: str

    def to_dict(self) -> dict:
        return {
            'firstName': self.first_name,
            'lastName': self.last_name,
            'govId': self.gov_id,
            'phone': self.phone,
            'email': self.email,
        }


class RegistrationWorkflow:
    def __init__(self, sessions: VerificationSessionManager, ledger: ParticipantLedger):
        self.sessions = sessions
        self.ledger = ledger

    def start(self, info: ParticipantInfo) -> str:
        """Open a session and send the phone code. Returns the session id."""
        self.ledger.ensure_available(info.phone, info.email, info.gov_id)
        session_id = self.sessions.start(info.phone, info.email)
        self.sessions.send_phone_code(session_id)
        return session_id

    def verify_phone(self, session_id: str, code: str) -> tuple[VerificationSession, bool]:
        """Verify the phone code and send the email code.

        Returns (session, email_code_sent). The phone step stays verified even
        when the email code cannot be sent; the operator can resend it.
        """
        session = self.sessions.verify_phone_code(session_id, code)
        try:
            session = self.sessions.send_email_code(session_id)
        except (RateLimitError, InfrastructureError) as e:
            logger.warning('Email code for session %s not sent: %s', session_id[:8], e.message)
            return session, False
        return session, True

    def verify_email(self, session_id: str, code: str) -> VerificationSession:
        return self.sessions.verify_email_code(session_id, code)

    def resend(self, session_id: str, channel: str) -> VerificationSession:
        return self.sessions.resend_code(session_id, channel)

    def complete(self, session_id: str, info: ParticipantInfo, acting_staff_id: Optional[int]) -> Participant:
        """Register the participant from a fully verified session.

        The session's phone and email must match the resubmitted values. A
        second completion of the same session is rejected, and a race between
        two completions is settled by the participants' unique constraints.
        """
        session = self.sessions.ensure_ready(session_id, info.phone, info.email)
        self.ledger.ensure_available(session.phone, session.email, info.gov_id)

        participant = self.ledger.register(
            info.first_name,
            info.last_name,
            info.gov_id,
            session.phone,
            session.email,
            acting_staff_id,
        )
        self.sessions.mark_consumed(session_id)
        return participant
