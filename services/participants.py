"""Participant ledger: identity, points balance and lock state.

Every mutation runs inside ``atomic()`` under a row lock on the participant
and writes its transaction log entry in the same transaction.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from extensions import db
from models.participant import Participant, ParticipantStatus
from models.transaction_log import LogType
from services import transaction_log
from services.credentials import generate_unique_participant_id
from services.errors import ConflictError, LockedError, NotFoundError, NotificationError, ValidationError
from services.notifications import CHANNEL_EMAIL, CHANNEL_PHONE, Notifier, mask_contact

logger = logging.getLogger(__name__)


def lock_participant_row(participant_id: int) -> Optional[Participant]:
    """SELECT ... FOR UPDATE, refreshing any copy already in the session."""
    return (
        Participant.query.filter_by(id=participant_id)
        .populate_existing()
        .with_for_update()
        .first()
    )


def _escape_like(value: str) -> str:
    return value.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


class ParticipantLedger:
    def __init__(self, notifier: Notifier, search_limit: int = 20):
        self.notifier = notifier
        self.search_limit = search_limit

    def ensure_available(self, phone: str, email: str, gov_id: str) -> None:
        if Participant.query.filter_by(phone=phone).first():
            raise ConflictError('Phone number already registered')
        if Participant.query.filter(db.func.lower(Participant.email) == email.lower()).first():
            raise ConflictError('Email already registered')
        if Participant.query.filter_by(gov_id=gov_id).first():
            raise ConflictError('Government ID already registered')

    @staticmethod
    def _unique_id_taken(candidate: str) -> bool:
        return db.session.query(Participant.id).filter_by(unique_id=candidate).first() is not None

    def register(
        self,
        first_name: str,
        last_name: str,
        gov_id: str,
        phone: str,
        email: str,
        acting_staff_id: Optional[int],
    ) -> Participant:
        """Insert the participant and its REGISTER entry, then notify.

        Notification runs after the commit and never undoes it.
        """
        try:
            with transaction_log.atomic():
                unique_id = generate_unique_participant_id(self._unique_id_taken)
                participant = Participant(
                    unique_id=unique_id,
                    first_name=first_name,
                    last_name=last_name,
                    gov_id=gov_id,
                    phone=phone,
                    email=email,
                    total_points=0,
                    active_points=0,
                    status=ParticipantStatus.ACTIVE.value,
                )
                db.session.add(participant)
                db.session.flush()

                transaction_log.record(
                    LogType.REGISTER,
                    participant_id=participant.id,
                    staff_id=acting_staff_id,
                    note=f'Registered {unique_id}',
                )
        except IntegrityError as e:
            logger.warning('Participant insert rejected by a unique constraint: %s', e.orig)
            raise ConflictError('Participant is already registered') from e

        logger.info('Registered participant %s', participant.unique_id)
        self._notify_registered(participant)
        return participant

    def _notify_registered(self, participant: Participant) -> None:
        for channel, contact in ((CHANNEL_PHONE, participant.phone), (CHANNEL_EMAIL, participant.email)):
            try:
                self.notifier.send_unique_id_notice(channel, contact, participant.unique_id, participant.first_name)
            except NotificationError as e:
                logger.warning(
                    'Unique id notice for %s to %s failed: %s',
                    participant.unique_id, mask_contact(channel, contact), e,
                )

    def _lock_for_update(self, participant_id: int) -> Participant:
        participant = lock_participant_row(participant_id)
        if participant is None:
            raise NotFoundError('Participant not found')
        return participant

    def add_points(self, participant_id: int, points: int, staff_id: Optional[int], note: Optional[str] = None) -> Participant:
        if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
            raise ValidationError('Points must be a positive integer')

        with transaction_log.atomic():
            participant = self._lock_for_update(participant_id)
            if participant.is_locked:
                raise LockedError()

            participant.total_points += points
            participant.active_points += points

            transaction_log.record(
                LogType.ADD_POINTS,
                participant_id=participant.id,
                staff_id=staff_id,
                points_change=points,
                note=note or f'Added {points} points',
            )

        logger.info('Added %s points to %s', points, participant.unique_id)
        return participant

    def lock(self, participant_id: int, staff_id: Optional[int], reason: str) -> Participant:
        with transaction_log.atomic():
            participant = self._lock_for_update(participant_id)
            if participant.is_locked:
                raise ConflictError('Participant is already locked')

            participant.status = ParticipantStatus.LOCKED.value
            transaction_log.record(
                LogType.LOCK_PARTICIPANT,
                participant_id=participant.id,
                staff_id=staff_id,
                note=reason,
            )

        logger.info('Locked participant %s', participant.unique_id)
        return participant

    def unlock(self, participant_id: int, staff_id: Optional[int], reason: Optional[str] = None) -> Participant:
        with transaction_log.atomic():
            participant = self._lock_for_update(participant_id)
            if not participant.is_locked:
                raise ConflictError('Participant is not locked')

            participant.status = ParticipantStatus.ACTIVE.value
            transaction_log.record(
                LogType.UNLOCK_PARTICIPANT,
                participant_id=participant.id,
                staff_id=staff_id,
                note=reason or 'Unlocked participant',
            )

        logger.info('Unlocked participant %s', participant.unique_id)
        return participant

    def search(self, query: str) -> list[Participant]:
        """Case-insensitive partial match on unique id, phone or email."""
        term = (query or '').strip()
        if not term:
            raise ValidationError('Search query is required')

        pattern = f'%{_escape_like(term)}%'
        return (
            Participant.query.filter(
                or_(
                    Participant.unique_id.ilike(pattern, escape='\\'),
                    Participant.phone.ilike(pattern, escape='\\'),
                    Participant.email.ilike(pattern, escape='\\'),
                )
            )
            .order_by(Participant.created_at.desc(), Participant.id.desc())
            .limit(self.search_limit)
            .all()
        )

    def get(self, participant_id: int) -> Optional[Participant]:
        return db.session.get(Participant, participant_id)

    def get_by_unique_id(self, unique_id: str) -> Optional[Participant]:
        return Participant.query.filter_by(unique_id=(unique_id or '').strip().upper()).first()

    def require_by_unique_id(self, unique_id: str) -> Participant:
        participant = self.get_by_unique_id(unique_id)
        if participant is None:
            raise NotFoundError('Participant not found')
        return participant

    def list(self, limit: int = 50, offset: int = 0) -> tuple[list[Participant], int]:
        """Newest first. Returns (page, total)."""
        q = Participant.query
        total = q.count()
        items = (
            q.order_by(Participant.created_at.desc(), Participant.id.desc())
            .offset(max(offset, 0))
            .limit(max(limit, 1))
            .all()
        )
        return items, total
