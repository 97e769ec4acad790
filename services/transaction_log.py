"""Transaction boundary and the append-only audit log.

``atomic()`` is the one place where domain transactions commit or roll back.
``record()`` refuses to run outside of it, so a log entry can only ever be
committed together with the mutation it documents.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

from extensions import db
from models.transaction_log import LogType, TransactionLogEntry
from services.errors import ValidationError

_ATOMIC_DEPTH = 'promo_atomic_depth'


@contextmanager
def atomic() -> Iterator:
    """Run the block in one transaction on the request session.

    Nested blocks join the outermost one; only the outermost commits.
    Any exception rolls everything back and propagates.
    """
    session = db.session
    depth = session.info.get(_ATOMIC_DEPTH, 0)
    session.info[_ATOMIC_DEPTH] = depth + 1
    try:
        yield session
        if depth == 0:
            session.commit()
    except BaseException:
        if depth == 0:
            session.rollback()
        raise
    finally:
        session.info[_ATOMIC_DEPTH] = depth


def in_atomic() -> bool:
    return db.session.info.get(_ATOMIC_DEPTH, 0) > 0


def record(
    type: LogType,
    *,
    participant_id: Optional[int] = None,
    staff_id: Optional[int] = None,
    points_change: Optional[int] = None,
    prize_id: Optional[int] = None,
    note: Optional[str] = None,
) -> TransactionLogEntry:
    if not in_atomic():
        raise RuntimeError('Transaction log entries must be written inside atomic()')

    entry = TransactionLogEntry(
        type=LogType(type).value,
        participant_id=participant_id,
        staff_user_id=staff_id,
        points_change=points_change,
        prize_id=prize_id,
        note=note,
    )
    db.session.add(entry)
    return entry


def query(
    *,
    type: Optional[str] = None,
    participant_id: Optional[int] = None,
    staff_id: Optional[int] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = 100,
    offset: int = 0,
) -> list[TransactionLogEntry]:
    """Newest first; ties on created_at are broken by id."""
    q = TransactionLogEntry.query

    if type:
        try:
            q = q.filter(TransactionLogEntry.type == LogType(type).value)
        except ValueError:
            raise ValidationError(f'Unknown log type: {type}')
    if participant_id:
        q = q.filter(TransactionLogEntry.participant_id == participant_id)
    if staff_id:
        q = q.filter(TransactionLogEntry.staff_user_id == staff_id)
    if start:
        q = q.filter(TransactionLogEntry.created_at >= start)
    if end:
        q = q.filter(TransactionLogEntry.created_at <= end)

    return (
        q.order_by(TransactionLogEntry.created_at.desc(), TransactionLogEntry.id.desc())
        .offset(max(offset, 0))
        .limit(max(limit, 1))
        .all()
    )
