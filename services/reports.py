"""Leaderboards and rank lookup. Read-only."""

from __future__ import annotations

from typing import Optional

from models.participant import Participant, ParticipantStatus


def _ranked_query():
    return Participant.query.filter(Participant.status == ParticipantStatus.ACTIVE.value).order_by(
        Participant.total_points.desc(),
        Participant.created_at.asc(),
        Participant.id.asc(),
    )


def _clamp(limit: int, max_limit: int) -> int:
    return max(1, min(int(limit), max_limit))


def leaderboard(limit: int = 100, offset: int = 0, max_limit: int = 1000) -> list[dict]:
    """Active participants ranked by total points, ties to the earlier registration."""
    offset = max(int(offset), 0)
    rows = _ranked_query().offset(offset).limit(_clamp(limit, max_limit)).all()
    return [
        {
            'rank': offset + i + 1,
            'uniqueId': p.unique_id,
            'firstName': p.first_name,
            'lastName': p.last_name,
            'totalPoints': p.total_points,
            'activePoints': p.active_points,
        }
        for i, p in enumerate(rows)
    ]


def public_leaderboard(limit: int = 100, max_limit: int = 1000) -> list[dict]:
    rows = _ranked_query().limit(_clamp(limit, max_limit)).all()
    return [
        {'rank': i + 1, 'uniqueId': p.unique_id, 'totalPoints': p.total_points}
        for i, p in enumerate(rows)
    ]


def public_rank(unique_id: str) -> Optional[dict]:
    participant = Participant.query.filter_by(
        unique_id=(unique_id or '').strip().upper(),
        status=ParticipantStatus.ACTIVE.value,
    ).first()
    if participant is None:
        return None

    ahead = Participant.query.filter(
        Participant.status == ParticipantStatus.ACTIVE.value,
        Participant.total_points > participant.total_points,
    ).count()
    return {
        'rank': ahead + 1,
        'uniqueId': participant.unique_id,
        'totalPoints': participant.total_points,
        'activePoints': participant.active_points,
    }
