"""Points-for-prize exchange.

One transaction, row locks taken participant first and prize second before
any check runs. Every redemption in the system takes the locks in that order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from models.participant import Participant
from models.prize import Prize
from models.transaction_log import LogType, TransactionLogEntry
from services import transaction_log
from services.errors import (
    InsufficientPointsError,
    LockedError,
    NotFoundError,
    OutOfStockError,
    PrizeInactiveError,
)
from services.participants import lock_participant_row
from services.prizes import lock_prize_row

logger = logging.getLogger(__name__)


@dataclass
class RedemptionResult:
    participant: Participant
    prize: Prize
    points_spent: int
    log_entry: TransactionLogEntry

    def to_dict(self) -> dict:
        return {
            'participant': self.participant.to_dict(),
            'prize': self.prize.to_dict(),
            'pointsSpent': self.points_spent,
            'logId': self.log_entry.id,
        }


class PrizeRedemptionEngine:
    def redeem(self, participant_id: int, prize_id: int, staff_id: Optional[int]) -> RedemptionResult:
        with transaction_log.atomic():
            participant = lock_participant_row(participant_id)
            if participant is None:
                raise NotFoundError('Participant not found')
            if participant.is_locked:
                raise LockedError()

            prize = lock_prize_row(prize_id)
            if prize is None:
                raise NotFoundError('Prize not found')
            if not prize.is_active:
                raise PrizeInactiveError()

            if participant.active_points < prize.cost_points:
                raise InsufficientPointsError()
            if not prize.in_stock:
                raise OutOfStockError()

            cost = prize.cost_points
            participant.active_points -= cost
            if prize.stock_qty is not None:
                prize.stock_qty -= 1

            entry = transaction_log.record(
                LogType.REDEEM,
                participant_id=participant.id,
                staff_id=staff_id,
                points_change=-cost,
                prize_id=prize.id,
                note=f'Redeemed: {prize.name}',
            )

        logger.info('Participant %s redeemed prize %s for %s points', participant.unique_id, prize.id, cost)
        return RedemptionResult(participant=participant, prize=prize, points_spent=cost, log_entry=entry)
