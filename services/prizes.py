"""Prize catalogue administration."""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from extensions import db
from models.prize import Prize, PrizeStatus
from models.transaction_log import TransactionLogEntry
from services import transaction_log
from services.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

_SCHEME_RE = re.compile(r'^https?://', re.IGNORECASE)

_UPDATABLE = ('name', 'description', 'image_url', 'cost_points', 'stock_qty', 'status')


def lock_prize_row(prize_id: int) -> Optional[Prize]:
    return (
        Prize.query.filter_by(id=prize_id)
        .populate_existing()
        .with_for_update()
        .first()
    )


def normalize_image_url(value: Optional[str]) -> Optional[str]:
    if value is not None and not isinstance(value, str):
        raise ValidationError('Image URL must be a string')
    url = (value or '').strip()
    if not url:
        return None
    if len(url) > 500:
        raise ValidationError('Image URL is too long')
    if not _SCHEME_RE.match(url):
        url = f'https://{url}'
    return url


def _check_fields(fields: dict[str, Any]) -> None:
    if 'name' in fields:
        name = fields['name']
        if not isinstance(name, str) or not name.strip() or len(name.strip()) > 255:
            raise ValidationError('Prize name is required (max 255 characters)')
        fields['name'] = name.strip()
    if 'description' in fields and fields['description'] is not None:
        if not isinstance(fields['description'], str):
            raise ValidationError('Description must be a string')
        if len(fields['description']) > 1000:
            raise ValidationError('Description is too long')
    if 'cost_points' in fields:
        cost = fields['cost_points']
        if isinstance(cost, bool) or not isinstance(cost, int) or cost < 1:
            raise ValidationError('Cost points must be an integer of at least 1')
    if 'stock_qty' in fields and fields['stock_qty'] is not None:
        stock = fields['stock_qty']
        if isinstance(stock, bool) or not isinstance(stock, int) or stock < 0:
            raise ValidationError('Stock quantity must be a non-negative integer or null')
    if 'status' in fields:
        try:
            fields['status'] = PrizeStatus(fields['status']).value
        except (ValueError, TypeError):
            raise ValidationError('Status must be ACTIVE or INACTIVE')
    if 'image_url' in fields:
        fields['image_url'] = normalize_image_url(fields['image_url'])


class PrizeCatalogue:
    def list_all(self) -> list[Prize]:
        return Prize.query.order_by(Prize.created_at.desc(), Prize.id.desc()).all()

    def list_active(self) -> list[Prize]:
        """Redeemable right now, cheapest first."""
        return (
            Prize.query.filter(
                Prize.status == PrizeStatus.ACTIVE.value,
                db.or_(Prize.stock_qty.is_(None), Prize.stock_qty > 0),
            )
            .order_by(Prize.cost_points.asc(), Prize.id.asc())
            .all()
        )

    def get(self, prize_id: int) -> Optional[Prize]:
        return db.session.get(Prize, prize_id)

    def require(self, prize_id: int) -> Prize:
        prize = self.get(prize_id)
        if prize is None:
            raise NotFoundError('Prize not found')
        return prize

    def create(
        self,
        name: str,
        cost_points: int,
        description: Optional[str] = None,
        image_url: Optional[str] = None,
        stock_qty: Optional[int] = None,
    ) -> Prize:
        fields = {
            'name': name,
            'cost_points': cost_points,
            'description': description,
            'image_url': image_url,
            'stock_qty': stock_qty,
        }
        _check_fields(fields)

        with transaction_log.atomic():
            prize = Prize(status=PrizeStatus.ACTIVE.value, **fields)
            db.session.add(prize)

        logger.info('Created prize %s (%s points)', prize.id, prize.cost_points)
        return prize

    def update(self, prize_id: int, **changes: Any) -> Prize:
        unknown = set(changes) - set(_UPDATABLE)
        if unknown:
            raise ValidationError(f'Unknown prize fields: {", ".join(sorted(unknown))}')
        _check_fields(changes)

        with transaction_log.atomic():
            prize = lock_prize_row(prize_id)
            if prize is None:
                raise NotFoundError('Prize not found')
            for key, value in changes.items():
                setattr(prize, key, value)

        logger.info('Updated prize %s: %s', prize_id, ', '.join(sorted(changes)) or 'no changes')
        return prize

    def delete(self, prize_id: int) -> str:
        """Delete a prize that was never redeemed; otherwise deactivate it.

        Returns ``'deleted'`` or ``'inactivated'``.
        """
        with transaction_log.atomic():
            prize = lock_prize_row(prize_id)
            if prize is None:
                raise NotFoundError('Prize not found')

            referenced = (
                db.session.query(TransactionLogEntry.id)
                .filter(TransactionLogEntry.prize_id == prize_id)
                .first()
                is not None
            )
            if referenced:
                prize.status = PrizeStatus.INACTIVE.value
                outcome = 'inactivated'
            else:
                db.session.delete(prize)
                outcome = 'deleted'

        logger.info('Prize %s %s', prize_id, outcome)
        return outcome
