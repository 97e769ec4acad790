"""
Prize catalogue and redemption tests

Run with: pytest test_redemption.py -v
"""

import pytest

from extensions import db
from models.participant import Participant
from models.prize import Prize
from models.transaction_log import LogType, TransactionLogEntry
from services.errors import (
    InsufficientPointsError,
    LockedError,
    NotFoundError,
    OutOfStockError,
    PrizeInactiveError,
    ValidationError,
)


def _reload(model, pk):
    db.session.expire_all()
    return db.session.get(model, pk)


class TestRedeem:

    def test_redeem_exact_balance_last_item(self, services, make_participant, make_prize, staff_user):
        participant = make_participant(active_points=100, total_points=100)
        prize = make_prize(cost_points=100, stock_qty=1)

        result = services.redemption.redeem(participant.id, prize.id, staff_user.id)

        assert result.points_spent == 100
        assert _reload(Participant, participant.id).active_points == 0
        assert _reload(Participant, participant.id).total_points == 100
        assert _reload(Prize, prize.id).stock_qty == 0

        entries = TransactionLogEntry.query.filter_by(type=LogType.REDEEM.value).all()
        assert len(entries) == 1
        assert entries[0].points_change == -100
        assert entries[0].prize_id == prize.id
        assert entries[0].participant_id == participant.id
        assert entries[0].note == 'Redeemed: Coffee Mug'
        assert result.to_dict()['logId'] == entries[0].id

    def test_second_redeem_fails_without_side_effects(self, services, make_participant, make_prize):
        participant = make_participant(active_points=100)
        prize = make_prize(cost_points=100, stock_qty=1)

        services.redemption.redeem(participant.id, prize.id, None)
        with pytest.raises((InsufficientPointsError, OutOfStockError)):
            services.redemption.redeem(participant.id, prize.id, None)

        assert _reload(Participant, participant.id).active_points == 0
        assert _reload(Prize, prize.id).stock_qty == 0
        assert TransactionLogEntry.query.filter_by(type=LogType.REDEEM.value).count() == 1

    def test_out_of_stock(self, services, make_participant, make_prize):
        participant = make_participant(active_points=500)
        prize = make_prize(cost_points=100, stock_qty=0)

        with pytest.raises(OutOfStockError):
            services.redemption.redeem(participant.id, prize.id, None)
        assert _reload(Participant, participant.id).active_points == 500

    def test_insufficient_points(self, services, make_participant, make_prize):
        participant = make_participant(active_points=99)
        prize = make_prize(cost_points=100, stock_qty=5)

        with pytest.raises(InsufficientPointsError):
            services.redemption.redeem(participant.id, prize.id, None)
        assert _reload(Prize, prize.id).stock_qty == 5
        assert TransactionLogEntry.query.count() == 0

    def test_insufficient_points_checked_before_stock(self, services, make_participant, make_prize):
        participant = make_participant(active_points=10)
        prize = make_prize(cost_points=100, stock_qty=0)

        with pytest.raises(InsufficientPointsError):
            services.redemption.redeem(participant.id, prize.id, None)

    def test_locked_participant(self, services, make_participant, make_prize):
        participant = make_participant(active_points=500, status='LOCKED')
        prize = make_prize(status='INACTIVE')

        with pytest.raises(LockedError):
            services.redemption.redeem(participant.id, prize.id, None)

    def test_inactive_prize(self, services, make_participant, make_prize):
        participant = make_participant(active_points=500)
        prize = make_prize(status='INACTIVE')

        with pytest.raises(PrizeInactiveError):
            services.redemption.redeem(participant.id, prize.id, None)

    def test_missing_rows(self, services, make_participant, make_prize):
        participant = make_participant(active_points=500)
        prize = make_prize()

        with pytest.raises(NotFoundError, match='Participant'):
            services.redemption.redeem(9999, prize.id, None)
        with pytest.raises(NotFoundError, match='Prize'):
            services.redemption.redeem(participant.id, 9999, None)

    def test_unlimited_stock_is_never_decremented(self, services, make_participant, make_prize):
        participant = make_participant(active_points=300)
        prize = make_prize(cost_points=100, stock_qty=None)

        for _ in range(3):
            services.redemption.redeem(participant.id, prize.id, None)

        assert _reload(Prize, prize.id).stock_qty is None
        assert _reload(Participant, participant.id).active_points == 0


class TestCatalogue:

    def test_create_and_update(self, services):
        prize = services.prizes.create('  Tote Bag ', 150, image_url='cdn.promo.test/tote.png', stock_qty=10)
        assert prize.name == 'Tote Bag'
        assert prize.status == 'ACTIVE'
        assert prize.image_url == 'https://cdn.promo.test/tote.png'

        services.prizes.update(prize.id, cost_points=175, status='INACTIVE')
        prize = _reload(Prize, prize.id)
        assert prize.cost_points == 175
        assert prize.status == 'INACTIVE'

    @pytest.mark.parametrize('changes', [
        {'cost_points': 0},
        {'stock_qty': -1},
        {'status': 'ARCHIVED'},
        {'name': '  '},
        {'color': 'red'},
        {'name': 123},
        {'description': 5},
        {'image_url': 7},
        {'status': ['ACTIVE']},
    ])
    def test_update_validation(self, services, make_prize, changes):
        prize = make_prize()
        with pytest.raises(ValidationError):
            services.prizes.update(prize.id, **changes)

    def test_list_active_filters_and_orders(self, services, make_prize):
        expensive = make_prize(cost_points=500, name='Headphones')
        cheap = make_prize(cost_points=50, name='Sticker', stock_qty=3)
        make_prize(cost_points=10, name='Sold Out', stock_qty=0)
        make_prize(cost_points=20, name='Retired', status='INACTIVE')

        assert [p.id for p in services.prizes.list_active()] == [cheap.id, expensive.id]
        assert len(services.prizes.list_all()) == 4

    def test_delete_unreferenced_prize(self, services, make_prize):
        prize = make_prize()
        assert services.prizes.delete(prize.id) == 'deleted'
        assert _reload(Prize, prize.id) is None

    def test_delete_redeemed_prize_inactivates(self, services, make_participant, make_prize):
        participant = make_participant(active_points=100)
        prize = make_prize(cost_points=100)
        services.redemption.redeem(participant.id, prize.id, None)

        assert services.prizes.delete(prize.id) == 'inactivated'
        assert _reload(Prize, prize.id).status == 'INACTIVE'

    def test_delete_missing_prize(self, services):
        with pytest.raises(NotFoundError):
            services.prizes.delete(9999)
