"""
Shared pytest fixtures

Every test gets a fresh in-memory SQLite database, an in-memory cache store
and an outbox notifier, with one SUPER_ADMIN and one STAFF account seeded.
"""

import pytest

from app import create_app
from config.settings import TestingConfig
from extensions import db, limiter
from models.participant import Participant
from models.prize import Prize
from models.staff import StaffRole, StaffUser
from services.cache_store import MemoryCacheStore
from services.notifications import OutboxNotifier
from services.registry import get_services
from services.tokens import issue_token

ADMIN_PASSWORD = 'AdminPass123!'
STAFF_PASSWORD = 'StaffPass123!'
OTP_CODE = TestingConfig.OTP_FIXED_CODE


@pytest.fixture
def outbox():
    return OutboxNotifier()


@pytest.fixture
def cache():
    return MemoryCacheStore()


@pytest.fixture
def app(cache, outbox):
    """Flask app with tables created and two staff accounts seeded"""
    flask_app = create_app(TestingConfig, cache=cache, notifier=outbox)

    with flask_app.app_context():
        db.create_all()
        limiter.reset()
        db.session.add(StaffUser(
            username='admin',
            first_name='Super',
            last_name='Admin',
            email='admin@promo.test',
            password=ADMIN_PASSWORD,
            role=StaffRole.SUPER_ADMIN.value,
        ))
        db.session.add(StaffUser(
            username='staff1',
            first_name='Nino',
            last_name='Beridze',
            email='staff1@promo.test',
            password=STAFF_PASSWORD,
            role=StaffRole.STAFF.value,
        ))
        db.session.commit()

        yield flask_app

        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create a test client for the Flask application"""
    return app.test_client()


@pytest.fixture
def services(app):
    return get_services()


@pytest.fixture
def admin_user(app):
    return StaffUser.query.filter_by(username='admin').one()


@pytest.fixture
def staff_user(app):
    return StaffUser.query.filter_by(username='staff1').one()


@pytest.fixture
def admin_headers(admin_user):
    token = issue_token(admin_user.id, admin_user.username, admin_user.role)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def staff_headers(staff_user):
    token = issue_token(staff_user.id, staff_user.username, staff_user.role)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def make_participant(app):
    """Insert a participant row directly, bypassing registration"""
    counter = {'n': 0}

    def _make(active_points=0, total_points=None, status='ACTIVE', **overrides):
        counter['n'] += 1
        n = counter['n']
        participant = Participant(
            unique_id=overrides.pop('unique_id', f'KK-TST{n:03d}'),
            first_name=overrides.pop('first_name', 'Test'),
            last_name=overrides.pop('last_name', f'Participant{n}'),
            gov_id=overrides.pop('gov_id', f'0100{n:07d}'),
            phone=overrides.pop('phone', f'99555500{n:04d}'),
            email=overrides.pop('email', f'participant{n}@promo.test'),
            active_points=active_points,
            total_points=active_points if total_points is None else total_points,
            status=status,
            **overrides,
        )
        db.session.add(participant)
        db.session.commit()
        return participant

    return _make


@pytest.fixture
def make_prize(app):
    def _make(cost_points=100, stock_qty=None, status='ACTIVE', name='Coffee Mug', **overrides):
        prize = Prize(name=name, cost_points=cost_points, stock_qty=stock_qty, status=status, **overrides)
        db.session.add(prize)
        db.session.commit()
        return prize

    return _make
