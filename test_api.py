"""
Backend API Tests using pytest

Run with: pytest test_api.py -v

Each test runs against a fresh in-memory SQLite database with the outbox
notifier, so one-time codes are read back from the outbox instead of SMS or
email.
"""

import json
import time

import pytest
from sqlalchemy.exc import OperationalError

from conftest import ADMIN_PASSWORD, OTP_CODE, STAFF_PASSWORD
from models.transaction_log import LogType, TransactionLogEntry


def _json(response):
    return json.loads(response.data)


REGISTRATION = {
    'firstName': 'Giorgi',
    'lastName': 'Kapanadze',
    'govId': '01001001001',
    'phone': '995555123456',
    'email': 'giorgi@promo.test',
}


class TestAuthRoutes:
    """Test authentication endpoints"""

    def test_login_success(self, client):
        """Test successful login"""
        response = client.post('/api/auth/login', json={
            'username': 'admin',
            'password': ADMIN_PASSWORD
        })

        assert response.status_code == 200
        data = _json(response)
        assert data['success'] is True
        assert 'access_token' in data['data']
        assert data['data']['user']['role'] == 'SUPER_ADMIN'
        assert 'password_hash' not in data['data']['user']
        assert 'access_token_cookie' in response.headers.get('Set-Cookie', '')

    def test_login_invalid_credentials(self, client):
        """Test login with invalid credentials"""
        response = client.post('/api/auth/login', json={
            'username': 'admin',
            'password': 'wrong'
        })

        assert response.status_code == 401
        data = _json(response)
        assert data['success'] is False
        assert data['error'] == 'Invalid username or password'

    def test_login_missing_fields(self, client):
        """Test login with missing fields"""
        response = client.post('/api/auth/login', json={'username': 'admin'})

        assert response.status_code == 400
        assert _json(response)['success'] is False

    def test_cookie_session(self, client):
        """Login cookie alone authenticates later requests"""
        client.post('/api/auth/login', json={'username': 'staff1', 'password': STAFF_PASSWORD})

        response = client.get('/api/auth/me')
        assert response.status_code == 200
        assert _json(response)['data']['username'] == 'staff1'

    def test_me_requires_token(self, client):
        response = client.get('/api/auth/me')

        assert response.status_code == 401
        data = _json(response)
        assert data['success'] is False
        assert 'error' in data

    def test_invalid_token(self, client):
        response = client.get('/api/auth/me', headers={'Authorization': 'Bearer not-a-token'})
        assert response.status_code == 401

    def test_logout_revokes_token(self, client):
        login = client.post('/api/auth/login', json={'username': 'staff1', 'password': STAFF_PASSWORD})
        headers = {'Authorization': f"Bearer {_json(login)['data']['access_token']}"}
        time.sleep(0.01)

        response = client.post('/api/auth/logout', headers=headers)
        assert response.status_code == 200

        response = client.get('/api/auth/me', headers=headers)
        assert response.status_code == 401
        assert 'revoked' in _json(response)['error']


class TestAuthorization:

    def test_staff_cannot_reach_super_admin_routes(self, client, staff_headers):
        for method, path in [
            ('get', '/api/staff/'),
            ('post', '/api/prizes/'),
            ('get', '/api/admin/logs'),
            ('post', '/api/staff/reset-password'),
        ]:
            response = getattr(client, method)(path, headers=staff_headers, json={})
            assert response.status_code == 403, path
            assert _json(response) == {'success': False, 'error': 'Insufficient permissions'}

    def test_disabled_staff_token_is_rejected(self, client, services, staff_user, admin_user, staff_headers):
        services.staff.set_status(staff_user.id, 'DISABLED', admin_user.id)

        response = client.get('/api/prizes/', headers=staff_headers)
        assert response.status_code == 401


class TestRegistrationFlow:

    def _start(self, client, headers, payload=REGISTRATION):
        response = client.post('/api/participants/register/start', headers=headers, json=payload)
        assert response.status_code == 200, response.data
        return _json(response)['data']['sessionId']

    def test_full_registration(self, client, staff_headers, outbox, staff_user):
        session_id = self._start(client, staff_headers)
        assert outbox.last('otp', REGISTRATION['phone'])['code'] == OTP_CODE

        response = client.post('/api/participants/register/verify-phone', headers=staff_headers, json={
            'sessionId': session_id, 'code': OTP_CODE,
        })
        assert response.status_code == 200
        data = _json(response)['data']
        assert data['emailCodeSent'] is True
        assert data['state'] == 'EMAIL_OTP_SENT'
        assert outbox.last('otp', REGISTRATION['email'])['code'] == OTP_CODE

        response = client.post('/api/participants/register/verify-email', headers=staff_headers, json={
            'sessionId': session_id, 'code': OTP_CODE,
        })
        assert response.status_code == 200
        assert _json(response)['data']['state'] == 'EMAIL_VERIFIED'

        response = client.post('/api/participants/register/complete', headers=staff_headers, json={
            'sessionId': session_id, **REGISTRATION,
        })
        assert response.status_code == 201
        participant = _json(response)['data']
        assert participant['uniqueId'].startswith('KK-')
        assert participant['activePoints'] == 0

        entry = TransactionLogEntry.query.filter_by(type=LogType.REGISTER.value).one()
        assert entry.staff_user_id == staff_user.id
        assert outbox.last('unique_id', REGISTRATION['email'])['unique_id'] == participant['uniqueId']

        # The same session cannot register twice
        response = client.post('/api/participants/register/complete', headers=staff_headers, json={
            'sessionId': session_id, **REGISTRATION,
        })
        assert response.status_code == 409

    def test_complete_before_verification(self, client, staff_headers):
        session_id = self._start(client, staff_headers)

        response = client.post('/api/participants/register/complete', headers=staff_headers, json={
            'sessionId': session_id, **REGISTRATION,
        })
        assert response.status_code == 400
        assert _json(response)['success'] is False

    def test_wrong_code_then_lockout(self, client, staff_headers):
        session_id = self._start(client, staff_headers)

        for _ in range(3):
            response = client.post('/api/participants/register/verify-phone', headers=staff_headers, json={
                'sessionId': session_id, 'code': '000000',
            })
            assert response.status_code == 400

        response = client.post('/api/participants/register/verify-phone', headers=staff_headers, json={
            'sessionId': session_id, 'code': OTP_CODE,
        })
        assert response.status_code == 429

    def test_email_step_out_of_order(self, client, staff_headers):
        session_id = self._start(client, staff_headers)

        response = client.post('/api/participants/register/verify-email', headers=staff_headers, json={
            'sessionId': session_id, 'code': OTP_CODE,
        })
        assert response.status_code == 400

    def test_unknown_session(self, client, staff_headers):
        response = client.post('/api/participants/register/verify-phone', headers=staff_headers, json={
            'sessionId': 'missing', 'code': OTP_CODE,
        })
        assert response.status_code == 404

    def test_resend(self, client, staff_headers, outbox):
        session_id = self._start(client, staff_headers)

        response = client.post('/api/participants/register/resend-otp', headers=staff_headers, json={
            'sessionId': session_id, 'type': 'phone',
        })
        assert response.status_code == 200
        assert len([m for m in outbox.messages if m['kind'] == 'otp']) == 2

        response = client.post('/api/participants/register/resend-otp', headers=staff_headers, json={
            'sessionId': session_id, 'type': 'fax',
        })
        assert response.status_code == 400

    def test_duplicate_phone_is_rejected_at_start(self, client, staff_headers, make_participant):
        make_participant(phone=REGISTRATION['phone'])

        response = client.post('/api/participants/register/start', headers=staff_headers, json=REGISTRATION)
        assert response.status_code == 409
        assert _json(response)['error'] == 'Phone number already registered'

    @pytest.mark.parametrize('field,value', [
        ('phone', '12-34'),
        ('email', 'not-an-email'),
        ('firstName', ''),
    ])
    def test_start_validation(self, client, staff_headers, field, value):
        response = client.post('/api/participants/register/start', headers=staff_headers, json={
            **REGISTRATION, field: value,
        })
        assert response.status_code == 400


class TestParticipantRoutes:

    def test_add_points(self, client, staff_headers, make_participant):
        participant = make_participant(active_points=10)

        response = client.post(f'/api/participants/{participant.unique_id}/add-points', headers=staff_headers, json={
            'points': 15, 'note': 'Receipt 42',
        })
        assert response.status_code == 200
        data = _json(response)['data']
        assert data['activePoints'] == 25
        assert data['totalPoints'] == 25

    @pytest.mark.parametrize('points', [0, -1, 'ten', 1.5])
    def test_add_points_validation(self, client, staff_headers, make_participant, points):
        participant = make_participant()
        response = client.post(f'/api/participants/{participant.unique_id}/add-points', headers=staff_headers, json={
            'points': points,
        })
        assert response.status_code == 400

    def test_add_points_storage_failure_is_503(self, client, staff_headers, services, make_participant, monkeypatch):
        participant = make_participant(active_points=10)

        def unavailable(*args, **kwargs):
            raise OperationalError('UPDATE participants', {}, Exception('connection refused'))

        monkeypatch.setattr(services.ledger, 'add_points', unavailable)

        response = client.post(f'/api/participants/{participant.unique_id}/add-points', headers=staff_headers, json={
            'points': 5,
        })
        assert response.status_code == 503
        assert _json(response) == {'success': False, 'error': 'Service temporarily unavailable'}

    def test_lock_blocks_points(self, client, admin_headers, staff_headers, make_participant):
        participant = make_participant(active_points=10)
        url = f'/api/participants/{participant.unique_id}'

        response = client.post(f'{url}/lock', headers=staff_headers, json={'reason': 'fraud'})
        assert response.status_code == 403

        response = client.post(f'{url}/lock', headers=admin_headers, json={'reason': 'fraud'})
        assert response.status_code == 200
        assert _json(response)['data']['status'] == 'LOCKED'

        response = client.post(f'{url}/add-points', headers=staff_headers, json={'points': 5})
        assert response.status_code == 400
        assert _json(response)['error'] == 'Participant is locked'

        response = client.post(f'{url}/unlock', headers=admin_headers)
        assert response.status_code == 200
        assert _json(response)['data']['status'] == 'ACTIVE'

    def test_search_and_lookup(self, client, staff_headers, make_participant):
        participant = make_participant(email='lookup@promo.test')

        response = client.get('/api/participants/search?query=LOOKUP', headers=staff_headers)
        assert response.status_code == 200
        assert [p['uniqueId'] for p in _json(response)['data']] == [participant.unique_id]

        response = client.get('/api/participants/search?query=', headers=staff_headers)
        assert response.status_code == 400

        response = client.get(f'/api/participants/{participant.unique_id.lower()}', headers=staff_headers)
        assert response.status_code == 200

        response = client.get('/api/participants/KK-ZZZZZZ', headers=staff_headers)
        assert response.status_code == 404

    def test_list_with_pagination(self, client, staff_headers, make_participant):
        for _ in range(3):
            make_participant()

        response = client.get('/api/participants/?limit=2', headers=staff_headers)
        data = _json(response)
        assert len(data['data']) == 2
        assert data['pagination']['total'] == 3


class TestPrizeRoutes:

    def test_prize_crud(self, client, admin_headers, staff_headers):
        response = client.post('/api/prizes/', headers=admin_headers, json={
            'name': 'Water Bottle', 'costPoints': 80, 'stockQty': 3, 'imageUrl': 'cdn.promo.test/bottle.png',
        })
        assert response.status_code == 201
        prize = _json(response)['data']
        assert prize['imageUrl'] == 'https://cdn.promo.test/bottle.png'

        response = client.put(f"/api/prizes/{prize['id']}", headers=admin_headers, json={'costPoints': 90})
        assert response.status_code == 200
        assert _json(response)['data']['costPoints'] == 90

        response = client.get('/api/prizes/active', headers=staff_headers)
        assert [p['id'] for p in _json(response)['data']] == [prize['id']]

        response = client.delete(f"/api/prizes/{prize['id']}", headers=admin_headers)
        assert response.status_code == 200
        assert _json(response)['data']['outcome'] == 'deleted'

        response = client.get(f"/api/prizes/{prize['id']}", headers=staff_headers)
        assert response.status_code == 404

    def test_create_requires_name_and_cost(self, client, admin_headers):
        response = client.post('/api/prizes/', headers=admin_headers, json={'name': 'Pen'})
        assert response.status_code == 400

    @pytest.mark.parametrize('body', [
        {'name': 123, 'costPoints': 10},
        {'name': 'Pen', 'costPoints': 10, 'description': 5},
        {'name': 'Pen', 'costPoints': 10, 'imageUrl': 7},
    ])
    def test_create_rejects_wrongly_typed_fields(self, client, admin_headers, body):
        response = client.post('/api/prizes/', headers=admin_headers, json=body)
        assert response.status_code == 400
        assert _json(response)['success'] is False

    def test_redeem(self, client, staff_headers, make_participant, make_prize):
        participant = make_participant(active_points=100)
        prize = make_prize(cost_points=100, stock_qty=1)

        response = client.post('/api/prizes/redeem', headers=staff_headers, json={
            'uniqueId': participant.unique_id, 'prizeId': prize.id,
        })
        assert response.status_code == 200
        data = _json(response)['data']
        assert data['pointsSpent'] == 100
        assert data['participant']['activePoints'] == 0
        assert data['prize']['stockQty'] == 0

        response = client.post('/api/prizes/redeem', headers=staff_headers, json={
            'uniqueId': participant.unique_id, 'prizeId': prize.id,
        })
        assert response.status_code == 400
        assert _json(response)['error'] == 'Insufficient active points'

    def test_delete_redeemed_prize_inactivates(self, client, admin_headers, make_participant, make_prize, services):
        participant = make_participant(active_points=100)
        prize = make_prize(cost_points=50)
        services.redemption.redeem(participant.id, prize.id, None)

        response = client.delete(f'/api/prizes/{prize.id}', headers=admin_headers)
        assert _json(response)['data']['outcome'] == 'inactivated'


class TestStaffRoutes:

    def test_create_staff_flow(self, client, admin_headers, outbox):
        email = 'levan@promo.test'

        response = client.post('/api/staff/complete-registration', headers=admin_headers, json={
            'firstName': 'Levan', 'lastName': 'Abashidze', 'email': email, 'role': 'STAFF',
        })
        assert response.status_code == 400

        response = client.post('/api/staff/request-verification', headers=admin_headers, json={'email': email})
        assert response.status_code == 200

        response = client.post('/api/staff/verify-email', headers=admin_headers, json={
            'email': email, 'code': OTP_CODE,
        })
        assert response.status_code == 200

        response = client.post('/api/staff/complete-registration', headers=admin_headers, json={
            'firstName': 'Levan', 'lastName': 'Abashidze', 'email': email, 'role': 'staff',
        })
        assert response.status_code == 201
        created = _json(response)['data']
        assert created['username'].startswith('levan.abashidze')

        credentials = outbox.last('credentials', email)
        response = client.post('/api/auth/login', json={
            'username': credentials['username'], 'password': credentials['password'],
        })
        assert response.status_code == 200

    def test_reset_password_revokes_session(self, client, admin_headers, staff_headers, staff_user):
        time.sleep(0.01)
        response = client.post('/api/staff/reset-password', headers=admin_headers, json={'staffId': staff_user.id})
        assert response.status_code == 200

        response = client.get('/api/auth/me', headers=staff_headers)
        assert response.status_code == 401

    def test_deactivate_self_is_forbidden(self, client, admin_headers, admin_user):
        response = client.post(f'/api/staff/{admin_user.id}/deactivate', headers=admin_headers)
        assert response.status_code == 403

    def test_deactivate_blocks_login(self, client, admin_headers, staff_user):
        response = client.post(f'/api/staff/{staff_user.id}/deactivate', headers=admin_headers)
        assert response.status_code == 200
        assert _json(response)['data']['status'] == 'DISABLED'

        response = client.post('/api/auth/login', json={'username': 'staff1', 'password': STAFF_PASSWORD})
        assert response.status_code == 403


class TestReportRoutes:

    def test_leaderboard(self, client, staff_headers, make_participant):
        low = make_participant(total_points=10)
        high = make_participant(total_points=90)
        make_participant(total_points=500, status='LOCKED')

        response = client.get('/api/admin/leaderboard', headers=staff_headers)
        rows = _json(response)['data']
        assert [r['uniqueId'] for r in rows] == [high.unique_id, low.unique_id]
        assert [r['rank'] for r in rows] == [1, 2]

    def test_public_endpoints_hide_personal_data(self, client, make_participant):
        participant = make_participant(total_points=40)

        response = client.get('/api/public/leaderboard')
        assert response.status_code == 200
        row = _json(response)['data'][0]
        assert set(row) == {'rank', 'uniqueId', 'totalPoints'}

        response = client.get(f'/api/public/search/{participant.unique_id}')
        assert _json(response)['data']['rank'] == 1

        response = client.get('/api/public/search/KK-ZZZZZZ')
        assert response.status_code == 404

    def test_logs(self, client, admin_headers, staff_headers, make_participant, staff_user):
        participant = make_participant()
        client.post(f'/api/participants/{participant.unique_id}/add-points', headers=staff_headers, json={'points': 7})

        response = client.get('/api/admin/logs?type=add_points', headers=admin_headers)
        assert response.status_code == 200
        entries = _json(response)['data']
        assert len(entries) == 1
        assert entries[0]['pointsChange'] == 7
        assert entries[0]['staffUserId'] == staff_user.id

        response = client.get('/api/admin/logs?startDate=yesterday', headers=admin_headers)
        assert response.status_code == 400


class TestHealthCheck:
    """Test health check endpoint"""

    def test_health_check(self, client):
        """Test health check endpoint"""
        response = client.get('/api/health')

        assert response.status_code == 200
        data = _json(response)
        assert data['success'] is True
        assert data['checks'] == {'database': True, 'cache': True}

    def test_correlation_id_header(self, client):
        response = client.get('/api/health', headers={'X-Correlation-Id': 'abc-123'})
        assert response.headers['X-Correlation-Id'] == 'abc-123'

    def test_unknown_route_returns_json(self, client):
        response = client.get('/api/does-not-exist')
        assert response.status_code == 404
        assert _json(response)['success'] is False


class TestRateLimiting:
    """Per-client throttling on login and code verification"""

    def test_failed_logins_are_throttled(self, client):
        for _ in range(5):
            response = client.post('/api/auth/login', json={'username': 'admin', 'password': 'wrong'})
            assert response.status_code == 401

        response = client.post('/api/auth/login', json={'username': 'admin', 'password': ADMIN_PASSWORD})
        assert response.status_code == 429
        data = _json(response)
        assert data['success'] is False
        assert 'Too many login attempts' in data['error']

    def test_successful_logins_do_not_count(self, client):
        for _ in range(4):
            response = client.post('/api/auth/login', json={'username': 'admin', 'password': 'wrong'})
            assert response.status_code == 401

        for _ in range(5):
            response = client.post('/api/auth/login', json={'username': 'admin', 'password': ADMIN_PASSWORD})
            assert response.status_code == 200

        response = client.post('/api/auth/login', json={'username': 'admin', 'password': 'wrong'})
        assert response.status_code == 401

    def test_verify_endpoints_share_one_budget(self, client, staff_headers, admin_headers):
        for url in ['/api/participants/register/verify-phone'] * 5 + ['/api/participants/register/verify-email'] * 5:
            response = client.post(url, headers=staff_headers, json={'sessionId': 'missing', 'code': OTP_CODE})
            assert response.status_code != 429

        response = client.post('/api/staff/verify-email', headers=admin_headers, json={
            'sessionId': 'missing', 'code': OTP_CODE,
        })
        assert response.status_code == 429
        assert 'Too many verification attempts' in _json(response)['error']

    def test_limits_follow_config(self, app, client, staff_headers):
        app.config['OTP_VERIFY_RATE_LIMIT'] = '2 per minute'

        for _ in range(2):
            response = client.post('/api/participants/register/verify-phone', headers=staff_headers, json={
                'sessionId': 'missing', 'code': OTP_CODE,
            })
            assert response.status_code == 404

        response = client.post('/api/participants/register/verify-phone', headers=staff_headers, json={
            'sessionId': 'missing', 'code': OTP_CODE,
        })
        assert response.status_code == 429
