"""
Participant routes - OTP-gated registration, lookup, points and lock state
"""
from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from services.errors import ServiceError, ValidationError
from services.registration import ParticipantInfo
from services.registry import get_services
from utils.rbac import current_staff_id, require_staff, require_super_admin
from utils.responses import error_response, server_error, success_response
from utils.throttling import limit_otp_verify
from utils.validators import (
    clean_code,
    clean_email,
    clean_int,
    clean_phone,
    clean_str,
    get_json_body,
    query_int,
)

participants_bp = Blueprint('participants', __name__)


def _participant_info(data: dict) -> ParticipantInfo:
    return ParticipantInfo(
        first_name=clean_str(data, 'firstName', 100, label='First name'),
        last_name=clean_str(data, 'lastName', 100, label='Last name'),
        gov_id=clean_str(data, 'govId', 50, label='Government ID'),
        phone=clean_phone(data),
        email=clean_email(data),
    )


def _session_id(data: dict) -> str:
    return clean_str(data, 'sessionId', 128, label='Session ID')


# Registration

@participants_bp.route('/register/start', methods=['POST'])
@jwt_required()
@require_staff
def start_registration():
    """
    Check uniqueness, open a verification session and send the phone code.

    Request body: firstName, lastName, govId, phone (9-15 digits), email
    """
    try:
        info = _participant_info(get_json_body(request))
        session_id = get_services().registration.start(info)
        return success_response(
            message='Registration started. Phone verification code sent.',
            data={
                'sessionId': session_id,
                'participant': info.to_dict(),
                'nextStep': 'verify-phone',
            },
        )
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Start registration')


@participants_bp.route('/register/verify-phone', methods=['POST'])
@limit_otp_verify
@jwt_required()
@require_staff
def verify_phone():
    try:
        data = get_json_body(request)
        session_id = _session_id(data)
        code = clean_code(data)

        session, email_sent = get_services().registration.verify_phone(session_id, code)
        message = 'Phone verified. Email verification code sent.'
        if not email_sent:
            message = 'Phone verified. Email code could not be sent, please resend it.'
        return success_response(
            message=message,
            data={
                'sessionId': session.session_id,
                'state': session.state.value,
                'emailCodeSent': email_sent,
                'nextStep': 'verify-email',
            },
        )
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Phone verification')


@participants_bp.route('/register/verify-email', methods=['POST'])
@limit_otp_verify
@jwt_required()
@require_staff
def verify_email():
    try:
        data = get_json_body(request)
        session = get_services().registration.verify_email(_session_id(data), clean_code(data))
        return success_response(
            message='Email verified successfully.',
            data={
                'sessionId': session.session_id,
                'state': session.state.value,
                'nextStep': 'complete-registration',
            },
        )
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Email verification')


@participants_bp.route('/register/resend-otp', methods=['POST'])
@jwt_required()
@require_staff
def resend_otp():
    """Request body: sessionId, type ('phone' | 'email')"""
    try:
        data = get_json_body(request)
        channel = str(data.get('type') or '').strip().lower()
        if channel not in ('phone', 'email'):
            raise ValidationError("type must be 'phone' or 'email'")

        get_services().registration.resend(_session_id(data), channel)
        return success_response(message=f'{channel.capitalize()} code resent')
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Resend code')


@participants_bp.route('/register/complete', methods=['POST'])
@jwt_required()
@require_staff
def complete_registration():
    """Request body: sessionId plus the same fields sent to /register/start"""
    try:
        data = get_json_body(request)
        session_id = _session_id(data)
        info = _participant_info(data)

        participant = get_services().registration.complete(session_id, info, current_staff_id())
        return success_response(
            message='Participant registered successfully. Unique ID sent to phone and email.',
            data=participant.to_dict(),
            status=201,
        )
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Complete registration')


# Lookup

@participants_bp.route('/', methods=['GET'])
@jwt_required()
@require_staff
def list_participants():
    try:
        limit = query_int(request.args, 'limit', 50, minimum=1, maximum=500)
        offset = query_int(request.args, 'offset', 0)
        items, total = get_services().ledger.list(limit=limit, offset=offset)
        return success_response(
            data=[p.to_dict() for p in items],
            pagination={'limit': limit, 'offset': offset, 'total': total},
        )
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Fetch participants')


@participants_bp.route('/search', methods=['GET'])
@jwt_required()
@require_staff
def search_participants():
    try:
        results = get_services().ledger.search(request.args.get('query', ''))
        return success_response(data=[p.to_dict() for p in results])
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Search')


@participants_bp.route('/<unique_id>', methods=['GET'])
@jwt_required()
@require_staff
def get_participant(unique_id):
    try:
        participant = get_services().ledger.require_by_unique_id(unique_id)
        return success_response(data=participant.to_dict())
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Fetch participant')


# Points and lock state

@participants_bp.route('/<unique_id>/add-points', methods=['POST'])
@jwt_required()
@require_staff
def add_points(unique_id):
    """Request body: points (integer >= 1), note (optional)"""
    try:
        data = get_json_body(request)
        points = clean_int(data.get('points'), 'Points', minimum=1)
        note = clean_str(data, 'note', 500, required=False, label='Note')

        services = get_services()
        participant = services.ledger.require_by_unique_id(unique_id)
        updated = services.ledger.add_points(participant.id, points, current_staff_id(), note)
        return success_response(message='Points added successfully', data=updated.to_dict())
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Add points')


@participants_bp.route('/<unique_id>/lock', methods=['POST'])
@jwt_required()
@require_super_admin
def lock_participant(unique_id):
    """Request body: reason"""
    try:
        data = get_json_body(request)
        reason = clean_str(data, 'reason', 500, label='Reason')

        services = get_services()
        participant = services.ledger.require_by_unique_id(unique_id)
        updated = services.ledger.lock(participant.id, current_staff_id(), reason)
        return success_response(message='Participant locked', data=updated.to_dict())
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Lock participant')


@participants_bp.route('/<unique_id>/unlock', methods=['POST'])
@jwt_required()
@require_super_admin
def unlock_participant(unique_id):
    try:
        data = request.get_json(silent=True) or {}
        reason = clean_str(data, 'reason', 500, required=False, label='Reason')

        services = get_services()
        participant = services.ledger.require_by_unique_id(unique_id)
        updated = services.ledger.unlock(participant.id, current_staff_id(), reason)
        return success_response(message='Participant unlocked', data=updated.to_dict())
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Unlock participant')
