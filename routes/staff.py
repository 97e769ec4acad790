"""Staff routes - account management (super-admin only)."""

from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from models.staff import StaffStatus
from services.errors import ServiceError
from services.registry import get_services
from utils.rbac import current_staff_id, require_super_admin
from utils.responses import error_response, server_error, success_response
from utils.throttling import limit_otp_verify
from utils.validators import clean_code, clean_email, clean_int, clean_str, get_json_body

staff_bp = Blueprint('staff', __name__)


@staff_bp.route('/', methods=['GET'])
@jwt_required()
@require_super_admin
def list_staff():
    """Get all staff accounts"""
    try:
        staff = get_services().staff.list()
        return success_response(data=[s.to_dict() for s in staff])
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Fetch staff')


@staff_bp.route('/<int:staff_id>', methods=['GET'])
@jwt_required()
@require_super_admin
def get_staff(staff_id):
    try:
        staff = get_services().staff.get(staff_id)
        return success_response(data=staff.to_dict())
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Fetch staff')


@staff_bp.route('/request-verification', methods=['POST'])
@jwt_required()
@require_super_admin
def request_verification():
    """Send a 6-digit code to the future staff member's email"""
    try:
        email = clean_email(get_json_body(request))
        get_services().staff.request_verification(email)
        return success_response(message='Verification code sent', data={'email': email, 'nextStep': 'verify-email'})
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Send verification code')


@staff_bp.route('/resend-code', methods=['POST'])
@jwt_required()
@require_super_admin
def resend_code():
    try:
        email = clean_email(get_json_body(request))
        get_services().staff.request_verification(email)
        return success_response(message='Verification code resent')
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Resend code')


@staff_bp.route('/verify-email', methods=['POST'])
@limit_otp_verify
@jwt_required()
@require_super_admin
def verify_email():
    try:
        data = get_json_body(request)
        email = clean_email(data)
        get_services().staff.verify_email(email, clean_code(data))
        return success_response(message='Email verified', data={'email': email, 'nextStep': 'complete-registration'})
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Email verification')


@staff_bp.route('/complete-registration', methods=['POST'])
@jwt_required()
@require_super_admin
def complete_registration():
    """
    Create the account once the email is verified.

    Request body: firstName, lastName, email, role ('SUPER_ADMIN' | 'STAFF').
    Username and password are generated and emailed to the new staff member.
    """
    try:
        data = get_json_body(request)
        staff = get_services().staff.create_staff(
            first_name=clean_str(data, 'firstName', 100, label='First name'),
            last_name=clean_str(data, 'lastName', 100, label='Last name'),
            email=clean_email(data),
            role=clean_str(data, 'role', 20, label='Role').upper(),
            acting_staff_id=current_staff_id(),
        )
        return success_response(
            message='Staff account created. Credentials sent by email.',
            data=staff.to_dict(),
            status=201,
        )
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Create staff')


@staff_bp.route('/reset-password', methods=['POST'])
@jwt_required()
@require_super_admin
def reset_password():
    """Request body: staffId. Revokes the staff member's sessions."""
    try:
        staff_id = clean_int(get_json_body(request).get('staffId'), 'staffId', minimum=1)
        staff = get_services().staff.reset_password(staff_id, current_staff_id())
        return success_response(message='Password reset. New credentials sent by email.', data=staff.to_dict())
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Reset password')


@staff_bp.route('/<int:staff_id>/activate', methods=['POST'])
@jwt_required()
@require_super_admin
def activate_staff(staff_id):
    try:
        staff = get_services().staff.set_status(staff_id, StaffStatus.ACTIVE.value, current_staff_id())
        return success_response(message='Staff account activated', data=staff.to_dict())
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Activate staff')


@staff_bp.route('/<int:staff_id>/deactivate', methods=['POST'])
@jwt_required()
@require_super_admin
def deactivate_staff(staff_id):
    try:
        staff = get_services().staff.set_status(staff_id, StaffStatus.DISABLED.value, current_staff_id())
        return success_response(message='Staff account deactivated', data=staff.to_dict())
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Deactivate staff')
