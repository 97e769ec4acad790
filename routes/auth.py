"""
Authentication routes - Login, Logout, current staff
"""
from flask import Blueprint, request, jsonify
from flask_jwt_extended import (
    current_user,
    jwt_required,
    set_access_cookies,
    unset_jwt_cookies,
)

from services.errors import ServiceError
from services.registry import get_services
from utils.rbac import current_staff_id
from utils.responses import error_response, server_error
from utils.throttling import limit_login
from utils.validators import get_json_body, require_fields

auth_bp = Blueprint('auth', __name__)


@auth_bp.route('/login', methods=['POST'])
@limit_login
def login():
    """
    Login endpoint

    Request body:
    {
        "username": "string",
        "password": "string"
    }

    The token is set as an HttpOnly cookie and also returned in the body.
    """
    try:
        data = get_json_body(request)
        require_fields(data, ['username', 'password'])

        token, staff = get_services().staff.authenticate(data['username'], data['password'])

        response = jsonify({
            'success': True,
            'message': 'Login successful',
            'data': {
                'access_token': token,
                'user': staff.to_dict(),
            }
        })
        set_access_cookies(response, token)
        return response, 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Login')


@auth_bp.route('/logout', methods=['POST'])
@jwt_required()
def logout():
    """Logout endpoint - revokes every token issued to the caller so far"""
    try:
        get_services().staff.logout(current_staff_id())

        response = jsonify({
            'success': True,
            'message': 'Logout successful'
        })
        unset_jwt_cookies(response)
        return response, 200

    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Logout')


@auth_bp.route('/me', methods=['GET'])
@jwt_required()
def get_current_user():
    """Get current authenticated staff member"""
    return jsonify({
        'success': True,
        'data': current_user.to_dict()
    }), 200
