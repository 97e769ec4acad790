"""
Prize routes - catalogue management and redemption
"""
from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from services.errors import ServiceError, ValidationError
from services.registry import get_services
from utils.rbac import current_staff_id, require_staff, require_super_admin
from utils.responses import error_response, server_error, success_response
from utils.validators import clean_int, clean_str, get_json_body

prizes_bp = Blueprint('prizes', __name__)

# JSON key -> model field
_FIELDS = {
    'name': 'name',
    'description': 'description',
    'imageUrl': 'image_url',
    'costPoints': 'cost_points',
    'stockQty': 'stock_qty',
    'status': 'status',
}


def _prize_fields(data: dict) -> dict:
    return {_FIELDS[key]: data[key] for key in _FIELDS if key in data}


@prizes_bp.route('/', methods=['GET'])
@jwt_required()
@require_staff
def list_prizes():
    try:
        prizes = get_services().prizes.list_all()
        return success_response(data=[p.to_dict() for p in prizes])
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Fetch prizes')


@prizes_bp.route('/active', methods=['GET'])
@jwt_required()
@require_staff
def list_active_prizes():
    """Active, in-stock prizes, cheapest first"""
    try:
        prizes = get_services().prizes.list_active()
        return success_response(data=[p.to_dict() for p in prizes])
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Fetch prizes')


@prizes_bp.route('/<int:prize_id>', methods=['GET'])
@jwt_required()
@require_staff
def get_prize(prize_id):
    try:
        prize = get_services().prizes.require(prize_id)
        return success_response(data=prize.to_dict())
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Fetch prize')


@prizes_bp.route('/', methods=['POST'])
@jwt_required()
@require_super_admin
def create_prize():
    """
    Request body:
    {
        "name": "string",
        "description": "string" (optional),
        "imageUrl": "string" (optional),
        "costPoints": int >= 1,
        "stockQty": int >= 0 | null (null = unlimited)
    }
    """
    try:
        data = get_json_body(request)
        fields = _prize_fields(data)
        fields.pop('status', None)
        if 'name' not in fields or 'cost_points' not in fields:
            raise ValidationError('name and costPoints are required')

        prize = get_services().prizes.create(**fields)
        return success_response(message='Prize created successfully', data=prize.to_dict(), status=201)
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Create prize')


@prizes_bp.route('/<int:prize_id>', methods=['PUT'])
@jwt_required()
@require_super_admin
def update_prize(prize_id):
    try:
        fields = _prize_fields(get_json_body(request))
        prize = get_services().prizes.update(prize_id, **fields)
        return success_response(message='Prize updated successfully', data=prize.to_dict())
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Update prize')


@prizes_bp.route('/<int:prize_id>', methods=['DELETE'])
@jwt_required()
@require_super_admin
def delete_prize(prize_id):
    """Deletes a prize that was never redeemed, otherwise marks it INACTIVE"""
    try:
        outcome = get_services().prizes.delete(prize_id)
        if outcome == 'deleted':
            message = 'Prize deleted successfully'
        else:
            message = 'Prize has redemptions and was set to INACTIVE'
        return success_response(message=message, data={'id': prize_id, 'outcome': outcome})
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Delete prize')


@prizes_bp.route('/redeem', methods=['POST'])
@jwt_required()
@require_staff
def redeem_prize():
    """Request body: uniqueId, prizeId"""
    try:
        data = get_json_body(request)
        unique_id = clean_str(data, 'uniqueId', 20, label='Unique ID')
        prize_id = clean_int(data.get('prizeId'), 'prizeId', minimum=1)

        services = get_services()
        participant = services.ledger.require_by_unique_id(unique_id)
        result = services.redemption.redeem(participant.id, prize_id, current_staff_id())
        return success_response(message='Prize redeemed successfully', data=result.to_dict())
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Redemption')
