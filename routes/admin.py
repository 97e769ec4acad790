"""Admin reporting routes - leaderboard and transaction log."""

from datetime import datetime

from flask import Blueprint, current_app, request
from flask_jwt_extended import jwt_required

from services import reports, transaction_log
from services.errors import ServiceError, ValidationError
from utils.rbac import require_staff, require_super_admin
from utils.responses import error_response, server_error, success_response
from utils.validators import query_int

admin_bp = Blueprint('admin', __name__)


def _parse_date(value, label):
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.strip())
    except ValueError:
        raise ValidationError(f'{label} must be an ISO date')


@admin_bp.route('/leaderboard', methods=['GET'])
@jwt_required()
@require_staff
def leaderboard():
    try:
        max_limit = current_app.config.get('LEADERBOARD_MAX_LIMIT', 1000)
        limit = query_int(request.args, 'limit', 100, minimum=1, maximum=max_limit)
        offset = query_int(request.args, 'offset', 0)
        rows = reports.leaderboard(limit=limit, offset=offset, max_limit=max_limit)
        return success_response(data=rows)
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Fetch leaderboard')


@admin_bp.route('/logs', methods=['GET'])
@jwt_required()
@require_super_admin
def logs():
    """
    Query params: type, participantId, staffUserId, startDate, endDate, limit, offset
    """
    try:
        args = request.args
        entries = transaction_log.query(
            type=(args.get('type') or '').strip().upper() or None,
            participant_id=query_int(args, 'participantId', 0) or None,
            staff_id=query_int(args, 'staffUserId', 0) or None,
            start=_parse_date(args.get('startDate'), 'startDate'),
            end=_parse_date(args.get('endDate'), 'endDate'),
            limit=query_int(args, 'limit', 100, minimum=1, maximum=1000),
            offset=query_int(args, 'offset', 0),
        )
        return success_response(data=[e.to_dict() for e in entries])
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Fetch logs')
