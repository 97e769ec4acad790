"""Public routes - leaderboard without personal data."""

from flask import Blueprint, current_app, request

from services import reports
from services.errors import NotFoundError, ServiceError
from utils.responses import error_response, server_error, success_response
from utils.validators import query_int

public_bp = Blueprint('public', __name__)


@public_bp.route('/leaderboard', methods=['GET'])
def public_leaderboard():
    try:
        max_limit = current_app.config.get('LEADERBOARD_MAX_LIMIT', 1000)
        limit = query_int(request.args, 'limit', 100, minimum=1, maximum=max_limit)
        return success_response(data=reports.public_leaderboard(limit=limit, max_limit=max_limit))
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Fetch leaderboard')


@public_bp.route('/search/<unique_id>', methods=['GET'])
def public_search(unique_id):
    try:
        result = reports.public_rank(unique_id)
        if result is None:
            raise NotFoundError('Participant not found')
        return success_response(data=result)
    except ServiceError as e:
        return error_response(e)
    except Exception:
        return server_error('Search')
