"""JSON response helpers shared by the blueprints."""

import sys

from flask import current_app, jsonify
from redis import RedisError
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from services.errors import InfrastructureError, ServiceError


def success_response(data=None, message=None, status=200, **extra):
    body = {'success': True}
    if message:
        body['message'] = message
    if data is not None:
        body['data'] = data
    body.update(extra)
    return jsonify(body), status


def error_response(error: ServiceError):
    return jsonify(error.to_dict()), error.status_code


def server_error(action: str):
    """Log the active exception and answer a generic error.

    Database and cache failures answer 503, anything else 500.
    """
    db.session.rollback()
    error = sys.exc_info()[1]
    if isinstance(error, (SQLAlchemyError, RedisError)):
        current_app.logger.exception('%s failed: storage unavailable', action)
        return error_response(InfrastructureError())

    current_app.logger.exception('%s failed', action)
    return jsonify({'success': False, 'error': f'{action} failed'}), 500
