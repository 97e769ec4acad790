"""
Flask extensions initialization
"""
from flask import current_app, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_jwt_extended import JWTManager
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

# Initialize extensions
db = SQLAlchemy()
jwt = JWTManager()
cors = CORS()
migrate = Migrate()
# Limits, storage and headers come from the RATELIMIT_* config keys
limiter = Limiter(key_func=get_remote_address)


def _cors_origins(app):
    raw = app.config.get('CORS_ORIGINS') or ''
    origins = [o.strip() for o in str(raw).split(',') if o.strip()]
    return origins or ['http://localhost:5173']


def init_extensions(app):
    """Initialize all Flask extensions"""
    db.init_app(app)
    jwt.init_app(app)
    cors.init_app(
        app,
        resources={r"/api/*": {"origins": _cors_origins(app)}},
        supports_credentials=True,
        allow_headers=["Content-Type", "Authorization", "X-CSRF-TOKEN"],
        expose_headers=["X-Correlation-Id"],
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    )
    migrate.init_app(app, db)
    limiter.init_app(app)

    @jwt.token_in_blocklist_loader
    def check_if_token_revoked(jwt_header, jwt_payload):
        from services.registry import get_services

        return get_services().revocations.is_token_revoked(jwt_payload)

    @jwt.user_lookup_loader
    def load_staff_user(jwt_header, jwt_payload):
        from models.staff import StaffUser

        try:
            staff_id = int(jwt_payload['sub'])
        except (KeyError, TypeError, ValueError):
            return None
        staff = db.session.get(StaffUser, staff_id)
        if staff is None or not staff.is_active:
            return None
        return staff

    # JWT error handlers
    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        current_app.logger.info('JWT rejected: expired token for staff %s', jwt_payload.get('sub'))
        return jsonify({
            'success': False,
            'error': 'Token has expired. Please login again.'
        }), 401

    @jwt.invalid_token_loader
    def invalid_token_callback(error):
        current_app.logger.warning('JWT rejected: invalid token (%s)', error)
        return jsonify({
            'success': False,
            'error': 'Invalid token. Please login again.'
        }), 401

    @jwt.unauthorized_loader
    def missing_token_callback(error):
        return jsonify({
            'success': False,
            'error': 'Authorization token is missing. Please login.'
        }), 401

    @jwt.revoked_token_loader
    def revoked_token_callback(jwt_header, jwt_payload):
        current_app.logger.warning('JWT rejected: revoked token for staff %s', jwt_payload.get('sub'))
        return jsonify({
            'success': False,
            'error': 'Token has been revoked. Please login again.'
        }), 401

    @jwt.user_lookup_error_loader
    def user_lookup_error_callback(jwt_header, jwt_payload):
        return jsonify({
            'success': False,
            'error': 'Account is disabled or no longer exists.'
        }), 401

    return app
