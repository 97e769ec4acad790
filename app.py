"""
Promo Ledger - Flask Backend Application
Main entry point
"""
import logging
import os

from flask import Flask, jsonify, request
from redis import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

# Import extensions and routes
from extensions import init_extensions, db
from config.settings import get_config
from routes import register_blueprints
from services.errors import InfrastructureError, ServiceError
from services.registry import get_services, init_services
from utils.request_logger import init_request_logging


def _configure_logging(app):
    level = logging.DEBUG if app.config.get('DEBUG') else logging.INFO
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=level,
            format='%(asctime)s %(levelname)s %(name)s: %(message)s',
        )
    app.logger.setLevel(level)


def create_app(config_class=None, cache=None, notifier=None):
    """Application factory pattern

    ``cache`` and ``notifier`` override the configured cache store and
    notification backend.
    """
    app = Flask(__name__)

    # Disable strict slashes to prevent 308 redirects
    app.url_map.strict_slashes = False

    # Load configuration
    if config_class is None:
        config_class = get_config()
    config_class.validate()
    app.config.from_object(config_class)

    _configure_logging(app)

    # Initialize extensions and services
    init_extensions(app)
    init_services(app, cache=cache, notifier=notifier)
    init_request_logging(app)

    # Register blueprints
    register_blueprints(app)

    # Health check endpoint
    @app.route('/api/health', methods=['GET'])
    def health_check():
        checks = {'database': True, 'cache': True}
        try:
            db.session.execute(text('SELECT 1'))
        except SQLAlchemyError:
            db.session.rollback()
            app.logger.exception('Health check: database unreachable')
            checks['database'] = False
        checks['cache'] = get_services().cache.ping()

        healthy = all(checks.values())
        return jsonify({
            'success': healthy,
            'message': f"{app.config['APP_NAME']} is {'running' if healthy else 'degraded'}",
            'version': app.config['APP_VERSION'],
            'checks': checks,
        }), 200 if healthy else 503

    @app.route('/api', methods=['GET'])
    def api_index():
        return jsonify({
            'name': app.config['APP_NAME'],
            'version': app.config['APP_VERSION'],
            'description': 'Loyalty promotion administration API',
            'endpoints': {
                'auth': '/api/auth',
                'participants': '/api/participants',
                'prizes': '/api/prizes',
                'staff': '/api/staff',
                'admin': '/api/admin',
                'public': '/api/public',
            }
        }), 200

    # Error handlers
    @app.errorhandler(ServiceError)
    def service_error(error):
        db.session.rollback()
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(SQLAlchemyError)
    @app.errorhandler(RedisError)
    def infrastructure_error(error):
        db.session.rollback()
        app.logger.exception('Infrastructure failure on %s %s', request.method, request.path)
        return jsonify(InfrastructureError().to_dict()), InfrastructureError.status_code

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'success': False, 'error': 'Resource not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        msg = f"Method not allowed ({request.method} {request.path})"
        return jsonify({'success': False, 'error': msg}), 405

    @app.errorhandler(429)
    def too_many_requests(error):
        app.logger.warning('Rate limit hit on %s %s: %s', request.method, request.path, error.description)
        return jsonify({
            'success': False,
            'error': error.description or 'Too many requests, please try again later'
        }), 429

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return jsonify({
            'success': False,
            'error': 'Internal server error'
        }), 500

    return app


if __name__ == '__main__':
    # Development server
    app = create_app()
    port = int(os.getenv('PORT', 5000))
    debug = bool(app.config.get('DEBUG'))

    print(f"""
    Promo Ledger API
      Local:  http://localhost:{port}
      Health: http://localhost:{port}/api/health
      Debug:  {debug}
    """)

    app.run(host='0.0.0.0', port=port, debug=debug, use_reloader=False)
