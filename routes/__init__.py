"""
API Routes package
"""
from .auth import auth_bp
from .participants import participants_bp
from .prizes import prizes_bp
from .staff import staff_bp
from .admin import admin_bp
from .public import public_bp

__all__ = [
    'auth_bp',
    'participants_bp',
    'prizes_bp',
    'staff_bp',
    'admin_bp',
    'public_bp',
]


def register_blueprints(app):
    """Register all API blueprints"""
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(participants_bp, url_prefix='/api/participants')
    app.register_blueprint(prizes_bp, url_prefix='/api/prizes')
    app.register_blueprint(staff_bp, url_prefix='/api/staff')
    app.register_blueprint(admin_bp, url_prefix='/api/admin')
    app.register_blueprint(public_bp, url_prefix='/api/public')

    return app
