"""
Application settings and configuration
"""
import os
from datetime import timedelta
from dotenv import load_dotenv

from config.database import SQLALCHEMY_DATABASE_URI

_is_production = os.getenv('FLASK_ENV', 'development') == 'production'
load_dotenv(override=(not _is_production))

_DEFAULT_SECRET_KEY = 'promo-ledger-secret-key-change-me-0000000000'
_DEFAULT_JWT_SECRET_KEY = 'promo-ledger-jwt-secret-key-change-me-00000000'


def _env_int(name, default):
    raw = (os.getenv(name) or '').strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def _env_bool(name, default):
    raw = (os.getenv(name) or '').strip().lower()
    if not raw:
        return default
    return raw in {'1', 'true', 'yes', 'on'}


class Config:
    """Base configuration"""
    SECRET_KEY = os.getenv('SECRET_KEY', _DEFAULT_SECRET_KEY)

    # Database
    SQLALCHEMY_DATABASE_URI = SQLALCHEMY_DATABASE_URI
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session tokens: one 8 hour shift, carried in a cookie or a Bearer header
    JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY', _DEFAULT_JWT_SECRET_KEY)
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=8)
    JWT_TOKEN_LOCATION = ['headers', 'cookies']
    JWT_COOKIE_SECURE = _env_bool('JWT_COOKIE_SECURE', False)
    JWT_COOKIE_SAMESITE = os.getenv('JWT_COOKIE_SAMESITE', 'Strict')
    JWT_COOKIE_CSRF_PROTECT = _env_bool('JWT_COOKIE_CSRF_PROTECT', True)
    JWT_ACCESS_COOKIE_PATH = '/api/'

    # CORS Settings
    CORS_ORIGINS = os.getenv('CORS_ORIGINS', 'http://localhost:5173')

    # Shared cache store. Empty -> in-process memory store (single worker only).
    REDIS_URL = os.getenv('REDIS_URL', '')
    REDIS_SOCKET_TIMEOUT = _env_int('REDIS_SOCKET_TIMEOUT', 5)

    # One-time codes
    OTP_EXPIRY_MINUTES = _env_int('OTP_EXPIRY_MINUTES', 10)
    OTP_MAX_ATTEMPTS = _env_int('OTP_MAX_ATTEMPTS', 3)
    OTP_RESEND_COOLDOWN_SECONDS = _env_int('OTP_RESEND_COOLDOWN_SECONDS', 60)
    OTP_FIXED_CODE = os.getenv('OTP_FIXED_CODE') or None

    # Request throttling (Flask-Limiter). Counters share the Redis instance when one is configured.
    RATELIMIT_STORAGE_URI = os.getenv('REDIS_URL') or 'memory://'
    RATELIMIT_DEFAULT = os.getenv('RATELIMIT_DEFAULT', '100 per 15 minutes')
    RATELIMIT_HEADERS_ENABLED = True
    LOGIN_RATE_LIMIT = os.getenv('LOGIN_RATE_LIMIT', '5 per 15 minutes')
    OTP_VERIFY_RATE_LIMIT = os.getenv('OTP_VERIFY_RATE_LIMIT', '10 per 15 minutes')

    PASSWORD_HASH_METHOD = os.getenv('PASSWORD_HASH_METHOD', 'scrypt')

    # Notification delivery: 'smtp' (email over SMTP, SMS over HTTP) or 'outbox'
    NOTIFICATION_BACKEND = os.getenv('NOTIFICATION_BACKEND', 'smtp')

    SEARCH_RESULT_LIMIT = 20
    LEADERBOARD_MAX_LIMIT = 1000

    # Application Settings
    APP_NAME = 'Promo Ledger API'
    APP_VERSION = '1.0.0'
    DEBUG = False
    TESTING = False

    @classmethod
    def validate(cls):
        """Hook for configuration checks that must pass before serving."""
        return cls


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    SQLALCHEMY_ECHO = _env_bool('SQLALCHEMY_ECHO', False)
    NOTIFICATION_BACKEND = os.getenv('NOTIFICATION_BACKEND', 'outbox')
    # Documented dev override: every one-time code is this value unless OTP_FIXED_CODE is set.
    OTP_FIXED_CODE = os.getenv('OTP_FIXED_CODE', '123456')


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    SQLALCHEMY_ECHO = False
    JWT_COOKIE_SECURE = True
    OTP_FIXED_CODE = None

    @classmethod
    def validate(cls):
        if cls.SECRET_KEY == _DEFAULT_SECRET_KEY or cls.JWT_SECRET_KEY == _DEFAULT_JWT_SECRET_KEY:
            raise RuntimeError('SECRET_KEY and JWT_SECRET_KEY must be set in production')
        if len(cls.JWT_SECRET_KEY) < 32:
            raise RuntimeError('JWT_SECRET_KEY must be at least 32 characters')
        return cls


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    REDIS_URL = ''
    RATELIMIT_STORAGE_URI = 'memory://'
    RATELIMIT_DEFAULT = '10000 per hour'
    NOTIFICATION_BACKEND = 'outbox'
    # Deterministic codes for tests; never enabled in production.
    OTP_FIXED_CODE = '123456'
    OTP_RESEND_COOLDOWN_SECONDS = 0
    PASSWORD_HASH_METHOD = 'pbkdf2:sha256:1000'
    JWT_COOKIE_CSRF_PROTECT = False


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}


def get_config():
    """Get configuration based on environment"""
    env = os.getenv('FLASK_ENV', 'development')
    return config.get(env, config['default'])
