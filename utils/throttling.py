"""Per-client request throttling for credential and code endpoints.

Limit strings are read from config on each request, so tests and deployments
can tune them without touching the routes.
"""

from flask import current_app

from extensions import limiter


def _login_limit() -> str:
    return current_app.config['LOGIN_RATE_LIMIT']


def _otp_verify_limit() -> str:
    return current_app.config['OTP_VERIFY_RATE_LIMIT']


def limit_login(fn):
    """Only failed logins count against the window."""
    return limiter.limit(
        _login_limit,
        deduct_when=lambda response: response.status_code == 401,
        error_message='Too many login attempts, please try again after 15 minutes',
    )(fn)


def limit_otp_verify(fn):
    """One counter per client across every code-verification endpoint."""
    return limiter.shared_limit(
        _otp_verify_limit,
        scope='otp-verify',
        error_message='Too many verification attempts, please try again later',
    )(fn)
