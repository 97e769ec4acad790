"""Per-request correlation id and access log line."""

import logging
import time
import uuid

from flask import g, request

logger = logging.getLogger('promo.requests')


def _client_ip() -> str:
    forwarded = request.headers.get('True-Client-IP') or request.headers.get('X-Forwarded-For')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.remote_addr or ''


def init_request_logging(app):
    """Tag every response with X-Correlation-Id and log one line per request."""

    @app.before_request
    def start_request_timer():
        g.request_started = time.perf_counter()
        incoming = (request.headers.get('X-Correlation-Id') or '').strip()
        g.correlation_id = incoming[:64] if incoming else uuid.uuid4().hex

    @app.after_request
    def log_request(response):
        started = g.get('request_started')
        duration_ms = (time.perf_counter() - started) * 1000 if started is not None else 0.0
        correlation_id = g.get('correlation_id') or uuid.uuid4().hex
        response.headers['X-Correlation-Id'] = correlation_id

        level = logging.ERROR if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            '%s %s %s %.1fms ip=%s cid=%s',
            request.method,
            request.path,
            response.status_code,
            duration_ms,
            _client_ip(),
            correlation_id,
        )
        return response
