"""
Request/response logging with correlation IDs
"""

import logging
import time

from flask import Flask, g, request

logger = logging.getLogger(__name__)


def setup_flask_request_logging(app: Flask):
    """Setup request/response logging for Flask app"""

    @app.before_request
    def log_request_info():
        g.request_started = time.perf_counter()
        level = logging.INFO if app.debug else logging.DEBUG
        correlation_id = getattr(g, 'correlation_id', 'unknown')
        logger.log(level, "[%s] Request: %s %s", correlation_id, request.method, request.path)

    @app.after_request
    def log_response_info(response):
        level = logging.INFO if app.debug else logging.DEBUG
        correlation_id = getattr(g, 'correlation_id', 'unknown')
        started = getattr(g, 'request_started', None)
        elapsed_ms = (time.perf_counter() - started) * 1000 if started else 0.0
        # Never log Authorization headers or bodies: they carry bearer tokens and passwords
        logger.log(level, "[%s] Response: %s %s (%.0fms)", correlation_id, response.status_code, request.path, elapsed_ms)
        return response
