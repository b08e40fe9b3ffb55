"""
Logging configuration - categorised, low-noise loggers for the API and adapters
"""

import logging
import os
import sys
from enum import Enum
from typing import Dict


class LogCategory(Enum):
    """Log categories for better organization"""
    API = "API"
    DATABASE = "DB"
    SECURITY = "SEC"
    MAIL = "MAIL"
    STORAGE = "S3"
    CLIENT = "CLIENT"


class SmartLogger:
    """Logger wrapper that prefixes messages with their category"""

    def __init__(self, name: str, category: LogCategory = None):
        self.logger = logging.getLogger(name)
        self.category = category or LogCategory.API
        self.name = name

        log_level = os.getenv('LOG_LEVEL', 'INFO').upper()
        self.logger.setLevel(getattr(logging, log_level, logging.INFO))
        self.verbose = os.getenv('LOG_VERBOSE', 'false').lower() == 'true'

        if not self.logger.handlers:
            self._setup_handlers()

    def _setup_handlers(self):
        console_handler = logging.StreamHandler(sys.stdout)

        # Compact format unless verbose output was requested
        if self.verbose:
            formatter = logging.Formatter(
                '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
                datefmt='%H:%M:%S'
            )
        else:
            formatter = logging.Formatter('[%(levelname)s] %(message)s')

        console_handler.setFormatter(formatter)
        self.logger.addHandler(console_handler)

    def _prefixed(self, message: str) -> str:
        return f"{self.category.value}: {message}"

    def api_request(self, endpoint: str, duration_ms: float = None, status: str = "success"):
        if duration_ms:
            self.logger.info(self._prefixed(f"{endpoint} {status} ({duration_ms:.0f}ms)"))
        else:
            self.logger.info(self._prefixed(f"{endpoint} {status}"))

    def security_event(self, event: str, details: str = None):
        """Security events are always logged at WARNING"""
        if details:
            self.logger.warning(f"SEC: {event} - {details}")
        else:
            self.logger.warning(f"SEC: {event}")

    def error(self, message: str, exc_info: bool = False, context: Dict = None):
        if context:
            context_str = " | ".join([f"{k}={v}" for k, v in context.items()])
            self.logger.error(self._prefixed(f"{message} | {context_str}"), exc_info=exc_info)
        else:
            self.logger.error(self._prefixed(message), exc_info=exc_info)

    def warning(self, message: str, context: Dict = None):
        if context:
            context_str = " | ".join([f"{k}={v}" for k, v in context.items()])
            self.logger.warning(self._prefixed(f"{message} | {context_str}"))
        else:
            self.logger.warning(self._prefixed(message))

    def info(self, message: str):
        self.logger.info(self._prefixed(message))

    def debug(self, message: str):
        if self.verbose:
            self.logger.debug(self._prefixed(message))


def get_smart_logger(name: str, category: LogCategory = None) -> SmartLogger:
    """Get a smart logger instance"""
    return SmartLogger(name, category)


def configure_app_logging(production: bool = False):
    """Configure application-wide logging settings"""
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('requests').setLevel(logging.WARNING)
    logging.getLogger('boto3').setLevel(logging.WARNING)
    logging.getLogger('botocore').setLevel(logging.WARNING)
    logging.getLogger('aiosmtplib').setLevel(logging.WARNING)

    # SQL echo is never wanted outside local debugging
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
    if production:
        logging.getLogger('werkzeug').setLevel(logging.WARNING)
