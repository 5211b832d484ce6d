"""
Structured Logging Module
Provides session-scoped logging with session_id propagation.
"""
import inspect
import logging
import time
import json
from contextvars import ContextVar
from typing import Optional, Any, Dict
from functools import wraps

from rolegate.core.config import settings

# Context variable for the authorization session being served
session_id_var: ContextVar[Optional[str]] = ContextVar('session_id', default=None)


def get_session_id() -> Optional[str]:
    """Get current session ID from context."""
    return session_id_var.get()


def set_session_id(session_id: Optional[str]) -> None:
    """Set session ID in context."""
    session_id_var.set(session_id)


class StructuredLogger:
    """
    Structured JSON logger with session context support.
    Logs in JSON format for production, human-readable for development.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)
        self.name = name

    @property
    def _is_json(self) -> bool:
        return settings.APP_ENV == 'production'

    def _build_log_record(
        self,
        level: str,
        message: str,
        extra: Optional[Dict[str, Any]] = None,
        error: Optional[Exception] = None,
    ) -> Dict[str, Any]:
        """Build a structured log record."""
        record = {
            'timestamp': time.strftime('%Y-%m-%dT%H:%M:%S%z'),
            'level': level,
            'logger': self.name,
            'message': message,
            'env': settings.APP_ENV,
        }

        session_id = get_session_id()
        if session_id:
            record['session_id'] = session_id

        if extra:
            record['context'] = extra

        if error:
            record['error'] = {
                'type': type(error).__name__,
                'message': str(error),
            }

        return record

    def _format_message(self, record: Dict[str, Any]) -> str:
        """Format log record for output."""
        if self._is_json:
            return json.dumps(record, default=str)

        # Human-readable format for development
        parts = [
            f"[{record.get('session_id', '-')}]",
            f"[{record['env']}]",
            record['message'],
        ]

        if 'context' in record:
            parts.append(f"| {record['context']}")

        if 'error' in record:
            parts.append(f"| error={record['error']['type']}: {record['error']['message']}")

        return ' '.join(parts)

    def debug(self, message: str, **extra):
        """Log debug message."""
        record = self._build_log_record('DEBUG', message, extra if extra else None)
        self.logger.debug(self._format_message(record))

    def info(self, message: str, **extra):
        """Log info message."""
        record = self._build_log_record('INFO', message, extra if extra else None)
        self.logger.info(self._format_message(record))

    def warning(self, message: str, **extra):
        """Log warning message."""
        record = self._build_log_record('WARNING', message, extra if extra else None)
        self.logger.warning(self._format_message(record))

    def error(self, message: str, error: Optional[Exception] = None, **extra):
        """Log error message."""
        record = self._build_log_record('ERROR', message, extra if extra else None, error)
        self.logger.error(self._format_message(record))


def get_logger(name: str = 'rolegate') -> StructuredLogger:
    """Get a structured logger instance."""
    return StructuredLogger(name)


# Pre-configured loggers for different domains
api_logger = get_logger('rolegate.api')
authz_logger = get_logger('rolegate.authz')
preview_logger = get_logger('rolegate.preview')
identity_logger = get_logger('rolegate.identity')
store_logger = get_logger('rolegate.store')


def log_operation(operation: str, logger: Optional[StructuredLogger] = None):
    """
    Decorator for logging function entry/exit with timing.

    Usage:
        @log_operation("load_roles", store_logger)
        async def load_roles(...):
            ...
    """
    def decorator(func):
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            log = logger or authz_logger
            start = time.time()
            log.debug(f"{operation} started")
            try:
                result = await func(*args, **kwargs)
                duration = round((time.time() - start) * 1000, 2)
                log.debug(f"{operation} completed", duration_ms=duration)
                return result
            except Exception as e:
                duration = round((time.time() - start) * 1000, 2)
                log.error(f"{operation} failed", error=e, duration_ms=duration)
                raise

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            log = logger or authz_logger
            start = time.time()
            log.debug(f"{operation} started")
            try:
                result = func(*args, **kwargs)
                duration = round((time.time() - start) * 1000, 2)
                log.debug(f"{operation} completed", duration_ms=duration)
                return result
            except Exception as e:
                duration = round((time.time() - start) * 1000, 2)
                log.error(f"{operation} failed", error=e, duration_ms=duration)
                raise

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
