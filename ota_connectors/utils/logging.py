"""
Secure Logging Utilities for Channel Connectors
Provides structured logging with automatic PII redaction and correlation IDs
"""

import logging
import json
import socket
import time
import uuid
from typing import Dict, Any, Optional
from contextvars import ContextVar
from functools import wraps
from datetime import datetime, timezone
from urllib.parse import urlparse, parse_qs, urlencode, urlunparse

from .pii_redactor import PIIRedactorFilter, get_default_redactor

# Context variable for correlation ID
correlation_id: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)

_RESERVED_RECORD_FIELDS = {
    'name', 'msg', 'args', 'created', 'msecs', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'exc_info', 'exc_text',
    'stack_info', 'pathname', 'process', 'processName', 'relativeCreated',
    'thread', 'threadName', 'getMessage', 'taskName', 'message',
}


class StructuredFormatter(logging.Formatter):
    """
    Structured JSON formatter for logs

    Outputs logs in JSON format for better observability
    """

    def __init__(self, service_name: str = "ota-connectors"):
        super().__init__()
        self.service_name = service_name
        self.hostname = self._get_hostname()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON with standard fields"""
        log_obj = {
            "@timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "hostname": self.hostname,
            "correlation_id": correlation_id.get(),
        }

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_FIELDS and key not in log_obj:
                log_obj[key] = value

        return json.dumps(log_obj, default=str)

    @staticmethod
    def _get_hostname():
        try:
            return socket.gethostname()
        except OSError:
            return "unknown"


class ConnectorLogger:
    """
    Logger for channel connectors with built-in redaction and context

    Features:
    - Automatic PII redaction
    - Correlation ID tracking
    - API call timings
    - Structured logging
    """

    def __init__(self, name: str, vendor: str, hotel_id: Optional[str] = None):
        self.logger = logging.getLogger(name)
        self.vendor = vendor
        self.hotel_id = hotel_id

        if not any(isinstance(f, PIIRedactorFilter) for f in self.logger.filters):
            self.logger.addFilter(PIIRedactorFilter())

        # Set up structured logging if not already configured
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(StructuredFormatter())
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)

    def with_correlation_id(self, correlation_id_val: Optional[str] = None) -> str:
        """Set or generate correlation ID for request tracking"""
        correlation_id.set(correlation_id_val or str(uuid.uuid4()))
        return correlation_id.get()

    def _context(self, **kwargs) -> Dict[str, Any]:
        return {"vendor": self.vendor, "hotel_id": self.hotel_id, **kwargs}

    def log_api_call(self,
                     operation: str,
                     request_data: Optional[Dict[str, Any]] = None,
                     response_data: Optional[Dict[str, Any]] = None,
                     duration_ms: Optional[float] = None,
                     status_code: Optional[int] = None,
                     error: Optional[Exception] = None):
        """Log API call with standardized fields"""
        log_data = self._context(
            operation=operation,
            duration_ms=duration_ms,
            status_code=status_code,
        )

        if request_data:
            log_data["request"] = get_default_redactor().redact_dict(request_data)
        if response_data:
            log_data["response"] = get_default_redactor().redact_dict(response_data)

        if error:
            log_data["error"] = str(error)
            log_data["error_type"] = type(error).__name__
            self.logger.error(f"API call failed: {operation}", extra=log_data)
        else:
            self.logger.info(f"API call completed: {operation}", extra=log_data)

    def log_booking(self,
                    action: str,
                    booking_id: Optional[str] = None,
                    guest_email: Optional[str] = None,
                    status: Optional[str] = None,
                    reason: Optional[str] = None):
        """Log booking lifecycle calls; guest_email is redacted by the filter"""
        log_data = self._context(
            action=action,
            booking_id=booking_id,
            guest_email=guest_email,
            status=status,
            reason=reason,
        )
        self.logger.info(f"Booking {action}", extra=log_data)

    def debug(self, msg: str, **kwargs):
        self.logger.debug(msg, extra=self._context(**kwargs))

    def info(self, msg: str, **kwargs):
        self.logger.info(msg, extra=self._context(**kwargs))

    def warning(self, msg: str, **kwargs):
        self.logger.warning(msg, extra=self._context(**kwargs))

    def error(self, msg: str, exc_info=None, **kwargs):
        self.logger.error(msg, exc_info=exc_info, extra=self._context(**kwargs))


def log_performance(operation: str):
    """
    Decorator to log timing of async connector operations

    Usage:
        @log_performance("sync_inventory")
        async def sync_inventory(self, ...):
            ...
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(self, *args, **kwargs):
            start_time = time.time()
            error = None

            try:
                return await func(self, *args, **kwargs)
            except Exception as e:
                error = e
                raise
            finally:
                duration_ms = (time.time() - start_time) * 1000

                if isinstance(getattr(self, 'logger', None), ConnectorLogger):
                    self.logger.log_api_call(
                        operation=operation,
                        duration_ms=duration_ms,
                        error=error
                    )
                elif hasattr(self, 'logger'):
                    # Fallback for standard logger
                    if error:
                        self.logger.error(
                            f"{operation} failed in {duration_ms:.2f}ms: {error}",
                            extra={"operation": operation, "duration_ms": duration_ms}
                        )
                    else:
                        self.logger.info(
                            f"{operation} completed in {duration_ms:.2f}ms",
                            extra={"operation": operation, "duration_ms": duration_ms}
                        )

        return wrapper
    return decorator


def sanitize_url(url: str) -> str:
    """
    Sanitize URL for logging by removing sensitive query parameters

    Args:
        url: URL to sanitize

    Returns:
        Sanitized URL safe for logging
    """
    sensitive_params = {
        'api_key', 'apikey', 'key', 'token', 'secret',
        'password', 'pwd', 'auth', 'authorization', 'signature',
        'client_secret', 'client_id', 'access_token', 'partner_code',
        'refresh_token', 'session', 'sid'
    }

    parsed = urlparse(url)
    query_params = parse_qs(parsed.query)

    sanitized_params = {}
    for param, values in query_params.items():
        if param.lower() in sensitive_params:
            sanitized_params[param] = ['<REDACTED>']
        else:
            sanitized_params[param] = values

    sanitized_query = urlencode(sanitized_params, doseq=True)
    return urlunparse((
        parsed.scheme,
        parsed.netloc,
        parsed.path,
        parsed.params,
        sanitized_query,
        parsed.fragment
    ))
