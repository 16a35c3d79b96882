"""Log sanitization filter to keep Strava credentials out of logs.

Sync and enrichment log request failures, and httpx/urllib errors can echo
URLs and headers. This filter redacts, before a record is emitted:
- Bearer tokens and authorization headers
- Access and refresh tokens (Strava issues 40-character hex tokens)
- Client secrets
- OAuth authorization codes

Usage:
    from gap_analytics.utils.log_sanitizer import install_log_sanitizer

    install_log_sanitizer()
"""

import logging
import re
from typing import Any


class LogSanitizationFilter(logging.Filter):
    """Logging filter that redacts credentials from log messages."""

    # Order matters: specific patterns before general ones
    PATTERNS: list[tuple[re.Pattern, str]] = [
        # Bearer tokens in Authorization headers
        (re.compile(r'Bearer\s+[a-zA-Z0-9_\-\.]+', re.IGNORECASE), 'Bearer [REDACTED_TOKEN]'),

        # Authorization header values (generic)
        (re.compile(r'(Authorization["\']?\s*[:=]\s*["\']?)[^"\'&\s]+', re.IGNORECASE), r'\1[REDACTED]'),

        # Token fields in query strings, form bodies and JSON
        (re.compile(r'(access_token["\']?\s*[:=]\s*["\']?)[^"\'&\s]+', re.IGNORECASE), r'\1[REDACTED]'),
        (re.compile(r'(refresh_token["\']?\s*[:=]\s*["\']?)[^"\'&\s]+', re.IGNORECASE), r'\1[REDACTED]'),

        # Strava client secret
        (re.compile(r'(client_secret["\']?\s*[:=]\s*["\']?)[^"\'&\s]+', re.IGNORECASE), r'\1[REDACTED]'),

        # OAuth code (in callback URLs or params)
        (re.compile(r'(\bcode["\']?\s*[:=]\s*["\']?)[a-zA-Z0-9_-]{20,}', re.IGNORECASE), r'\1[REDACTED]'),

        # Bare hex tokens (32+ chars)
        (re.compile(r'\b[a-fA-F0-9]{32,}\b'), '[REDACTED_HEX_TOKEN]'),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        """Sanitize the record in place; always lets it through."""
        if record.msg:
            record.msg = self._sanitize(str(record.msg))

        if record.args:
            record.args = self._sanitize_args(record.args)

        return True

    def _sanitize(self, text: str) -> str:
        for pattern, replacement in self.PATTERNS:
            text = pattern.sub(replacement, text)
        return text

    def _sanitize_args(self, args: Any) -> Any:
        """Recursively sanitize log arguments."""
        if isinstance(args, str):
            return self._sanitize(args)
        elif isinstance(args, tuple):
            return tuple(self._sanitize_args(arg) for arg in args)
        elif isinstance(args, list):
            return [self._sanitize_args(arg) for arg in args]
        elif isinstance(args, dict):
            return {k: self._sanitize_args(v) for k, v in args.items()}
        else:
            # Keep numbers and other primitives intact unless they leak something
            str_val = str(args)
            sanitized = self._sanitize(str_val)
            return sanitized if sanitized != str_val else args


def install_log_sanitizer(logger_name: str | None = None) -> LogSanitizationFilter:
    """Install the sanitization filter.

    Args:
        logger_name: If provided, install only on the named logger.
                    If None, install on the root logger and its handlers.

    Returns:
        The installed filter.
    """
    sanitizer = LogSanitizationFilter()

    if logger_name:
        logging.getLogger(logger_name).addFilter(sanitizer)
    else:
        root_logger = logging.getLogger()
        root_logger.addFilter(sanitizer)

        # Records from child loggers only pass through handler filters
        for handler in root_logger.handlers:
            handler.addFilter(sanitizer)

    return sanitizer


def sanitize_string(text: str) -> str:
    """Sanitize a string outside the logging system (e.g. CLI error output)."""
    return LogSanitizationFilter()._sanitize(text)
