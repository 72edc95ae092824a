"""
Structured logging system for better log analysis and debugging.
Provides JSON-formatted logs with context and metadata.
"""

import json
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any

REDACTED_KEYS = {"api_key", "apikey", "password", "x-api-key", "sid", "cookie"}


def redact(params: dict[str, Any] | None) -> dict[str, Any]:
    """Returns a copy of ``params`` with secret values masked."""
    if not params:
        return {}
    return {
        k: "***" if str(k).lower() in REDACTED_KEYS else v for k, v in params.items()
    }


class StructuredLogger:
    """
    Logger that outputs both human-readable and machine-parseable logs.

    Usage:
        logger = StructuredLogger("mediahub")
        logger.info("connection_tested", instance="Radarr 4K", success=True)
    """

    def __init__(
        self,
        name: str,
        log_dir: Path | None = None,
        enable_json: bool = True,
        enable_console: bool = True,
    ):
        """
        Initialize structured logger.

        Args:
            name: Logger name
            log_dir: Directory for JSON log files (None = disabled)
            enable_json: Enable JSON file logging
            enable_console: Enable console output
        """
        self.name = name
        self.log_dir = log_dir
        self.enable_json = enable_json and log_dir is not None
        self.enable_console = enable_console

        self._logger = logging.getLogger(name)

        self._json_file = None
        if self.enable_json:
            log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            json_log_path = log_dir / f"mediahub_{timestamp}.jsonl"
            self._json_file = open(json_log_path, "a", encoding="utf-8")  # noqa: SIM115

        # Session context (added to all log entries)
        self._session_context: dict[str, Any] = {
            "session_id": f"{int(time.time())}_{id(self)}",
            "start_time": datetime.now().isoformat(),
        }

    def set_session_context(self, **kwargs) -> None:
        """Set session-level context that appears in all logs."""
        self._session_context.update(kwargs)

    def _format_message(self, event: str, **context) -> str:
        parts = [f"[{event}]"]
        for key, value in context.items():
            if key not in ("level", "timestamp"):
                parts.append(f"{key}={value}")
        return " ".join(parts)

    def _write_json(self, level: str, event: str, **context) -> None:
        if not self._json_file or self._json_file.closed:
            return

        entry = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "event": event,
            **self._session_context,
            **context,
        }

        try:
            self._json_file.write(json.dumps(entry, default=str) + "\n")
            self._json_file.flush()
        except (OSError, TypeError) as e:
            print(f"JSON logging failed: {e}", file=sys.stderr)

    def _log(self, level: int, event: str, **context) -> None:
        if self.enable_console:
            self._logger.log(level, self._format_message(event, **context))
        if self.enable_json:
            self._write_json(logging.getLevelName(level), event, **context)

    def debug(self, event: str, **context) -> None:
        self._log(logging.DEBUG, event, **context)

    def info(self, event: str, **context) -> None:
        self._log(logging.INFO, event, **context)

    def warning(self, event: str, **context) -> None:
        self._log(logging.WARNING, event, **context)

    def error(self, event: str, **context) -> None:
        self._log(logging.ERROR, event, **context)

    def close(self) -> None:
        """Close JSON log file."""
        if self._json_file and not self._json_file.closed:
            self._json_file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class APILogger:
    """Specialized logger for backend HTTP calls."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def request_started(self, method: str, url: str, params: dict[str, Any] | None):
        self.logger.debug(
            "api_request_started", method=method, url=url, params=redact(params)
        )

    def request_completed(
        self, method: str, url: str, status_code: int, duration_ms: float
    ):
        self.logger.debug(
            "api_request_completed",
            method=method,
            url=url,
            status_code=status_code,
            duration_ms=round(duration_ms, 2),
        )

    def request_failed(
        self,
        method: str,
        url: str,
        error: str,
        duration_ms: float,
        status_code: int | None = None,
    ):
        self.logger.warning(
            "api_request_failed",
            method=method,
            url=url,
            status_code=status_code,
            error=error,
            duration_ms=round(duration_ms, 2),
        )


class ConnectionLogger:
    """Specialized logger for connection tests."""

    def __init__(self, logger: StructuredLogger):
        self.logger = logger

    def test_completed(
        self,
        instance_name: str,
        service_type: str,
        success: bool,
        message: str,
        response_time: float | None,
    ):
        """Log the outcome of one connection test."""
        log_fn = self.logger.info if success else self.logger.warning
        log_fn(
            "connection_tested",
            instance=instance_name,
            service_type=service_type,
            success=success,
            message=message,
            response_time_ms=(
                round(response_time * 1000, 2) if response_time is not None else None
            ),
        )

    def batch_completed(self, total: int, succeeded: int, duration_s: float):
        self.logger.info(
            "connection_batch_completed",
            total=total,
            succeeded=succeeded,
            failed=total - succeeded,
            duration_s=round(duration_s, 2),
        )


def create_structured_logger(
    log_dir: Path | None = None, enable_json: bool = False
) -> tuple[StructuredLogger, APILogger, ConnectionLogger]:
    """
    Create all structured loggers.

    Returns:
        Tuple of (base_logger, api_logger, connection_logger)
    """
    base = StructuredLogger("mediahub", log_dir=log_dir, enable_json=enable_json)
    api = APILogger(base)
    connection = ConnectionLogger(base)

    return base, api, connection
