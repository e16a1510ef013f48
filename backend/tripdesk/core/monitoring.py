"""
Observability helpers: structured JSON log records and service timings.

Timed service calls log one record per call carrying `operation`,
`duration_ms` and `outcome` ("ok" or "error"). The JSON formatter copies
those fields into the output so dashboards can group by operation.
"""

import time
from typing import Callable, Any, Optional
from functools import wraps
import logging
import json
from datetime import datetime
import asyncio

logger = logging.getLogger(__name__)

TIMING_FIELDS = ("operation", "duration_ms", "outcome")

# Calls slower than this are logged at WARNING
SLOW_OPERATION_MS = 1000.0


# ============================================================================
# STRUCTURED LOGGING
# ============================================================================

class JSONFormatter(logging.Formatter):
    """JSON formatter, selected when settings.log_format == "json"."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in TIMING_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_data[field] = value
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


# ============================================================================
# SERVICE TIMINGS
# ============================================================================

def _log_timing(operation: str, started: float, error: Optional[Exception] = None) -> None:
    elapsed = round((time.perf_counter() - started) * 1000, 1)
    fields = {"operation": operation, "duration_ms": elapsed, "outcome": "error" if error else "ok"}
    if error is not None:
        logger.error(f"{operation} failed after {elapsed:.0f}ms: {error}", extra=fields)
    elif elapsed >= SLOW_OPERATION_MS:
        logger.warning(f"{operation} slow: {elapsed:.0f}ms", extra=fields)
    else:
        logger.info(f"{operation} completed in {elapsed:.0f}ms", extra=fields)


def track_performance(operation_name: str):
    """Time a service method (sync or async) and log the outcome."""
    def decorator(func: Callable) -> Callable:
        if asyncio.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                started = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _log_timing(operation_name, started, e)
                    raise
                _log_timing(operation_name, started)
                return result
            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> Any:
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _log_timing(operation_name, started, e)
                raise
            _log_timing(operation_name, started)
            return result
        return sync_wrapper

    return decorator
