"""
Scheduler error taxonomy plus error aggregation to keep repeated failures quiet.
"""
import hashlib
import time
from collections import defaultdict
from enum import Enum
from typing import Any, Dict, Optional

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse

from carematch.core.config import settings

logger = structlog.get_logger(__name__)


# ---------- Domain errors ----------

class SchedulingError(Exception):
    """Base for every failure the scheduler reports to its callers."""

    status_code: int = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(SchedulingError):
    """Malformed, misaligned or overlapping input. Raised before any write."""
    status_code = 400


class Unauthorized(SchedulingError):
    status_code = 401


class Forbidden(SchedulingError):
    status_code = 403


class NotFound(SchedulingError):
    status_code = 404


class Conflict(SchedulingError):
    """Occupancy race lost, or overlap against already committed data. Retryable by the client."""
    status_code = 409


class InvalidTransition(SchedulingError):
    status_code = 409


async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    """Render a SchedulingError as {"detail": ...} with its status code."""
    log_error(exc, {"endpoint": request.url.path, "method": request.method})
    return JSONResponse({"detail": exc.detail}, status_code=exc.status_code)


# ---------- Aggregation ----------

class ErrorSeverity(Enum):
    """Error severity levels for log throttling."""
    LOW = "low"           # validation errors, lost races, expected failures
    MEDIUM = "medium"     # timeouts, recoverable errors
    HIGH = "high"         # auth failures, data integrity problems
    CRITICAL = "critical" # service down, data loss

class ErrorPattern:
    """Track error patterns to reduce duplicate logging."""

    def __init__(self, error_type: str, message: str, context: Dict[str, Any]):
        self.error_type = error_type
        self.message = message[:100]  # Truncate for fingerprinting
        self.context = {k: v for k, v in context.items() if k in ['endpoint', 'user_id', 'method']}
        self.fingerprint = self._generate_fingerprint()
        self.first_seen = time.time()
        self.last_seen = time.time()
        self.count = 1

    def _generate_fingerprint(self) -> str:
        content = f"{self.error_type}:{self.message}:{self.context.get('endpoint', '')}"
        return hashlib.md5(content.encode(), usedforsecurity=False).hexdigest()[:8]

    def update(self):
        self.last_seen = time.time()
        self.count += 1

class ErrorAggregator:
    """Aggregate and deduplicate errors before they hit the log."""

    def __init__(self, log_threshold: int = 10, time_window: int = 300):
        self.log_threshold = log_threshold  # Log every Nth occurrence
        self.time_window = time_window      # 5 minutes
        self.patterns: Dict[str, ErrorPattern] = {}
        self.severity_override = {
            "ValidationError": ErrorSeverity.LOW,
            "NotFound": ErrorSeverity.LOW,
            "Conflict": ErrorSeverity.LOW,
            "InvalidTransition": ErrorSeverity.LOW,
            "Unauthorized": ErrorSeverity.MEDIUM,
            "Forbidden": ErrorSeverity.MEDIUM,
            "TimeoutError": ErrorSeverity.MEDIUM,
            "IntegrityError": ErrorSeverity.HIGH,
            "OperationalError": ErrorSeverity.HIGH,
        }

    def _determine_severity(self, error: Exception) -> ErrorSeverity:
        error_type = type(error).__name__

        if error_type in self.severity_override:
            return self.severity_override[error_type]

        if isinstance(error, SchedulingError):
            return ErrorSeverity.LOW
        if "timeout" in str(error).lower():
            return ErrorSeverity.MEDIUM
        return ErrorSeverity.MEDIUM

    def should_log(self, pattern: ErrorPattern, severity: ErrorSeverity) -> bool:
        # Always log high/critical severity
        if severity in [ErrorSeverity.HIGH, ErrorSeverity.CRITICAL]:
            return True

        if pattern.count == 1:
            return True

        if severity == ErrorSeverity.MEDIUM and pattern.count % self.log_threshold == 0:
            return True

        if severity == ErrorSeverity.LOW and pattern.count % (self.log_threshold * 5) == 0:
            return True

        return False

    def log_error(self, error: Exception, context: Optional[Dict[str, Any]] = None,
                  severity: Optional[ErrorSeverity] = None) -> str:
        """Log error with deduplication and frequency control. Returns the fingerprint."""
        context = context or {}

        if severity is None:
            severity = self._determine_severity(error)

        error_type = type(error).__name__
        message = str(error)

        pattern = ErrorPattern(error_type, message, context)
        fingerprint = pattern.fingerprint

        if fingerprint in self.patterns:
            self.patterns[fingerprint].update()
            pattern = self.patterns[fingerprint]
        else:
            self.patterns[fingerprint] = pattern

        if self.should_log(pattern, severity):
            log = logger.warning if severity == ErrorSeverity.LOW else logger.error
            log(
                "aggregated_error",
                error_hash=fingerprint,
                error_type=error_type,
                message=message[:200],
                count=pattern.count,
                severity=severity.value,
                **context
            )

        return fingerprint

    def get_error_summary(self) -> Dict[str, Any]:
        """Summary of recent errors for the health endpoints."""
        now = time.time()
        recent = {
            fp: pattern for fp, pattern in self.patterns.items()
            if now - pattern.last_seen < self.time_window
        }

        by_type: Dict[str, int] = defaultdict(int)
        for pattern in recent.values():
            by_type[pattern.error_type] += pattern.count

        top_errors = sorted(recent.values(), key=lambda p: p.count, reverse=True)[:5]
        return {
            "total_unique_errors": len(recent),
            "total_error_count": sum(p.count for p in recent.values()),
            "by_type": dict(by_type),
            "top_errors": [
                {
                    "fingerprint": p.fingerprint,
                    "type": p.error_type,
                    "message": p.message,
                    "count": p.count
                }
                for p in top_errors
            ],
        }

# Global error aggregator instance
error_aggregator = ErrorAggregator(log_threshold=settings.ERROR_AGGREGATION_THRESHOLD)

def log_error(error: Exception, context: Optional[Dict[str, Any]] = None,
              severity: Optional[ErrorSeverity] = None) -> str:
    """Convenience function to log errors through the global aggregator."""
    return error_aggregator.log_error(error, context, severity)

def get_error_summary() -> Dict[str, Any]:
    return error_aggregator.get_error_summary()
