import logging
import re
import threading
import time
from datetime import datetime, timedelta

LOGGER_NAME = "genesys_ops"
_UUID_PATTERN = re.compile(r'[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}')


def setup_logging(level=logging.INFO):
    """Attach a single stream handler to the package logger (idempotent)."""
    logger = logging.getLogger(LOGGER_NAME)
    if logger.handlers:
        return logger
    logger.setLevel(level)
    logger.propagate = False
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(fmt)
    logger.addHandler(stream_handler)
    return logger


logger = logging.getLogger(LOGGER_NAME)


class AppMonitor:
    """
    Central monitoring class for API usage statistics and error logging.
    Shared by the session provider, the HTTP client and the DataManager.
    Everything is kept in memory for the lifetime of the process.
    """
    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        with cls._lock:
            if cls._instance is None:
                cls._instance = super(AppMonitor, cls).__new__(cls)
                cls._instance._initialized = False
            return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self._lock = threading.Lock()
        self.MAX_ENDPOINT_STATS = 200
        self.MAX_API_CALL_LOG_ENTRIES = 5000
        self.MAX_ERROR_LOG_ENTRIES = 100
        self._reset_state()
        self._initialized = True

    def _reset_state(self):
        self.api_stats = {}  # endpoint -> count
        self.api_calls_log = []  # {timestamp, endpoint, method, status_code, duration_ms}
        self.error_logs = []  # {timestamp, module, message, details}
        self.start_time = datetime.now()
        self.total_api_calls = 0

    def reset(self):
        with self._lock:
            self._reset_state()

    @staticmethod
    def normalize_endpoint(endpoint):
        # /api/v2/routing/queues/abc-123/users -> /api/v2/routing/queues/{id}/users
        clean_endpoint = str(endpoint or "").split('?')[0]
        return _UUID_PATTERN.sub('{id}', clean_endpoint)

    def log_api_call(self, endpoint, method=None, status_code=None, duration_ms=None):
        """Records an API call with timestamp, endpoint path, and optional timing metadata."""
        clean_endpoint = self.normalize_endpoint(endpoint)
        with self._lock:
            self.api_stats[clean_endpoint] = self.api_stats.get(clean_endpoint, 0) + 1
            self.total_api_calls += 1
            if len(self.api_stats) > self.MAX_ENDPOINT_STATS:
                sorted_stats = sorted(self.api_stats.items(), key=lambda x: x[1], reverse=True)
                self.api_stats = dict(sorted_stats[:self.MAX_ENDPOINT_STATS])

            self.api_calls_log.append({
                "timestamp": datetime.now(),
                "endpoint": clean_endpoint,
                "method": method,
                "status_code": status_code,
                "duration_ms": duration_ms,
            })
            if len(self.api_calls_log) > self.MAX_API_CALL_LOG_ENTRIES:
                self.api_calls_log = self.api_calls_log[-self.MAX_API_CALL_LOG_ENTRIES:]

    def log_error(self, module, message, details=None, level=logging.ERROR):
        """Records an application error and mirrors it to the package logger."""
        with self._lock:
            self.error_logs.append({
                "timestamp": datetime.now(),
                "module": module,
                "message": message,
                "details": str(details) if details else "",
            })
            # Keep log manageable
            if len(self.error_logs) > self.MAX_ERROR_LOG_ENTRIES:
                self.error_logs.pop(0)
        if details:
            logger.log(level, "[%s] %s: %s", module, message, details)
        else:
            logger.log(level, "[%s] %s", module, message)

    def get_stats(self):
        """Returns current API statistics."""
        with self._lock:
            return {
                "total_calls": self.total_api_calls,
                "endpoint_stats": self.api_stats.copy(),
                "uptime_seconds": (datetime.now() - self.start_time).total_seconds(),
                "error_count": len(self.error_logs),
            }

    def get_rate_per_minute(self, minutes=1):
        """Returns average API calls per minute over the last N minutes."""
        if minutes <= 0:
            return 0
        with self._lock:
            cutoff = datetime.now() - timedelta(minutes=minutes)
            count = sum(1 for entry in self.api_calls_log if entry["timestamp"] > cutoff)
            return count / minutes

    def get_recent_calls(self, limit=50):
        """Returns the latest API calls (endpoint, method, status, duration), newest first."""
        if limit <= 0:
            return []
        with self._lock:
            return list(reversed(self.api_calls_log[-limit:]))

    def get_errors(self, limit=50, module=None):
        """Returns recent error logs, newest first."""
        with self._lock:
            entries = [e for e in self.error_logs if module is None or e["module"] == module]
            return sorted(entries, key=lambda x: x['timestamp'], reverse=True)[:limit]


class Stopwatch:
    """Milliseconds elapsed since construction, for log_api_call durations."""

    def __init__(self):
        self._start = time.monotonic()

    @property
    def elapsed_ms(self):
        return int((time.monotonic() - self._start) * 1000)


# Global instance for easy access
monitor = AppMonitor()
