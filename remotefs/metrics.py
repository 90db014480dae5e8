"""
Metrics collection and reporting for remotefs
"""

import time
import threading
from typing import Dict, Any
from contextlib import contextmanager
from dataclasses import dataclass, field


@dataclass
class Metrics:
    """Application metrics container"""

    # Request metrics
    total_requests: int = 0
    active_requests: int = 0
    requests_by_method: Dict[str, int] = field(default_factory=dict)
    requests_by_status: Dict[int, int] = field(default_factory=dict)

    # Transfer metrics
    total_upload_bytes: int = 0
    total_download_bytes: int = 0

    # Error metrics
    total_errors: int = 0

    # Performance metrics
    avg_response_time: float = 0.0
    total_response_time: float = 0.0

    startup_time: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary"""
        uptime = time.time() - self.startup_time

        return {
            "uptime_seconds": uptime,
            "requests": {
                "total": self.total_requests,
                "active": self.active_requests,
                "by_method": self.requests_by_method.copy(),
                "by_status": self.requests_by_status.copy(),
                "avg_response_time": self.avg_response_time,
            },
            "transfer": {
                "upload_bytes": self.total_upload_bytes,
                "download_bytes": self.total_download_bytes,
            },
            "errors": {
                "total": self.total_errors,
            },
        }


class MetricsManager:
    """Thread-safe metrics manager"""

    def __init__(self):
        self.metrics = Metrics()
        self._lock = threading.Lock()

    def record_response(self, status_code: int, response_time: float):
        """Record response metrics"""
        with self._lock:
            self.metrics.requests_by_status[status_code] = self.metrics.requests_by_status.get(status_code, 0) + 1

            total_requests = self.metrics.total_requests
            if total_requests > 0:
                self.metrics.total_response_time += response_time
                self.metrics.avg_response_time = self.metrics.total_response_time / total_requests

    def add_upload_bytes(self, bytes_count: int):
        with self._lock:
            self.metrics.total_upload_bytes += bytes_count

    def add_download_bytes(self, bytes_count: int):
        with self._lock:
            self.metrics.total_download_bytes += bytes_count

    def increment_errors(self):
        with self._lock:
            self.metrics.total_errors += 1

    @contextmanager
    def request_context(self, method: str = "GET"):
        """Count a request as active for the duration of the block"""
        with self._lock:
            self.metrics.total_requests += 1
            self.metrics.requests_by_method[method] = self.metrics.requests_by_method.get(method, 0) + 1
            self.metrics.active_requests += 1

        try:
            yield
        finally:
            with self._lock:
                self.metrics.active_requests = max(0, self.metrics.active_requests - 1)

    def get_metrics(self) -> Dict[str, Any]:
        """Get current metrics snapshot"""
        with self._lock:
            return self.metrics.to_dict()


# Global metrics manager instance
metrics_manager = MetricsManager()
