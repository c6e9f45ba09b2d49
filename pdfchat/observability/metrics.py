import threading
from typing import Dict, List


# Bounded so a long-running process does not grow without limit
_MAX_LATENCY_SAMPLES = 10_000


class MetricsTracker:
    """
    In-process counters for the /metrics endpoint.

    Reset on restart; nothing is written to disk.
    """

    def __init__(self):

        self._lock = threading.Lock()
        self.reset()

    def reset(self):

        with self._lock:

            self._metrics = {

                "total_requests": 0,
                "successful_requests": 0,
                "failed_requests": 0,

                "total_latency": 0.0,
                "avg_latency": 0.0,

                "documents_ingested": 0,
                "ingestions_failed": 0,
                "questions_answered": 0,
                "sessions_expired": 0,

            }

            self._latencies: List[float] = []

    def record_success(self, latency: float):

        with self._lock:

            self._metrics["total_requests"] += 1

            self._metrics["successful_requests"] += 1

            self._metrics["total_latency"] += latency

            self._metrics["avg_latency"] = (
                self._metrics["total_latency"]
                / self._metrics["successful_requests"]
            )

            self._latencies.append(latency)

            if len(self._latencies) > _MAX_LATENCY_SAMPLES:
                del self._latencies[0]

    def record_failure(self):

        with self._lock:

            self._metrics["total_requests"] += 1

            self._metrics["failed_requests"] += 1

    def increment(self, counter: str, amount: int = 1):

        with self._lock:

            if counter not in self._metrics:
                raise KeyError(f"Unknown metric: {counter}")

            self._metrics[counter] += amount

    def get_metrics(self) -> Dict:

        with self._lock:
            snapshot = dict(self._metrics)

        snapshot["p95_latency"] = self.get_latency_percentile(95)

        return snapshot

    def get_latency_percentile(self, percentile: float) -> float:

        with self._lock:
            latencies = list(self._latencies)

        if not latencies:
            return 0.0

        sorted_latencies = sorted(latencies)

        index = int(len(sorted_latencies) * percentile / 100)

        index = min(index, len(sorted_latencies) - 1)

        return sorted_latencies[index]


metrics_tracker = MetricsTracker()
