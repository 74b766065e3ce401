# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Prometheus metrics for delivery probe runs.

All metrics use the ``dprobe_`` prefix.

Metrics exposed:
    - ``dprobe_runs_total``: Counter of finished runs per terminal status.
    - ``dprobe_poll_cycles_total``: Counter of mailbox poll cycles per endpoint.
    - ``dprobe_poll_errors_total``: Counter of poll sessions ended by an error.
    - ``dprobe_active_sessions``: Gauge of poll sessions currently running.
"""

from prometheus_client import CollectorRegistry, Counter, Gauge, generate_latest


class ProbeMetrics:
    """Prometheus metrics collector for probe runs.

    Attributes:
        registry: The Prometheus CollectorRegistry holding all metrics.
        runs: Counter of finished runs labeled by status.
        poll_cycles: Counter of poll cycles labeled by endpoint.
        poll_errors: Counter of poll sessions ended by an error.
        active_sessions: Gauge of running poll sessions.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry or CollectorRegistry()
        self.runs = Counter(
            "dprobe_runs_total",
            "Total finished probe runs",
            ["status"],
            registry=self.registry,
        )
        self.poll_cycles = Counter(
            "dprobe_poll_cycles_total",
            "Total mailbox poll cycles",
            ["endpoint"],
            registry=self.registry,
        )
        self.poll_errors = Counter(
            "dprobe_poll_errors_total",
            "Total poll sessions ended by an error",
            ["endpoint"],
            registry=self.registry,
        )
        self.active_sessions = Gauge(
            "dprobe_active_sessions",
            "Poll sessions currently running",
            registry=self.registry,
        )

    def inc_run(self, status: str) -> None:
        """Count a finished run with the given terminal status."""
        self.runs.labels(status=status).inc()

    def inc_poll_cycle(self, endpoint: str) -> None:
        self.poll_cycles.labels(endpoint=endpoint or "unknown").inc()

    def inc_poll_error(self, endpoint: str) -> None:
        self.poll_errors.labels(endpoint=endpoint or "unknown").inc()

    def session_started(self) -> None:
        self.active_sessions.inc()

    def session_finished(self) -> None:
        self.active_sessions.dec()

    def generate_latest(self) -> bytes:
        """Return the latest metrics snapshot in Prometheus text format."""
        return generate_latest(self.registry)
