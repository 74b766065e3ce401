# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Run coordination for delivery probes.

A run sends one probe from a sending endpoint to a receiving endpoint,
waits until its verdict is terminal and compares the outcome with the
expected status. Each run owns its verdict and waits on that verdict's
own completion handle, so several runs can share one event loop.

Example:
    Checking that a probe is delivered::

        coordinator = RunCoordinator(settings=ProbeSettings(retry_delay=2))
        verdict = await coordinator.run(
            sending, receiving, probe, DeliveryStatus.COMPLETED, callback=report
        )
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from .errors import UnexpectedStatusError
from .logger import get_logger
from .mailbox import MailboxClientFactory
from .models import DeliveryStatus, Endpoint, Probe, ProbeSettings
from .prometheus import ProbeMetrics
from .sender import SendOrchestrator
from .verdict import DeliveryVerdict

RunCallback = Callable[..., Any]


class RunCoordinator:
    """Start probe runs and report their outcome.

    Attributes:
        settings: Retry budget and correlation options applied to every run.
        metrics: Prometheus collector updated by runs and poll sessions.
        logger: Logger instance for diagnostic output.
    """

    def __init__(
        self,
        *,
        settings: ProbeSettings | None = None,
        client_factory: MailboxClientFactory | None = None,
        metrics: ProbeMetrics | None = None,
        logger=None,
    ):
        self.settings = settings or ProbeSettings()
        self.client_factory = client_factory
        self.metrics = metrics or ProbeMetrics()
        self.logger = logger or get_logger("RunCoordinator")

    def create_verdict(self, sending: Endpoint, receiving: Endpoint, probe: Probe) -> DeliveryVerdict:
        return DeliveryVerdict(
            sending.address,
            receiving.address,
            probe.subject,
            require_confirmation=self.settings.require_confirmation,
            bounce_markers=self.settings.bounce_markers,
        )

    async def run(
        self,
        sending: Endpoint,
        receiving: Endpoint,
        probe: Probe,
        expected: DeliveryStatus | str = DeliveryStatus.COMPLETED,
        callback: RunCallback | None = None,
    ) -> DeliveryVerdict:
        """Execute one run and wait for its verdict.

        Args:
            sending: Endpoint submitting the probe.
            receiving: Endpoint the probe is addressed to.
            probe: The probe to send.
            expected: Terminal status the run is expected to reach.
            callback: Called exactly once, with no argument when the verdict
                matches ``expected`` and with the error otherwise.

        Returns:
            The terminal verdict of the run.
        """
        expected = DeliveryStatus.parse(expected)
        verdict = self.create_verdict(sending, receiving, probe)
        orchestrator = SendOrchestrator(
            sending,
            receiving,
            probe,
            verdict,
            settings=self.settings,
            client_factory=self.client_factory,
            metrics=self.metrics,
        )

        self.logger.info("Run %s: %s -> %s, expecting %s",
                         probe.subject, sending.address, receiving.address, expected.value)
        tasks = await orchestrator.execute()
        await verdict.wait()
        # sessions stop on their own at the next decision point
        await asyncio.gather(*tasks, return_exceptions=True)

        self.metrics.inc_run(verdict.status.value)
        error = self.outcome(verdict, expected)
        if error is None:
            self.logger.info("Run %s finished with expected status %s", probe.subject, verdict.status.value)
        else:
            self.logger.error("Run %s failed: %s", probe.subject, error)
        if callback is not None:
            if error is None:
                callback()
            else:
                callback(error)
        return verdict

    @staticmethod
    def outcome(verdict: DeliveryVerdict, expected: DeliveryStatus) -> BaseException | None:
        """Return the error describing a failed run, or None on success."""
        if verdict.status == expected:
            return None
        if verdict.status == DeliveryStatus.ERROR and verdict.error is not None:
            return verdict.error
        return UnexpectedStatusError(verdict.status.value, expected.value)


async def run_probe(
    callback: RunCallback,
    sending: Endpoint,
    receiving: Endpoint,
    probe: Probe,
    expected: DeliveryStatus | str = DeliveryStatus.COMPLETED,
    *,
    settings: ProbeSettings | None = None,
    **kwargs,
) -> DeliveryVerdict:
    """Run one probe with a fresh :class:`RunCoordinator`."""
    coordinator = RunCoordinator(settings=settings, **kwargs)
    return await coordinator.run(sending, receiving, probe, expected, callback=callback)


__all__ = ["RunCoordinator", "run_probe"]
