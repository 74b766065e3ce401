# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""End-to-end mail delivery probe.

This package sends a probe email from one mail server to another and polls
both mailboxes until the probe is delivered, bounced, or a retry budget is
exhausted:

- Delivery verdict state machine merging evidence from both endpoints
- Per-endpoint POP3/IMAP poll sessions with fixed-delay retries
- SMTP probe submission via aiosmtplib
- Prometheus metrics and a click based command line

Example:
    Running one probe::

        from delivery_probe import RunCoordinator, DeliveryStatus

        coordinator = RunCoordinator()
        verdict = await coordinator.run(sending, receiving, probe, DeliveryStatus.COMPLETED)
"""

from .models import DeliveryStatus, Endpoint, MailboxAccess, Probe, ProbeSettings, SmtpAccess
from .runner import RunCoordinator, run_probe
from .verdict import DeliveryVerdict

__all__ = [
    "DeliveryStatus",
    "DeliveryVerdict",
    "Endpoint",
    "MailboxAccess",
    "Probe",
    "ProbeSettings",
    "RunCoordinator",
    "SmtpAccess",
    "run_probe",
]
