# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Probe transmission and start of the poll sessions.

The :class:`SendOrchestrator` submits the probe through the sending
endpoint's SMTP service. When the transaction succeeds the verdict moves
to SENT and polling starts on the sending endpoint and, when it is a
different server, on the receiving endpoint too.
"""

from __future__ import annotations

import asyncio
import mimetypes
from email.message import EmailMessage
from pathlib import Path

import aiosmtplib

from .errors import SendError
from .logger import get_logger
from .mailbox import MailboxClientFactory
from .models import Endpoint, Probe, ProbeSettings
from .poller import start_polling
from .prometheus import ProbeMetrics
from .verdict import DeliveryVerdict

X_MAILER = "delivery-probe"


async def build_probe_message(probe: Probe) -> EmailMessage:
    """Build the EmailMessage sent as probe.

    Raises:
        OSError: If the attachment file cannot be read.
    """
    msg = EmailMessage()
    msg["From"] = probe.mail_from
    msg["To"] = ", ".join(probe.rcpt_to)
    msg["Subject"] = probe.subject
    msg["X-Mailer"] = X_MAILER
    msg.set_content(probe.body, subtype=probe.content_type)
    for header, value in probe.headers.items():
        if header in msg:
            msg.replace_header(header, value)
        else:
            msg[header] = value

    if probe.attachment:
        path = Path(probe.attachment)
        content = await asyncio.to_thread(path.read_bytes)
        mime_type, _ = mimetypes.guess_type(path.name)
        maintype, subtype = (mime_type or "application/octet-stream").split("/", 1)
        msg.add_attachment(content, maintype=maintype, subtype=subtype, filename=path.name)
    return msg


def _smtp_client(endpoint: Endpoint, timeout: float) -> aiosmtplib.SMTP:
    """Create an SMTP client honouring the endpoint TLS mode.

    Port 465 with TLS is implicit TLS, TLS on any other port is STARTTLS.
    """
    access = endpoint.smtp
    use_tls = access.port == 465 if access.use_tls is None else access.use_tls
    if use_tls and access.port == 465:
        return aiosmtplib.SMTP(hostname=endpoint.smtp_host, port=access.port, use_tls=True, start_tls=False,
                               validate_certs=access.verify_tls, timeout=timeout)
    if use_tls:
        return aiosmtplib.SMTP(hostname=endpoint.smtp_host, port=access.port, use_tls=False, start_tls=True,
                               validate_certs=access.verify_tls, timeout=timeout)
    return aiosmtplib.SMTP(hostname=endpoint.smtp_host, port=access.port, use_tls=False, start_tls=False,
                           timeout=timeout)


class SendOrchestrator:
    """Send one probe and start polling the endpoints involved.

    Attributes:
        sending: Endpoint whose SMTP service submits the probe.
        receiving: Endpoint the probe is addressed to.
        probe: The probe description.
        verdict: Verdict of the run.
        tasks: Poll session tasks started after a successful send.
    """

    def __init__(
        self,
        sending: Endpoint,
        receiving: Endpoint,
        probe: Probe,
        verdict: DeliveryVerdict,
        *,
        settings: ProbeSettings | None = None,
        client_factory: MailboxClientFactory | None = None,
        metrics: ProbeMetrics | None = None,
        logger=None,
    ):
        self.sending = sending
        self.receiving = receiving
        self.probe = probe
        self.verdict = verdict
        self.settings = settings or ProbeSettings()
        self.client_factory = client_factory
        self.metrics = metrics
        self.logger = logger or get_logger("SendOrchestrator")
        self.tasks: list[asyncio.Task[None]] = []

    async def execute(self) -> list[asyncio.Task[None]]:
        """Send the probe and, on success, start the poll sessions."""
        if await self.send():
            self.start_polling()
        return self.tasks

    async def send(self) -> bool:
        """Run the SMTP transaction.

        Returns:
            True when the server accepted the message. Failures are reported
            to the verdict and return False.
        """
        self.logger.info("Sending probe %r via %s", self.probe.subject, self.sending.address)
        try:
            msg = await build_probe_message(self.probe)
        except OSError as exc:
            self.verdict.set_error(SendError(f"unable to read attachment {self.probe.attachment}: {exc}"))
            return False

        smtp = _smtp_client(self.sending, self.settings.send_timeout)
        access = self.sending.smtp

        async def _transaction():
            await smtp.connect()
            try:
                if access.user and access.password:
                    await smtp.login(access.user, access.password)
                return await smtp.send_message(msg, sender=self.probe.mail_from, recipients=self.probe.rcpt_to)
            finally:
                if smtp.is_connected:
                    await smtp.quit()

        try:
            refused, response = await asyncio.wait_for(_transaction(), timeout=self.settings.send_timeout)
        except (aiosmtplib.SMTPException, OSError, asyncio.TimeoutError) as exc:
            error = SendError(f"unable to send email via {self.sending.address}: {exc}")
            error.__cause__ = exc
            self.verdict.set_error(error)
            return False

        for address, reply in (refused or {}).items():
            self.verdict.failed_recipients[address] = str(reply)
        if refused:
            self.logger.warning("Recipients refused by %s: %s", self.sending.address, ", ".join(refused))

        self.logger.info("Probe %r accepted by %s: %s", self.probe.subject, self.sending.address, response)
        self.verdict.mark_sent()
        return True

    def start_polling(self) -> list[asyncio.Task[None]]:
        """Start one poll session per distinct endpoint."""
        if self.verdict.is_terminal:
            return self.tasks
        options = {
            "settings": self.settings,
            "client_factory": self.client_factory,
            "metrics": self.metrics,
        }
        self.tasks.append(start_polling(self.sending, self.verdict, **options))
        if not self.receiving.same_server(self.sending):
            self.tasks.append(start_polling(self.receiving, self.verdict, **options))
        return self.tasks


__all__ = ["SendOrchestrator", "build_probe_message"]
