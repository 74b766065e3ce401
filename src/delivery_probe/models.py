# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Pydantic models for the delivery probe.

This module defines the data models shared by the verdict, the poll
sessions, the send orchestrator and the command line.

Models:
    - DeliveryStatus: Lifecycle states of one probe verdict
    - SmtpAccess: Outbound (submission) access of an endpoint
    - MailboxAccess: Mailbox retrieval access of an endpoint
    - Endpoint: A mail server under test
    - Probe: The email sent to test delivery
    - ProbeSettings: Retry budget and correlation options of a run
"""

from __future__ import annotations

import secrets
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_RETRY_DELAY = 2.0
DEFAULT_MAX_ATTEMPTS = 30
DEFAULT_BOUNCE_MARKERS = (
    "Undeliverable",
    "Undelivered Mail Returned to Sender",
    "Delivery Status Notification (Failure)",
)


class DeliveryStatus(str, Enum):
    """Lifecycle states of a delivery verdict.

    Attributes:
        NEW: Verdict created, probe not sent yet.
        ERROR: A fatal error was reported (terminal).
        SENT: The outbound transaction was accepted.
        REJECTED: A non-delivery notice reached the sending endpoint (terminal).
        INCOMPLETE: One leg of evidence is in, waiting for the other.
        COMPLETED: Delivery was confirmed (terminal).
    """

    NEW = "new"
    ERROR = "error"
    SENT = "sent"
    REJECTED = "rejected"
    INCOMPLETE = "incomplete"
    COMPLETED = "completed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @classmethod
    def parse(cls, value: DeliveryStatus | str) -> DeliveryStatus:
        """Return the status matching ``value``, accepting names or values."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        for status in cls:
            if normalized in (status.value, status.name.lower()):
                return status
        raise ValueError(f"Unknown delivery status: {value!r}")


TERMINAL_STATUSES = frozenset({DeliveryStatus.ERROR, DeliveryStatus.REJECTED, DeliveryStatus.COMPLETED})


class MailboxProtocol(str, Enum):
    """Protocols supported for mailbox retrieval."""

    POP3 = "pop3"
    IMAP = "imap"


class SmtpAccess(BaseModel):
    """Outbound submission parameters of an endpoint.

    Attributes:
        host: SMTP host. Defaults to the endpoint address when omitted.
        port: SMTP port.
        user: Username for SMTP AUTH, or None for no authentication.
        password: Password for SMTP AUTH.
        use_tls: None selects implicit TLS on port 465 only; True uses
            implicit TLS on 465 and STARTTLS elsewhere; False is plain SMTP.
        verify_tls: Whether server certificates are verified.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    host: Annotated[str | None, Field(default=None, description="SMTP host")]
    port: Annotated[int, Field(default=465, ge=1, le=65535, description="SMTP port")]
    user: Annotated[str | None, Field(default=None, description="SMTP username")]
    password: Annotated[str | None, Field(default=None, description="SMTP password")]
    use_tls: Annotated[bool | None, Field(default=None, description="TLS mode")]
    verify_tls: Annotated[bool, Field(default=True, description="Verify server certificates")]


class MailboxAccess(BaseModel):
    """Mailbox retrieval parameters of an endpoint.

    Attributes:
        protocol: POP3 or IMAP.
        host: Mailbox host. Defaults to the endpoint address when omitted.
        port: Mailbox port.
        user: Mailbox username.
        password: Mailbox password.
        use_ssl: Whether to connect with implicit TLS.
        verify_tls: Whether server certificates are verified.
        folder: IMAP folder to scan (ignored for POP3).
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    protocol: Annotated[MailboxProtocol, Field(default=MailboxProtocol.POP3, description="Retrieval protocol")]
    host: Annotated[str | None, Field(default=None, description="Mailbox host")]
    port: Annotated[int, Field(default=995, ge=1, le=65535, description="Mailbox port")]
    user: Annotated[str, Field(min_length=1, description="Mailbox username")]
    password: Annotated[str, Field(description="Mailbox password")]
    use_ssl: Annotated[bool, Field(default=True, description="Use implicit TLS")]
    verify_tls: Annotated[bool, Field(default=True, description="Verify server certificates")]
    folder: Annotated[str, Field(default="INBOX", description="IMAP folder")]


class Endpoint(BaseModel):
    """A mail server under test.

    The ``address`` is the endpoint identity: the verdict correlates
    evidence by it and the send orchestrator uses it to detect that the
    sending and receiving endpoints are the same server.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    address: Annotated[str, Field(min_length=1, description="Endpoint identity (host or IP)")]
    smtp: Annotated[SmtpAccess, Field(default_factory=SmtpAccess, description="Outbound access")]
    mailbox: Annotated[MailboxAccess, Field(description="Mailbox access")]

    @property
    def smtp_host(self) -> str:
        return self.smtp.host or self.address

    @property
    def mailbox_host(self) -> str:
        return self.mailbox.host or self.address

    def same_server(self, other: Endpoint) -> bool:
        """Return True when ``other`` identifies the same server."""
        return self.address == other.address


class Probe(BaseModel):
    """The email used to test delivery between two endpoints.

    Attributes:
        mail_from: Envelope and header sender.
        rcpt_to: Recipients, normally one mailbox on the receiving endpoint.
        subject: Correlation key searched for in inbox subjects.
        body: Message body.
        content_type: "plain" or "html".
        attachment: Optional path of a file to attach.
        headers: Extra headers added to the message.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    mail_from: Annotated[str, Field(min_length=1, description="Sender address")]
    rcpt_to: Annotated[list[str], Field(min_length=1, description="Recipient addresses")]
    subject: Annotated[str, Field(min_length=1, description="Correlation subject")]
    body: Annotated[str, Field(default="", description="Message body")]
    content_type: Annotated[Literal["plain", "html"], Field(default="plain", description="Body MIME subtype")]
    attachment: Annotated[str | None, Field(default=None, description="Path of a file to attach")]
    headers: Annotated[dict[str, str], Field(default_factory=dict, description="Extra headers")]

    @field_validator("rcpt_to", mode="before")
    @classmethod
    def split_recipients(cls, v):
        """Accept a comma separated string as well as a list."""
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v


class ProbeSettings(BaseModel):
    """Per-run options of the correlation and polling engine.

    Attributes:
        retry_delay: Seconds between two poll cycles of one endpoint.
        max_attempts: Poll cycles allowed per endpoint before giving up.
        require_confirmation: When True the receiving copy alone does not
            complete a run; a confirmation artifact (e.g. an MDN) must also
            reach the sending endpoint.
        bounce_markers: Subject fragments identifying a non-delivery notice.
        send_timeout: Seconds allowed for the whole SMTP transaction.
        mailbox_timeout: Socket timeout for mailbox commands.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    retry_delay: Annotated[float, Field(default=DEFAULT_RETRY_DELAY, ge=0, description="Delay between poll cycles")]
    max_attempts: Annotated[int, Field(default=DEFAULT_MAX_ATTEMPTS, ge=1, description="Poll cycles per endpoint")]
    require_confirmation: Annotated[bool, Field(default=False, description="Require a confirmation artifact")]
    bounce_markers: Annotated[
        tuple[str, ...],
        Field(default=DEFAULT_BOUNCE_MARKERS, description="Subject fragments of non-delivery notices"),
    ]
    send_timeout: Annotated[float, Field(default=30.0, gt=0, description="SMTP transaction timeout")]
    mailbox_timeout: Annotated[float, Field(default=30.0, gt=0, description="Mailbox command timeout")]

    @field_validator("bounce_markers", mode="before")
    @classmethod
    def split_markers(cls, v):
        if isinstance(v, str):
            return tuple(part.strip() for part in v.split(",") if part.strip())
        return v


def make_probe_subject(prefix: str = "probe") -> str:
    """Return a subject unique enough to correlate one run."""
    return f"{prefix}-{secrets.token_hex(6)}"
