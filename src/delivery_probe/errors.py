# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Exceptions reported to a delivery verdict.

Every failure observed during a run ends up as the ``error`` of the run's
:class:`~delivery_probe.verdict.DeliveryVerdict`. Each exception carries a
short machine readable ``code`` next to its human readable message.
"""

from __future__ import annotations


class ProbeError(RuntimeError):
    """Base class for all errors raised by the delivery probe."""

    default_code = "probe_error"

    def __init__(self, message: str, *, code: str | None = None):
        super().__init__(message)
        self.code = code or self.default_code


class SendError(ProbeError):
    """The outbound SMTP transaction of the probe failed."""

    default_code = "send_failed"


class MailboxError(ProbeError):
    """Base class for mailbox (POP3/IMAP) failures."""

    default_code = "mailbox_error"


class MailboxConnectionError(MailboxError):
    """The mailbox server could not be reached."""

    default_code = "mailbox_connect_failed"


class MailboxAuthenticationError(MailboxError):
    """The mailbox server refused the credentials or the maildrop is locked."""

    default_code = "mailbox_login_failed"


class MailboxStateError(MailboxError):
    """A mailbox command was issued in the wrong protocol state."""

    default_code = "mailbox_invalid_state"


class MailboxOperationError(MailboxError):
    """The mailbox server rejected a list, fetch, delete or quit command."""

    default_code = "mailbox_operation_failed"

    def __init__(self, operation: str, message: str):
        super().__init__(f"mailbox error on {operation}: {message}")
        self.operation = operation


class NoResponseError(ProbeError):
    """No correlated message showed up within the retry budget."""

    default_code = "no_response"

    def __init__(self, message: str = "no response from receiving server"):
        super().__init__(message)


class CorrelationError(ProbeError):
    """Evidence arrived from an endpoint the verdict does not know about."""

    default_code = "correlation_defect"


class UnexpectedStatusError(ProbeError):
    """A run finished with a status other than the expected one."""

    default_code = "unexpected_status"

    def __init__(self, actual: str, expected: str):
        super().__init__(f"Unexpected result status ({actual} vs {expected})")
        self.actual = actual
        self.expected = expected


__all__ = [
    "CorrelationError",
    "MailboxAuthenticationError",
    "MailboxConnectionError",
    "MailboxError",
    "MailboxOperationError",
    "MailboxStateError",
    "NoResponseError",
    "ProbeError",
    "SendError",
    "UnexpectedStatusError",
]
