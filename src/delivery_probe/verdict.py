# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Correlation state of one probe run.

A :class:`DeliveryVerdict` collects evidence from the poll sessions of
the sending and receiving endpoints and turns it into a single status.
The two sessions run concurrently on one event loop, so evidence arrives
in any order; the transitions below reach the same terminal status for
either order.

Transitions::

    NEW ------------------------------------------> ERROR   (any error, from any non-terminal state)
    NEW -- send accepted --> SENT
    SENT/INCOMPLETE -- bounce from sending -------> REJECTED
    SENT -- match, sending == receiving ----------> COMPLETED
    SENT -- match from sending, receiving missing -> INCOMPLETE
    SENT/INCOMPLETE -- both legs present ---------> COMPLETED
    SENT -- match from receiving -----------------> COMPLETED, or INCOMPLETE when
                                                    a confirmation artifact is required

Once terminal, the verdict ignores further evidence and errors, and its
completion handle fires exactly once.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from typing import Any

from .errors import CorrelationError
from .logger import get_logger
from .mailbox.base import ParsedMail
from .models import DEFAULT_BOUNCE_MARKERS, DeliveryStatus


class DeliveryVerdict:
    """Evidence and status of one probe.

    Attributes:
        sending: Address of the endpoint that sent the probe.
        receiving: Address of the endpoint the probe was sent to.
        subject: Probe subject, searched for in candidate subjects.
        require_confirmation: Whether the receiving copy alone is not
            enough to complete the run. A bounce seen on the sending
            endpoint overrides receiving evidence that arrived first only
            when this is True; otherwise that evidence already completed
            the run and the bounce is ignored.
        status: Current :class:`DeliveryStatus`.
        error: The fatal error, set only when ``status`` is ERROR.
        evidence_from_sending: Correlated message seen on the sending endpoint.
        evidence_from_receiving: Correlated message seen on the receiving endpoint.
        failed_recipients: Recipients refused during an accepted transaction.
    """

    def __init__(
        self,
        sending: str,
        receiving: str,
        subject: str,
        *,
        require_confirmation: bool = False,
        bounce_markers: Iterable[str] = DEFAULT_BOUNCE_MARKERS,
        logger=None,
    ):
        self.sending = sending
        self.receiving = receiving
        self.subject = subject
        self.require_confirmation = require_confirmation
        self.bounce_markers = tuple(marker.lower() for marker in bounce_markers)
        self.logger = logger or get_logger("DeliveryVerdict")

        self.status = DeliveryStatus.NEW
        self.error: BaseException | None = None
        self.evidence_from_sending: ParsedMail | None = None
        self.evidence_from_receiving: ParsedMail | None = None
        self.failed_recipients: dict[str, str] = {}

        self._finished = asyncio.Event()
        self._callbacks: list[Callable[[DeliveryVerdict], Any]] = []

    # ---------------------------------------------------------------- queries
    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def has_error(self) -> bool:
        return self.status == DeliveryStatus.ERROR

    def is_bounce(self, mail: ParsedMail) -> bool:
        """Return True when ``mail`` looks like a non-delivery notice."""
        subject = (mail.subject or "").lower()
        return any(marker in subject for marker in self.bounce_markers)

    def has_evidence(self, address: str) -> bool:
        """Return True when polling ``address`` can stop.

        The sending endpoint is done once it produced evidence of its own,
        or, unless a confirmation artifact is required, once the receiving
        endpoint did. An unknown address is a correlation defect and is
        reported as an error.
        """
        if address == self.sending:
            if self.evidence_from_sending is not None:
                return True
            return self.evidence_from_receiving is not None and not self.require_confirmation
        if address == self.receiving:
            return self.evidence_from_receiving is not None
        self.set_error(CorrelationError(f"internal bug assertion: unrecognized server {address}"))
        return False

    # ------------------------------------------------------------ transitions
    def set_error(self, error: BaseException) -> None:
        """Move to ERROR unless a terminal status was already reached."""
        if self.is_terminal:
            self.logger.debug("Ignoring error after %s verdict for %s: %s", self.status.value, self.subject, error)
            return
        self.logger.warning("Probe %s failed: %s", self.subject, error)
        self.error = error
        self._finish(DeliveryStatus.ERROR)

    def mark_sent(self) -> None:
        """Record that the outbound transaction was accepted."""
        if self.status != DeliveryStatus.NEW:
            self.logger.debug("Ignoring send confirmation in status %s", self.status.value)
            return
        self._transition(DeliveryStatus.SENT)

    def offer(self, address: str, mail: ParsedMail) -> bool:
        """Present a candidate message found on endpoint ``address``.

        Returns:
            True when the message correlates to the probe and was accepted
            as evidence; the caller then removes it from the mailbox.
            False for unrelated messages, duplicates and any arrival after
            the verdict became terminal.
        """
        self.logger.debug("Comparing subject %r from %s with %r", mail.subject, address, self.subject)
        if self.is_terminal:
            return False
        if not mail.subject or self.subject not in mail.subject:
            return False
        if address == self.sending:
            return self._accept_from_sending(mail)
        if address == self.receiving:
            return self._accept_from_receiving(mail)
        self.set_error(CorrelationError(f"internal bug assertion: unrecognized server {address}"))
        return False

    def _accept_from_sending(self, mail: ParsedMail) -> bool:
        if self.evidence_from_sending is not None:
            return False
        self.logger.info("Correlated message %r on sending endpoint %s", mail.subject, self.sending)
        self.evidence_from_sending = mail
        if self.is_bounce(mail):
            self._finish(DeliveryStatus.REJECTED)
        elif self.sending == self.receiving or self.evidence_from_receiving is not None:
            self._finish(DeliveryStatus.COMPLETED)
        else:
            self._transition(DeliveryStatus.INCOMPLETE)
        return True

    def _accept_from_receiving(self, mail: ParsedMail) -> bool:
        if self.evidence_from_receiving is not None:
            return False
        self.logger.info("Correlated message %r on receiving endpoint %s", mail.subject, self.receiving)
        self.evidence_from_receiving = mail
        if self.evidence_from_sending is not None or not self.require_confirmation:
            self._finish(DeliveryStatus.COMPLETED)
        else:
            self._transition(DeliveryStatus.INCOMPLETE)
        return True

    def _transition(self, status: DeliveryStatus) -> None:
        if status != self.status:
            self.logger.info("Probe %s: %s -> %s", self.subject, self.status.value, status.value)
        self.status = status

    def _finish(self, status: DeliveryStatus) -> None:
        self._transition(status)
        self._finished.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(self)

    # ------------------------------------------------------------- completion
    def add_done_callback(self, callback: Callable[[DeliveryVerdict], Any]) -> None:
        """Call ``callback(verdict)`` once the verdict is terminal.

        The callback runs immediately when the verdict already finished.
        """
        if self.is_terminal:
            callback(self)
        else:
            self._callbacks.append(callback)

    async def wait(self) -> DeliveryVerdict:
        """Wait until the verdict reaches a terminal status."""
        await self._finished.wait()
        return self

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON friendly summary."""

        def _mail(mail: ParsedMail | None) -> dict[str, Any] | None:
            if mail is None:
                return None
            return {"subject": mail.subject, "from": mail.sender, "message_id": mail.message_id, "date": mail.date}

        return {
            "subject": self.subject,
            "sending": self.sending,
            "receiving": self.receiving,
            "status": self.status.value,
            "error": str(self.error) if self.error is not None else None,
            "error_code": getattr(self.error, "code", None),
            "evidence_from_sending": _mail(self.evidence_from_sending),
            "evidence_from_receiving": _mail(self.evidence_from_receiving),
            "failed_recipients": dict(self.failed_recipients),
        }


__all__ = ["DeliveryVerdict"]
