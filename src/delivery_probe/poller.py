# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Mailbox poll sessions.

A :class:`MailboxPollSession` watches the inbox of one endpoint on behalf
of a :class:`~delivery_probe.verdict.DeliveryVerdict`. Each call to
:meth:`MailboxPollSession.tick` performs one complete cycle:

1. connect and authenticate (failure aborts the session, no retry);
2. list the inbox;
3. fetch and parse messages one by one, offering each to the verdict;
   the first accepted one is deleted and the scan stops;
4. quit, committing the deletion;
5. decide whether another cycle is needed.

Between cycles the session sleeps for a fixed delay and yields the event
loop entirely. There is no cancellation: a session notices that the
verdict became terminal at its next decision point and stops.
"""

from __future__ import annotations

import asyncio

from .errors import MailboxError, NoResponseError
from .logger import get_logger
from .mailbox import MailboxClient, MailboxClientFactory, open_mailbox_client, parse_mail
from .models import Endpoint, ProbeSettings
from .prometheus import ProbeMetrics
from .verdict import DeliveryVerdict


class MailboxPollSession:
    """Polling state of one endpoint within one run.

    Attributes:
        endpoint: The endpoint whose mailbox is scanned.
        verdict: Shared verdict receiving the evidence.
        attempt: Number of completed cycles that produced no evidence.
        max_attempts: Cycles allowed before reporting :class:`NoResponseError`.
        retry_delay: Seconds slept between two cycles.
        total_messages: Message count of the current inbox snapshot.
        scan_index: Position (1-based) of the message being inspected.
        current_number: Mailbox number of the message being inspected.
        finished: True once the session reached a terminal outcome.
    """

    def __init__(
        self,
        endpoint: Endpoint,
        verdict: DeliveryVerdict,
        *,
        settings: ProbeSettings | None = None,
        attempt: int = 0,
        client_factory: MailboxClientFactory | None = None,
        metrics: ProbeMetrics | None = None,
        logger=None,
    ):
        settings = settings or ProbeSettings()
        self.endpoint = endpoint
        self.verdict = verdict
        self.attempt = attempt
        self.max_attempts = settings.max_attempts
        self.retry_delay = settings.retry_delay
        self.mailbox_timeout = settings.mailbox_timeout
        self.metrics = metrics
        self.logger = logger or get_logger("MailboxPollSession")
        self._client_factory = client_factory or self._default_client

        self.total_messages = 0
        self.scan_index = 0
        self.current_number = 0
        self.finished = False

    @property
    def address(self) -> str:
        return self.endpoint.address

    def _default_client(self, access, timeout: float) -> MailboxClient:
        return open_mailbox_client(access, timeout, logger=self.logger)

    async def run(self) -> None:
        """Run cycles until the session reaches a terminal outcome."""
        if self.metrics:
            self.metrics.session_started()
        try:
            while await self.tick():
                await asyncio.sleep(self.retry_delay)
        except Exception as exc:
            self.logger.exception("Unhandled error while polling %s", self.address)
            self._fail(exc)
        finally:
            if self.metrics:
                self.metrics.session_finished()

    async def tick(self) -> bool:
        """Perform one scan-and-decide cycle.

        Returns:
            True when another cycle should be scheduled after the retry delay.
        """
        if self.finished:
            return False
        if self.verdict.is_terminal:
            self.logger.debug("Verdict for %s already %s, stop polling %s",
                              self.verdict.subject, self.verdict.status.value, self.address)
            self.finished = True
            return False

        self.logger.info("Polling %s (attempt %d/%d)", self.address, self.attempt + 1, self.max_attempts)
        if self.metrics:
            self.metrics.inc_poll_cycle(self.address)

        access = self.endpoint.mailbox
        client = self._client_factory(access, self.mailbox_timeout)
        try:
            await client.connect(self.endpoint.mailbox_host, access.port, access.use_ssl)
            await client.login(access.user, access.password)
            await self._scan(client)
            await client.quit()
        except MailboxError as exc:
            await client.close()
            self._fail(exc)
            return False
        except Exception:
            await client.close()
            raise

        return self._schedule_retry()

    async def _scan(self, client: MailboxClient) -> None:
        numbers = await client.list_messages()
        self.total_messages = len(numbers)
        self.scan_index = 0
        self.current_number = 0
        self.logger.debug("Mailbox %s holds %d messages", self.address, self.total_messages)

        for number in numbers:
            if self.verdict.is_terminal:
                break
            self.scan_index += 1
            self.current_number = number
            raw = await client.retrieve(number)
            mail = parse_mail(number, raw)
            if self.verdict.offer(self.address, mail):
                await client.delete(number)
                break

    def _schedule_retry(self) -> bool:
        if self.verdict.has_evidence(self.address) or self.verdict.is_terminal:
            self.finished = True
            return False
        self.attempt += 1
        if self.attempt >= self.max_attempts:
            self.logger.error("No correlated message on %s after %d attempts", self.address, self.attempt)
            self._fail(NoResponseError())
            return False
        return True

    def _fail(self, error: BaseException) -> None:
        self.finished = True
        if self.metrics:
            self.metrics.inc_poll_error(self.address)
        self.verdict.set_error(error)


def start_polling(
    endpoint: Endpoint,
    verdict: DeliveryVerdict,
    retry_count: int = 0,
    **kwargs,
) -> asyncio.Task[None]:
    """Start polling ``endpoint`` in a background task.

    Keyword arguments are forwarded to :class:`MailboxPollSession`.
    """
    session = MailboxPollSession(endpoint, verdict, attempt=retry_count, **kwargs)
    return asyncio.create_task(session.run(), name=f"poll-{endpoint.address}")


__all__ = ["MailboxPollSession", "start_polling"]
