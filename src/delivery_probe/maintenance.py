# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Mailbox housekeeping for endpoints under test.

Helpers to empty a mailbox before a run and to dump its content while
debugging. They walk the mailbox like a poll session does but carry no
correlation logic. Mailbox errors propagate to the caller.
"""

from __future__ import annotations

from .logger import get_logger
from .mailbox import MailboxClient, MailboxClientFactory, ParsedMail, open_mailbox_client, parse_mail
from .models import Endpoint

logger = get_logger("Maintenance")


async def _open(endpoint: Endpoint, client_factory: MailboxClientFactory | None, timeout: float) -> MailboxClient:
    access = endpoint.mailbox
    factory = client_factory or open_mailbox_client
    client = factory(access, timeout)
    try:
        await client.connect(endpoint.mailbox_host, access.port, access.use_ssl)
        await client.login(access.user, access.password)
    except BaseException:
        await client.close()
        raise
    return client


async def delete_all_messages(
    endpoint: Endpoint,
    *,
    client_factory: MailboxClientFactory | None = None,
    timeout: float = 30.0,
) -> int:
    """Delete every message in the mailbox of ``endpoint``.

    Returns:
        Number of messages deleted.
    """
    logger.info("Deleting all messages on %s", endpoint.address)
    client = await _open(endpoint, client_factory, timeout)
    deleted = 0
    try:
        for number in await client.list_messages():
            await client.delete(number)
            deleted += 1
        await client.quit()
    except BaseException:
        await client.close()
        raise
    logger.info("Deleted %d messages on %s", deleted, endpoint.address)
    return deleted


async def show_all_messages(
    endpoint: Endpoint,
    *,
    client_factory: MailboxClientFactory | None = None,
    timeout: float = 30.0,
) -> list[ParsedMail]:
    """Fetch, parse and log every message in the mailbox of ``endpoint``."""
    logger.info("Showing all messages on %s", endpoint.address)
    client = await _open(endpoint, client_factory, timeout)
    messages: list[ParsedMail] = []
    try:
        for number in await client.list_messages():
            mail = parse_mail(number, await client.retrieve(number))
            logger.info("%s #%d: %s (from %s)", endpoint.address, number, mail.subject, mail.sender)
            messages.append(mail)
        await client.quit()
    except BaseException:
        await client.close()
        raise
    return messages


__all__ = ["delete_all_messages", "show_all_messages"]
