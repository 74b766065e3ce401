# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Mailbox clients used to inspect endpoint inboxes."""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from ..models import MailboxAccess, MailboxProtocol
from .base import MailboxClient, ParsedMail, make_ssl_context, parse_mail
from .imap import IMAPClient
from .pop3 import POP3Client

if TYPE_CHECKING:
    from logging import Logger

MailboxClientFactory = Callable[[MailboxAccess, float], MailboxClient]


def open_mailbox_client(access: MailboxAccess, timeout: float = 30.0, logger: Logger | None = None) -> MailboxClient:
    """Return an unconnected client for the protocol of ``access``."""
    if access.protocol == MailboxProtocol.IMAP:
        return IMAPClient(folder=access.folder, timeout=timeout, verify_tls=access.verify_tls, logger=logger)
    return POP3Client(timeout=timeout, verify_tls=access.verify_tls, logger=logger)


__all__ = [
    "IMAPClient",
    "MailboxClient",
    "MailboxClientFactory",
    "POP3Client",
    "ParsedMail",
    "make_ssl_context",
    "open_mailbox_client",
    "parse_mail",
]
