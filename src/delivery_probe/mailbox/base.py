# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Base interface for mailbox clients.

A poll session only needs a handful of mailbox commands: connect,
authenticate, list, retrieve, delete and quit. This module defines that
interface so POP3 and IMAP implementations (and test doubles) can be
swapped without the poll session noticing.

Messages are addressed by their number in the current session. Deletions
only take effect on :meth:`MailboxClient.quit`, so numbers stay stable for
the whole scan.
"""

from __future__ import annotations

import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from email.parser import BytesParser
from email.policy import default as default_policy


@dataclass(frozen=True)
class ParsedMail:
    """Headers of an inbox message relevant to correlation.

    Attributes:
        number: Message number within the mailbox session.
        subject: Decoded Subject header, or None when absent.
        sender: Decoded From header.
        message_id: Message-ID header.
        content_type: MIME type of the top-level part.
        date: Date header as found in the message.
    """

    number: int
    subject: str | None
    sender: str | None = None
    message_id: str | None = None
    content_type: str | None = None
    date: str | None = None


def parse_mail(number: int, raw: bytes) -> ParsedMail:
    """Parse the headers of a raw RFC 5322 message."""
    msg: EmailMessage = BytesParser(policy=default_policy).parsebytes(raw, headersonly=True)

    def header(name: str) -> str | None:
        value = msg.get(name)
        return None if value is None else str(value)

    return ParsedMail(
        number=number,
        subject=header("Subject"),
        sender=header("From"),
        message_id=header("Message-ID"),
        content_type=msg.get_content_type(),
        date=header("Date"),
    )


def make_ssl_context(verify: bool = True) -> ssl.SSLContext:
    """Return a client SSL context, optionally without certificate checks."""
    context = ssl.create_default_context()
    if not verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


class MailboxClient:
    """Abstract async mailbox client.

    Concrete clients translate library failures into the mailbox
    exceptions of :mod:`delivery_probe.errors`.
    """

    async def connect(self, host: str, port: int, use_ssl: bool = True) -> None:
        """Open the connection and wait for the server greeting.

        Raises:
            MailboxConnectionError: If the server cannot be reached.
        """
        raise NotImplementedError

    async def login(self, user: str, password: str) -> None:
        """Authenticate the session.

        Raises:
            MailboxAuthenticationError: If the credentials are refused.
            MailboxStateError: If called before :meth:`connect`.
        """
        raise NotImplementedError

    async def list_messages(self) -> list[int]:
        """Return the numbers of the messages currently in the mailbox."""
        raise NotImplementedError

    async def retrieve(self, number: int) -> bytes:
        """Return the raw content of message ``number``."""
        raise NotImplementedError

    async def delete(self, number: int) -> None:
        """Mark message ``number`` for deletion."""
        raise NotImplementedError

    async def quit(self) -> None:
        """End the session cleanly, committing deletions."""
        raise NotImplementedError

    async def close(self) -> None:
        """Drop the connection without committing anything. Never raises."""
        raise NotImplementedError


__all__ = ["MailboxClient", "ParsedMail", "make_ssl_context", "parse_mail"]
