# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Fakes for the mailbox and SMTP seams shared by the unit tests."""

from __future__ import annotations

from email.message import EmailMessage

from delivery_probe.errors import MailboxStateError
from delivery_probe.mailbox import MailboxClient
from delivery_probe.models import Endpoint, MailboxAccess, SmtpAccess


def make_mail(subject: str | None, sender: str = "someone@example.org") -> bytes:
    """Return a raw RFC 5322 message with the given subject."""
    msg = EmailMessage()
    msg["From"] = sender
    msg["To"] = "probe@example.org"
    if subject is not None:
        msg["Subject"] = subject
    msg["Message-ID"] = f"<{abs(hash((subject, sender)))}@example.org>"
    msg.set_content("body")
    return msg.as_bytes()


def make_endpoint(address: str, user: str | None = None) -> Endpoint:
    """Return an endpoint whose mailbox user defaults to probe@<address>."""
    user = user or f"probe@{address}"
    return Endpoint(
        address=address,
        smtp=SmtpAccess(port=465, user=user, password="secret"),
        mailbox=MailboxAccess(user=user, password="secret"),
    )


class FakeMailbox:
    """In-memory mailbox shared by the fake clients of one endpoint.

    Attributes:
        messages: Raw messages currently stored.
        sessions: Number of connections opened so far.
        commands: Log of the commands received.
        fail_on: Exceptions raised by command name ("connect", "login", ...).
    """

    def __init__(self, messages=None):
        self.messages: list[bytes] = list(messages or [])
        self.sessions = 0
        self.commands: list[str] = []
        self.fail_on: dict[str, Exception] = {}
        self._arrivals: dict[int, list[bytes]] = {}

    def schedule(self, session: int, raw: bytes) -> None:
        """Make ``raw`` appear right before connection number ``session``."""
        self._arrivals.setdefault(session, []).append(raw)

    def on_connect(self) -> None:
        self.sessions += 1
        self.messages.extend(self._arrivals.pop(self.sessions, []))

    def check(self, command: str) -> None:
        self.commands.append(command)
        error = self.fail_on.get(command)
        if error is not None:
            raise error


class FakeMailboxClient(MailboxClient):
    """MailboxClient working on a :class:`FakeMailbox`."""

    def __init__(self, mailbox: FakeMailbox):
        self.mailbox = mailbox
        self.connected = False
        self.authenticated = False
        self.closed = False
        self._deleted: set[int] = set()

    async def connect(self, host, port, use_ssl=True):
        self.mailbox.on_connect()
        self.mailbox.check("connect")
        self.connected = True

    async def login(self, user, password):
        if not self.connected:
            raise MailboxStateError("login before connect")
        self.mailbox.check("login")
        self.authenticated = True

    async def list_messages(self):
        self.mailbox.check("list")
        return list(range(1, len(self.mailbox.messages) + 1))

    async def retrieve(self, number):
        self.mailbox.check("retrieve")
        return self.mailbox.messages[number - 1]

    async def delete(self, number):
        self.mailbox.check("delete")
        self._deleted.add(number)

    async def quit(self):
        self.mailbox.check("quit")
        self.mailbox.messages = [
            raw for index, raw in enumerate(self.mailbox.messages, start=1) if index not in self._deleted
        ]
        self.connected = False

    async def close(self):
        self.closed = True
        self.connected = False


class DummySMTP:
    """Stand-in for aiosmtplib.SMTP recording the transaction."""

    instances: list["DummySMTP"] = []
    fail_with: Exception | None = None
    refused: dict = {}

    def __init__(self, hostname=None, port=None, use_tls=False, start_tls=None, validate_certs=True, timeout=None):
        self.hostname = hostname
        self.port = port
        self.use_tls = use_tls
        self.start_tls = start_tls
        self.validate_certs = validate_certs
        self.timeout = timeout
        self.is_connected = False
        self.login_credentials = None
        self.sent = []
        self.quit_called = False
        DummySMTP.instances.append(self)

    async def connect(self):
        self.is_connected = True

    async def login(self, user, password):
        self.login_credentials = (user, password)

    async def send_message(self, msg, sender=None, recipients=None):
        if DummySMTP.fail_with is not None:
            raise DummySMTP.fail_with
        self.sent.append((msg, sender, recipients))
        return dict(DummySMTP.refused), "250 OK queued"

    async def quit(self):
        self.quit_called = True
        self.is_connected = False
