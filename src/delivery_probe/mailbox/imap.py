# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Async IMAP client wrapper using aioimaplib.

Exposes the same list/retrieve/delete/quit surface as the POP3 client:
messages are addressed by sequence number, deletions are flagged with
``\\Deleted`` and only expunged on :meth:`IMAPClient.quit`.
"""

from __future__ import annotations

import asyncio
import re
from typing import TYPE_CHECKING

import aioimaplib

from ..errors import (
    MailboxAuthenticationError,
    MailboxConnectionError,
    MailboxOperationError,
    MailboxStateError,
)
from .base import MailboxClient, make_ssl_context

if TYPE_CHECKING:
    from logging import Logger

_EXISTS_RE = re.compile(r"(\d+)\s+EXISTS")


def _text(line) -> str:
    if isinstance(line, (bytes, bytearray)):
        return bytes(line).decode("utf-8", errors="replace")
    return str(line)


class IMAPClient(MailboxClient):
    """IMAP mailbox client scanning a single folder."""

    def __init__(
        self,
        *,
        folder: str = "INBOX",
        timeout: float = 30.0,
        verify_tls: bool = True,
        logger: Logger | None = None,
    ):
        self._folder = folder
        self._timeout = timeout
        self._verify_tls = verify_tls
        self._logger = logger
        self._client: aioimaplib.IMAP4_SSL | aioimaplib.IMAP4 | None = None
        self._selected = False
        self._exists = 0

    async def connect(self, host: str, port: int, use_ssl: bool = True) -> None:
        if self._client is not None:
            raise MailboxStateError("IMAP connect issued on an open session")
        if use_ssl:
            client = aioimaplib.IMAP4_SSL(
                host=host, port=port, timeout=self._timeout, ssl_context=make_ssl_context(self._verify_tls)
            )
        else:
            client = aioimaplib.IMAP4(host=host, port=port, timeout=self._timeout)
        try:
            await client.wait_hello_from_server()
        except (OSError, asyncio.TimeoutError, aioimaplib.AioImapException) as exc:
            raise MailboxConnectionError(f"unable to connect to {host}:{port}: {exc}") from exc
        self._client = client
        if self._logger:
            self._logger.debug("IMAP connected to %s:%d", host, port)

    async def login(self, user: str, password: str) -> None:
        client = self._require_connection("LOGIN")
        if self._selected:
            raise MailboxStateError("IMAP LOGIN issued after authentication")
        try:
            response = await client.login(user, password)
        except (OSError, asyncio.TimeoutError, aioimaplib.AioImapException) as exc:
            raise MailboxConnectionError(f"connection lost during login: {exc}") from exc
        if response.result != "OK":
            raise MailboxAuthenticationError(f"login refused for {user}: {response.lines}")

        response = await self._checked("select", client.select(self._folder))
        self._exists = 0
        for line in response.lines:
            match = _EXISTS_RE.search(_text(line))
            if match:
                self._exists = int(match.group(1))
                break
        self._selected = True
        if self._logger:
            self._logger.debug("Selected folder %s, %d messages", self._folder, self._exists)

    async def list_messages(self) -> list[int]:
        self._require_session("LIST")
        return list(range(1, self._exists + 1))

    async def retrieve(self, number: int) -> bytes:
        client = self._require_session("FETCH")
        response = await self._checked("fetch", client.fetch(str(number), "(RFC822)"))
        # aioimaplib returns the literal message body as a bytearray
        for item in response.lines:
            if isinstance(item, bytearray) and item:
                return bytes(item)
        raise MailboxOperationError("fetch", f"no content returned for message {number}")

    async def delete(self, number: int) -> None:
        client = self._require_session("STORE")
        await self._checked("delete", client.store(str(number), "+FLAGS", "(\\Deleted)"))

    async def quit(self) -> None:
        client = self._require_connection("LOGOUT")
        try:
            if self._selected:
                await self._checked("expunge", client.expunge())
            await self._checked("quit", client.logout())
        finally:
            self._client = None
            self._selected = False

    async def close(self) -> None:
        client, self._client = self._client, None
        self._selected = False
        if client is None:
            return
        try:
            await client.logout()
        except (OSError, asyncio.TimeoutError, aioimaplib.AioImapException) as exc:
            if self._logger:
                self._logger.debug("Ignoring error while closing IMAP connection: %s", exc)

    def _require_connection(self, command: str):
        if self._client is None:
            raise MailboxStateError(f"IMAP {command} issued before connect")
        return self._client

    def _require_session(self, command: str):
        client = self._require_connection(command)
        if not self._selected:
            raise MailboxStateError(f"IMAP {command} issued before login")
        return client

    async def _checked(self, operation: str, awaitable):
        try:
            response = await awaitable
        except (OSError, asyncio.TimeoutError, aioimaplib.AioImapException) as exc:
            raise MailboxOperationError(operation, f"connection error: {exc}") from exc
        if response.result != "OK":
            raise MailboxOperationError(operation, " ".join(_text(line) for line in response.lines))
        return response


__all__ = ["IMAPClient"]
