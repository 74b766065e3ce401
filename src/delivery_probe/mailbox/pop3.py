# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Async POP3 client built on the standard library ``poplib``.

``poplib`` is blocking, so every command runs in a worker thread via
``asyncio.to_thread`` and the event loop stays free for the other poll
session of the run.
"""

from __future__ import annotations

import asyncio
import poplib
from typing import TYPE_CHECKING

from ..errors import (
    MailboxAuthenticationError,
    MailboxConnectionError,
    MailboxOperationError,
    MailboxStateError,
)
from .base import MailboxClient, make_ssl_context

if TYPE_CHECKING:
    from logging import Logger


def _describe(exc: Exception) -> str:
    """Return the server response carried by a poplib error."""
    if exc.args and isinstance(exc.args[0], bytes):
        return exc.args[0].decode("utf-8", errors="replace")
    return str(exc)


class POP3Client(MailboxClient):
    """POP3 mailbox client."""

    def __init__(self, *, timeout: float = 30.0, verify_tls: bool = True, logger: Logger | None = None):
        self._timeout = timeout
        self._verify_tls = verify_tls
        self._logger = logger
        self._conn: poplib.POP3 | None = None
        self._authenticated = False
        self._host: str | None = None

    async def connect(self, host: str, port: int, use_ssl: bool = True) -> None:
        def _open() -> poplib.POP3:
            if use_ssl:
                return poplib.POP3_SSL(host, port, timeout=self._timeout, context=make_ssl_context(self._verify_tls))
            return poplib.POP3(host, port, timeout=self._timeout)

        if self._conn is not None:
            raise MailboxStateError("POP3 connect issued on an open session")
        try:
            self._conn = await asyncio.to_thread(_open)
        except (OSError, poplib.error_proto) as exc:
            raise MailboxConnectionError(f"unable to connect to {host}:{port}: {_describe(exc)}") from exc
        self._host = host
        if self._logger:
            self._logger.debug("POP3 connected to %s:%d", host, port)

    async def login(self, user: str, password: str) -> None:
        conn = self._require_connection("USER")
        if self._authenticated:
            raise MailboxStateError("POP3 USER issued after authentication")

        def _login() -> None:
            conn.user(user)
            conn.pass_(password)

        try:
            await asyncio.to_thread(_login)
        except poplib.error_proto as exc:
            raise MailboxAuthenticationError(f"login refused for {user}: {_describe(exc)}") from exc
        except OSError as exc:
            raise MailboxConnectionError(f"connection lost during login: {exc}") from exc
        self._authenticated = True
        if self._logger:
            self._logger.debug("POP3 authenticated on %s as %s", self._host, user)

    async def list_messages(self) -> list[int]:
        conn = self._require_session("LIST")
        _, listings, _ = await self._call("list", conn.list)
        numbers: list[int] = []
        for line in listings:
            parts = line.split()
            if parts and parts[0].isdigit():
                numbers.append(int(parts[0]))
        return numbers

    async def retrieve(self, number: int) -> bytes:
        conn = self._require_session("RETR")
        _, lines, _ = await self._call("retr", conn.retr, number)
        return b"\r\n".join(lines)

    async def delete(self, number: int) -> None:
        conn = self._require_session("DELE")
        await self._call("dele", conn.dele, number)

    async def quit(self) -> None:
        conn = self._require_connection("QUIT")
        try:
            await self._call("quit", conn.quit)
        finally:
            self._conn = None
            self._authenticated = False

    async def close(self) -> None:
        conn, self._conn = self._conn, None
        self._authenticated = False
        if conn is None:
            return
        try:
            await asyncio.to_thread(conn.close)
        except OSError as exc:
            if self._logger:
                self._logger.debug("Ignoring error while closing POP3 connection: %s", exc)

    def _require_connection(self, command: str) -> poplib.POP3:
        if self._conn is None:
            raise MailboxStateError(f"POP3 {command} issued before connect")
        return self._conn

    def _require_session(self, command: str) -> poplib.POP3:
        conn = self._require_connection(command)
        if not self._authenticated:
            raise MailboxStateError(f"POP3 {command} issued before login")
        return conn

    async def _call(self, operation: str, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except poplib.error_proto as exc:
            raise MailboxOperationError(operation, _describe(exc)) from exc
        except OSError as exc:
            raise MailboxOperationError(operation, f"connection error: {exc}") from exc


__all__ = ["POP3Client"]
