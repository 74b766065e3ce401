# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Shared fixtures for the delivery probe tests."""

from __future__ import annotations

import pytest

from delivery_probe.models import ProbeSettings
from tests.helpers import DummySMTP, FakeMailbox, FakeMailboxClient, make_endpoint


@pytest.fixture
def smtp(monkeypatch):
    """Patch aiosmtplib.SMTP in the sender module with :class:`DummySMTP`."""
    DummySMTP.instances = []
    DummySMTP.fail_with = None
    DummySMTP.refused = {}
    monkeypatch.setattr("delivery_probe.sender.aiosmtplib.SMTP", DummySMTP)
    return DummySMTP


@pytest.fixture
def mailboxes():
    """Fake mailboxes keyed by mailbox user."""
    return {}


@pytest.fixture
def client_factory(mailboxes):
    """Mailbox client factory backed by the ``mailboxes`` fixture."""
    clients = []

    def factory(access, timeout):
        mailbox = mailboxes.setdefault(access.user, FakeMailbox())
        client = FakeMailboxClient(mailbox)
        clients.append(client)
        return client

    factory.clients = clients
    return factory


@pytest.fixture
def sending_endpoint():
    return make_endpoint("hisp-s.example.org")


@pytest.fixture
def receiving_endpoint():
    return make_endpoint("hisp-r.example.org")


@pytest.fixture
def fast_settings():
    """Settings with no delay between poll cycles."""
    return ProbeSettings(retry_delay=0)
