# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for the delivery-probe command line."""

import json

import pytest
from click.testing import CliRunner

from delivery_probe.cli import main
from delivery_probe.errors import MailboxConnectionError
from tests.helpers import FakeMailbox, FakeMailboxClient, make_mail

CONFIG = """
[probe]
retry_delay = 0
max_attempts = 3

[endpoint:alpha]
address = hisp-a.example.org
smtp_port = 465
smtp_user = probe@hisp-a.example.org
smtp_password = secret
mailbox_user = probe@hisp-a.example.org
mailbox_password = secret

[endpoint:beta]
address = hisp-b.example.org
mailbox_user = probe@hisp-b.example.org
mailbox_password = secret
"""

ALPHA = "probe@hisp-a.example.org"
BETA = "probe@hisp-b.example.org"


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "probe.ini"
    path.write_text(CONFIG)
    return str(path)


@pytest.fixture
def fake_mailboxes(monkeypatch):
    mailboxes = {ALPHA: FakeMailbox(), BETA: FakeMailbox()}

    def fake_open(access, timeout=30.0, logger=None):
        return FakeMailboxClient(mailboxes[access.user])

    monkeypatch.setattr("delivery_probe.poller.open_mailbox_client", fake_open)
    monkeypatch.setattr("delivery_probe.maintenance.open_mailbox_client", fake_open)
    return mailboxes


@pytest.fixture
def invoke(config_path, monkeypatch):
    monkeypatch.setattr("delivery_probe.cli.configure_logging", lambda level: None)
    runner = CliRunner()

    def _invoke(*args):
        return runner.invoke(main, ["-c", config_path, *args])

    return _invoke


def run_args(*extra):
    return ["run", "alpha", "beta", "--from", ALPHA, "--to", BETA, "--subject", "T1-abc", *extra]


def test_endpoints(invoke):
    result = invoke("endpoints")
    assert result.exit_code == 0
    assert "alpha" in result.output
    assert "beta" in result.output


def test_no_endpoints(tmp_path, monkeypatch):
    monkeypatch.setattr("delivery_probe.cli.configure_logging", lambda level: None)
    result = CliRunner().invoke(main, ["-c", str(tmp_path / "absent.ini"), "endpoints"])
    assert result.exit_code == 0
    assert "No endpoints configured" in result.output


def test_invalid_config(tmp_path, monkeypatch):
    monkeypatch.setattr("delivery_probe.cli.configure_logging", lambda level: None)
    path = tmp_path / "bad.ini"
    path.write_text("[probe]\nmax_attempts = zero\n")
    result = CliRunner().invoke(main, ["-c", str(path), "endpoints"])
    assert result.exit_code == 2


def test_run_completed(invoke, smtp, fake_mailboxes):
    fake_mailboxes[BETA].schedule(2, make_mail("T1-abc"))
    result = invoke(*run_args())
    assert result.exit_code == 0, result.output
    assert "T1-abc: completed" in result.output
    assert smtp.instances[0].sent[0][2] == [BETA]


def test_run_json(invoke, smtp, fake_mailboxes):
    fake_mailboxes[BETA].schedule(1, make_mail("Re: T1-abc"))
    result = invoke(*run_args("--json"))
    assert result.exit_code == 0, result.output
    assert '"status": "completed"' in result.output


def test_run_no_response(invoke, smtp, fake_mailboxes):
    result = invoke(*run_args())
    assert result.exit_code == 1
    assert "no response from receiving server" in result.output


def test_run_expect_rejected(invoke, smtp, fake_mailboxes):
    fake_mailboxes[ALPHA].schedule(1, make_mail("Undeliverable: T1-abc"))
    result = invoke(*run_args("--expect", "rejected"))
    assert result.exit_code == 0, result.output
    assert "T1-abc: rejected" in result.output


def test_run_metrics(invoke, smtp, fake_mailboxes):
    fake_mailboxes[BETA].schedule(1, make_mail("T1-abc"))
    result = invoke(*run_args("--metrics"))
    assert result.exit_code == 0, result.output
    assert "dprobe_runs_total" in result.output


def test_run_unknown_endpoint(invoke, smtp):
    result = invoke("run", "alpha", "omega", "--from", ALPHA, "--to", BETA)
    assert result.exit_code == 2
    assert "omega" in result.output


def test_purge(invoke, fake_mailboxes):
    fake_mailboxes[BETA].messages = [make_mail("old"), make_mail("older")]
    result = invoke("purge", "beta")
    assert result.exit_code == 0, result.output
    assert "Deleted 2 messages" in result.output
    assert fake_mailboxes[BETA].messages == []


def test_purge_failure(invoke, fake_mailboxes):
    fake_mailboxes[BETA].fail_on["connect"] = MailboxConnectionError("unable to connect to hisp-b")
    result = invoke("purge", "beta")
    assert result.exit_code == 1
    assert "unable to connect" in result.output


def test_show_json(invoke, fake_mailboxes):
    fake_mailboxes[ALPHA].messages = [make_mail("T1-abc"), make_mail("Weekly newsletter")]
    result = invoke("show", "alpha", "--json")
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert [item["subject"] for item in data] == ["T1-abc", "Weekly newsletter"]
    assert len(fake_mailboxes[ALPHA].messages) == 2


def test_show_empty(invoke, fake_mailboxes):
    result = invoke("show", "beta")
    assert result.exit_code == 0
    assert "empty" in result.output
