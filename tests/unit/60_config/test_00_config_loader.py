# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for the INI configuration loader."""

import pytest

from delivery_probe.config_loader import default_config_path, load_config
from delivery_probe.models import MailboxProtocol, ProbeSettings

CONFIG = """
[probe]
retry_delay = 0.5
max_attempts = 10
require_confirmation = yes
bounce_markers = Returned mail, Failure notice

[endpoint:alpha]
address = hisp-a.example.org
smtp_port = 587
smtp_use_tls = true
smtp_user = probe@hisp-a.example.org
smtp_password = secret
mailbox_port = 995
mailbox_user = probe@hisp-a.example.org
mailbox_password = secret
verify_tls = false

[endpoint:beta]
address = hisp-b.example.org
smtp_host = smtp.hisp-b.example.org
mailbox_protocol = imap
mailbox_host = imap.hisp-b.example.org
mailbox_port = 993
mailbox_user = probe@hisp-b.example.org
mailbox_password = secret
mailbox_folder = Probes
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("DPROBE_CONFIG", raising=False)
    for key in ProbeSettings.model_fields:
        monkeypatch.delenv(f"DPROBE_{key.upper()}", raising=False)


@pytest.fixture
def write_config(tmp_path):
    def _write(text):
        path = tmp_path / "probe.ini"
        path.write_text(text)
        return str(path)

    return _write


def test_load_full_config(write_config):
    config = load_config(write_config(CONFIG))

    assert config.settings.retry_delay == 0.5
    assert config.settings.max_attempts == 10
    assert config.settings.require_confirmation is True
    assert config.settings.bounce_markers == ("Returned mail", "Failure notice")
    assert sorted(config.endpoints) == ["alpha", "beta"]

    alpha = config.endpoint("alpha")
    assert alpha.address == "hisp-a.example.org"
    assert alpha.smtp.port == 587
    assert alpha.smtp.use_tls is True
    assert alpha.smtp.verify_tls is False
    assert alpha.mailbox.verify_tls is False
    assert alpha.mailbox_host == "hisp-a.example.org"

    beta = config.endpoint("beta")
    assert beta.smtp_host == "smtp.hisp-b.example.org"
    assert beta.mailbox.protocol == MailboxProtocol.IMAP
    assert beta.mailbox_host == "imap.hisp-b.example.org"
    assert beta.mailbox.folder == "Probes"
    assert beta.mailbox.verify_tls is True


def test_missing_file_uses_defaults(tmp_path):
    config = load_config(str(tmp_path / "absent.ini"))
    assert config.settings == ProbeSettings()
    assert config.endpoints == {}


def test_environment_fallback(write_config, monkeypatch):
    monkeypatch.setenv("DPROBE_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("DPROBE_RETRY_DELAY", "7")
    monkeypatch.setenv("DPROBE_REQUIRE_CONFIRMATION", "on")

    config = load_config(write_config("[probe]\nretry_delay = 1\n"))

    assert config.settings.retry_delay == 1.0
    assert config.settings.max_attempts == 5
    assert config.settings.require_confirmation is True


def test_default_path_from_environment(monkeypatch):
    assert default_config_path() == "probe.ini"
    monkeypatch.setenv("DPROBE_CONFIG", "/etc/delivery-probe/probe.ini")
    assert default_config_path() == "/etc/delivery-probe/probe.ini"


def test_invalid_boolean(write_config):
    with pytest.raises(ValueError, match="require_confirmation"):
        load_config(write_config("[probe]\nrequire_confirmation = maybe\n"))


def test_invalid_setting(write_config):
    with pytest.raises(ValueError, match=r"\[probe\]"):
        load_config(write_config("[probe]\nmax_attempts = 0\n"))


def test_endpoint_requires_address(write_config):
    with pytest.raises(ValueError, match="address"):
        load_config(write_config("[endpoint:gamma]\nmailbox_user = u\nmailbox_password = p\n"))


def test_endpoint_invalid_port(write_config):
    text = "[endpoint:gamma]\naddress = g.example.org\nmailbox_port = pop\nmailbox_user = u\nmailbox_password = p\n"
    with pytest.raises(ValueError, match=r"\[endpoint:gamma\]"):
        load_config(write_config(text))


def test_unknown_key_is_ignored_with_warning(write_config, caplog):
    text = "[endpoint:gamma]\naddress = g.example.org\nmailbox_user = u\nmailbox_password = p\ncolour = blue\n"
    config = load_config(write_config(text))
    assert config.endpoint("gamma").address == "g.example.org"
    assert "colour" in caplog.text


def test_unknown_endpoint_lists_configured(write_config):
    config = load_config(write_config(CONFIG))
    with pytest.raises(KeyError, match="alpha, beta"):
        config.endpoint("omega")
