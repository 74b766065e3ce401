# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Configuration loader for probe settings and endpoints.

Settings and endpoints are read from an INI file. Every ``[probe]`` key
falls back to an environment variable prefixed with ``DPROBE_``.

Example:
    Configuration file format (probe.ini)::

        [probe]
        retry_delay = 2
        max_attempts = 30
        require_confirmation = false
        bounce_markers = Undeliverable, Undelivered Mail Returned to Sender

        [endpoint:alpha]
        address = hisp-a.example.org
        smtp_port = 465
        smtp_user = probe@hisp-a.example.org
        smtp_password = secret
        mailbox_protocol = pop3
        mailbox_port = 995
        mailbox_user = probe@hisp-a.example.org
        mailbox_password = secret
        verify_tls = false

    Loading it::

        config = load_config("probe.ini")
        settings = config.settings
        alpha = config.endpoints["alpha"]
"""

from __future__ import annotations

import configparser
import os
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from .logger import get_logger
from .models import Endpoint, MailboxAccess, ProbeSettings, SmtpAccess

ENV_PREFIX = "DPROBE_"
ENDPOINT_SECTION_PREFIX = "endpoint:"

logger = get_logger("ConfigLoader")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def default_config_path() -> str:
    """Return the config path from ``DPROBE_CONFIG`` or ``probe.ini``."""
    return os.getenv(f"{ENV_PREFIX}CONFIG", "probe.ini")


def _parse_bool(section: str, key: str, value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE:
        return True
    if normalized in _FALSE:
        return False
    raise ValueError(f"Invalid boolean for [{section}] {key}: {value!r}")


@dataclass
class ProbeConfig:
    """Parsed configuration file.

    Attributes:
        settings: Options applied to every run.
        endpoints: Endpoints by section name.
    """

    settings: ProbeSettings = field(default_factory=ProbeSettings)
    endpoints: dict[str, Endpoint] = field(default_factory=dict)

    def endpoint(self, name: str) -> Endpoint:
        """Return the endpoint called ``name``.

        Raises:
            KeyError: If no such endpoint is configured.
        """
        try:
            return self.endpoints[name]
        except KeyError:
            known = ", ".join(sorted(self.endpoints)) or "none"
            raise KeyError(f"Unknown endpoint {name!r} (configured: {known})") from None


def load_settings(parser: configparser.ConfigParser) -> ProbeSettings:
    """Build :class:`ProbeSettings` from the ``[probe]`` section and environment."""
    values: dict[str, object] = {}
    for key in ProbeSettings.model_fields:
        raw = None
        if parser.has_option("probe", key):
            raw = parser.get("probe", key)
        else:
            raw = os.getenv(f"{ENV_PREFIX}{key.upper()}")
        if raw is None:
            continue
        if key == "require_confirmation":
            values[key] = _parse_bool("probe", key, raw)
        else:
            values[key] = raw.strip()
    try:
        return ProbeSettings(**values)
    except ValidationError as exc:
        raise ValueError(f"Invalid [probe] configuration: {exc}") from exc


def load_endpoint(parser: configparser.ConfigParser, section: str) -> Endpoint:
    """Build an :class:`Endpoint` from one ``[endpoint:<name>]`` section."""
    options = dict(parser.items(section))

    def pick(prefix: str, keys: tuple[str, ...]) -> dict[str, object]:
        picked: dict[str, object] = {}
        for key in keys:
            raw = options.pop(f"{prefix}{key}", None)
            if raw is None:
                continue
            if key in ("use_tls", "use_ssl"):
                picked[key] = _parse_bool(section, f"{prefix}{key}", raw)
            else:
                picked[key] = raw.strip()
        return picked

    address = options.pop("address", None)
    if not address:
        raise ValueError(f"[{section}] is missing the required key 'address'")
    verify_raw = options.pop("verify_tls", None)
    smtp = pick("smtp_", ("host", "port", "user", "password", "use_tls"))
    mailbox = pick("mailbox_", ("protocol", "host", "port", "user", "password", "use_ssl", "folder"))
    if verify_raw is not None:
        verify = _parse_bool(section, "verify_tls", verify_raw)
        smtp["verify_tls"] = verify
        mailbox["verify_tls"] = verify
    for key in options:
        if key not in parser.defaults():
            logger.warning("Ignoring unknown key in [%s]: %s", section, key)

    try:
        return Endpoint(address=address.strip(), smtp=SmtpAccess(**smtp), mailbox=MailboxAccess(**mailbox))
    except ValidationError as exc:
        raise ValueError(f"Invalid [{section}] configuration: {exc}") from exc


def load_config(config_path: str | None = None) -> ProbeConfig:
    """Load settings and endpoints from an INI file.

    A missing file yields default settings and no endpoints, so runs can be
    configured from the environment alone.

    Raises:
        ValueError: If a value fails validation.
    """
    path = Path(config_path or default_config_path())
    parser = configparser.ConfigParser(interpolation=None)
    if path.exists():
        parser.read(path)
    else:
        logger.info("Config file %s not found, using defaults", path)

    endpoints: dict[str, Endpoint] = {}
    for section in parser.sections():
        if section.startswith(ENDPOINT_SECTION_PREFIX):
            name = section[len(ENDPOINT_SECTION_PREFIX):].strip()
            endpoints[name] = load_endpoint(parser, section)
    logger.debug("Loaded %d endpoints from %s", len(endpoints), path)
    return ProbeConfig(settings=load_settings(parser), endpoints=endpoints)


__all__ = ["ProbeConfig", "default_config_path", "load_config", "load_endpoint", "load_settings"]
