# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Command-line interface for the delivery probe.

Usage:
    delivery-probe -c probe.ini endpoints
    delivery-probe -c probe.ini run alpha beta --from a@alpha --to b@beta
    delivery-probe -c probe.ini run alpha beta --from a@alpha --to nobody@beta --expect rejected
    delivery-probe -c probe.ini purge beta
    delivery-probe -c probe.ini show beta

The ``run`` command exits with status 0 when the probe reaches the
expected status and 1 otherwise.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from .config_loader import ProbeConfig, default_config_path, load_config
from .errors import MailboxError
from .maintenance import delete_all_messages, show_all_messages
from .models import DeliveryStatus, Probe, make_probe_subject
from .runner import RunCoordinator

console = Console()
err_console = Console(stderr=True)

STATUS_CHOICES = [status.value for status in DeliveryStatus]


def run_async(coro):
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    err_console.print(f"[red]Error:[/red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_json(data: Any) -> None:
    """Print data as formatted JSON."""
    console.print_json(json.dumps(data, indent=2, default=str))


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


def _config(ctx: click.Context) -> ProbeConfig:
    return ctx.obj["config"]


def _endpoint(ctx: click.Context, name: str):
    try:
        return _config(ctx).endpoint(name)
    except KeyError as exc:
        raise click.BadParameter(exc.args[0], param_hint="endpoint") from None


@click.group()
@click.option("--config", "-c", "config_path", default=None,
              help="INI configuration file (default: $DPROBE_CONFIG or probe.ini).")
@click.option("--log-level", default=None, help="Logging level (default: $DPROBE_LOG_LEVEL or INFO).")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, log_level: str | None) -> None:
    """Verify end-to-end mail delivery between two endpoints."""
    configure_logging(log_level or os.getenv("DPROBE_LOG_LEVEL", "INFO"))
    try:
        config = load_config(config_path or default_config_path())
    except ValueError as exc:
        print_error(str(exc))
        sys.exit(2)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@main.command("endpoints")
@click.pass_context
def list_endpoints(ctx: click.Context) -> None:
    """List configured endpoints."""
    endpoints = _config(ctx).endpoints
    if not endpoints:
        console.print("[yellow]No endpoints configured.[/yellow]")
        return
    table = Table(title="Endpoints")
    table.add_column("Name", style="cyan")
    table.add_column("Address")
    table.add_column("SMTP")
    table.add_column("Mailbox")
    for name, endpoint in sorted(endpoints.items()):
        table.add_row(
            name,
            endpoint.address,
            f"{endpoint.smtp_host}:{endpoint.smtp.port}",
            f"{endpoint.mailbox.protocol.value}://{endpoint.mailbox_host}:{endpoint.mailbox.port}",
        )
    console.print(table)


@main.command("run")
@click.argument("sending")
@click.argument("receiving")
@click.option("--from", "mail_from", required=True, help="Sender address of the probe.")
@click.option("--to", "rcpt_to", required=True, multiple=True, help="Recipient address (repeatable).")
@click.option("--subject", default=None, help="Correlation subject (default: generated).")
@click.option("--body", default="Delivery probe.", help="Message body.")
@click.option("--attach", "attachment", type=click.Path(exists=True, dir_okay=False), default=None,
              help="File to attach.")
@click.option("--expect", "expected", type=click.Choice(STATUS_CHOICES), default=DeliveryStatus.COMPLETED.value,
              show_default=True, help="Expected terminal status.")
@click.option("--require-confirmation/--no-require-confirmation", default=None,
              help="Require a confirmation artifact on the sending endpoint.")
@click.option("--json", "as_json", is_flag=True, help="Output the verdict as JSON.")
@click.option("--metrics", "show_metrics", is_flag=True, help="Print Prometheus metrics after the run.")
@click.pass_context
def run_command(
    ctx: click.Context,
    sending: str,
    receiving: str,
    mail_from: str,
    rcpt_to: tuple[str, ...],
    subject: str | None,
    body: str,
    attachment: str | None,
    expected: str,
    require_confirmation: bool | None,
    as_json: bool,
    show_metrics: bool,
) -> None:
    """Send a probe from SENDING to RECEIVING and wait for the verdict."""
    config = _config(ctx)
    sending_endpoint = _endpoint(ctx, sending)
    receiving_endpoint = _endpoint(ctx, receiving)
    settings = config.settings
    if require_confirmation is not None:
        settings = settings.model_copy(update={"require_confirmation": require_confirmation})

    probe = Probe(
        mail_from=mail_from,
        rcpt_to=list(rcpt_to),
        subject=subject or make_probe_subject(),
        body=body,
        attachment=attachment,
    )
    coordinator = RunCoordinator(settings=settings)
    failures: list[BaseException] = []

    def _report(error: BaseException | None = None) -> None:
        if error is not None:
            failures.append(error)

    verdict = run_async(coordinator.run(sending_endpoint, receiving_endpoint, probe, expected, callback=_report))

    if as_json:
        print_json(verdict.to_dict())
    if show_metrics:
        console.print(coordinator.metrics.generate_latest().decode("utf-8"))
    if failures:
        print_error(f"{probe.subject}: {failures[0]}")
        sys.exit(1)
    print_success(f"{probe.subject}: {verdict.status.value}")


@main.command("purge")
@click.argument("endpoint")
@click.pass_context
def purge_command(ctx: click.Context, endpoint: str) -> None:
    """Delete every message in the mailbox of ENDPOINT."""
    target = _endpoint(ctx, endpoint)
    try:
        deleted = run_async(delete_all_messages(target, timeout=_config(ctx).settings.mailbox_timeout))
    except MailboxError as exc:
        print_error(str(exc))
        sys.exit(1)
    print_success(f"Deleted {deleted} messages from {target.address}")


@main.command("show")
@click.argument("endpoint")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def show_command(ctx: click.Context, endpoint: str, as_json: bool) -> None:
    """List the messages in the mailbox of ENDPOINT."""
    target = _endpoint(ctx, endpoint)
    try:
        messages = run_async(show_all_messages(target, timeout=_config(ctx).settings.mailbox_timeout))
    except MailboxError as exc:
        print_error(str(exc))
        sys.exit(1)

    if as_json:
        print_json([
            {"number": m.number, "subject": m.subject, "from": m.sender, "date": m.date, "message_id": m.message_id}
            for m in messages
        ])
        return
    if not messages:
        console.print(f"[yellow]Mailbox of {target.address} is empty.[/yellow]")
        return
    table = Table(title=f"Mailbox of {target.address}")
    table.add_column("#", justify="right")
    table.add_column("Subject", style="cyan")
    table.add_column("From")
    table.add_column("Date")
    table.add_column("Type")
    for m in messages:
        table.add_row(str(m.number), m.subject or "", m.sender or "", m.date or "", m.content_type or "")
    console.print(table)


if __name__ == "__main__":
    main()
