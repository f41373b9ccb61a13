"""
CLI command for the audit log — what past runs did.

Usage::

    provision audit
    provision audit --last 50 --json
    provision audit --run run-20260101-120000-abc123
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from provisioner.core.models.record import RunRecord


def _resolve_audit_path(ctx: click.Context) -> Path:
    """Audit log path from provision.yml, or the default beside it."""
    from provisioner.core.config.loader import config_root, find_config_file, load_config
    from provisioner.core.use_cases.session import resolve_audit_path

    config_path: Path | None = ctx.obj.get("config_path") or find_config_file()
    config = load_config(config_path, discover=False)
    return resolve_audit_path(config, config_root(config_path))


@click.command()
@click.option("--last", "-n", "last", default=20, show_default=True, help="Number of entries to show.")
@click.option("--run", "run_id", default=None, help="Show every entry of one run.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def audit(ctx: click.Context, last: int, run_id: str | None, as_json: bool) -> None:
    """Show the execution history (append-only audit log)."""
    from provisioner.core.config.loader import ConfigError
    from provisioner.core.persistence.audit import AuditWriter

    try:
        writer = AuditWriter(_resolve_audit_path(ctx))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(2)

    entries = writer.read_run(run_id) if run_id else writer.read_recent(last)

    if as_json:
        click.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return

    if not entries:
        click.secho(f"📜 No audit entries in {writer.path}", fg="yellow")
        return

    click.secho(f"\n📜 Audit log — {writer.path}", fg="cyan", bold=True)
    click.echo()
    for entry in entries:
        if isinstance(entry, RunRecord):
            color = {"ok": "green", "empty": "green", "failed": "red", "config-error": "red"}.get(entry.status, "white")
            click.secho(f"   ■ {entry.run_id} ", fg=color, bold=True, nl=False)
            click.echo(
                f"{entry.status}  ({entry.succeeded} ok, {entry.failed} failed, "
                f"{entry.skipped} skipped, {entry.unverified} to verify)  {entry.timestamp}"
            )
            for err in entry.errors:
                click.echo(f"     │ {err}")
            continue

        color = {"success": "green", "failure": "red", "skipped": "yellow"}.get(entry.outcome, "magenta")
        click.secho(f"     {entry.outcome:<10}", fg=color, nl=False)
        click.echo(f" {entry.capability}" + (f"  — {entry.summary}" if entry.summary else ""))
    click.echo()
