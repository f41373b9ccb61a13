"""
Workstation provisioner — CLI entrypoint.

Usage:
    provision --help
    provision plan
    provision apply --with vpn-client
    provision status
    provision config check
"""

from __future__ import annotations

import json
import sys
from collections.abc import Callable
from pathlib import Path

import click

from provisioner import __version__
from provisioner.core.observability.logging_config import resolve_level, setup_logging

_OUTCOME_STYLE = {
    "success": ("✓", "green"),
    "failure": ("✗", "red"),
    "skipped": ("⊘", "yellow"),
    "unverified": ("?", "magenta"),
}

_STATE_STYLE = {
    "satisfied": ("✅", "green"),
    "partial": ("🟡", "yellow"),
    "missing": ("❌", "red"),
    "failed": ("💥", "red"),
    "unverified": ("❔", "magenta"),
}


@click.group()
@click.version_option(version=__version__, prog_name="provision")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to provision.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """Workstation provisioner — bring this machine to its desired state."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=_configured_log_file(ctx.obj["config_path"]),
        quiet_third_party=not debug,
    )


def _configured_log_file(config_path: Path | None) -> str | None:
    """``log_file`` from provision.yml, relative to the config root."""
    from provisioner.core.config.loader import ConfigError, config_root, find_config_file, load_config

    path = config_path or find_config_file()
    try:
        log_file = load_config(path, discover=False).log_file
    except ConfigError:
        # The command that loads the config reports the error
        return None
    if not log_file:
        return None
    resolved = Path(log_file).expanduser()
    return str(resolved if resolved.is_absolute() else config_root(path) / resolved)


def target_options(func: Callable) -> Callable:
    """Per-invocation overrides of the target description."""
    func = click.option(
        "--user", default=None, help="Target user (default: SUDO_USER when root, else USER).",
    )(func)
    func = click.option(
        "--gpu", type=click.Choice(["nvidia", "amd", "intel", "none", "auto"]), default=None,
        help="GPU type (default: from config, else auto-detect).",
    )(func)
    func = click.option(
        "--computer-type", type=click.Choice(["workstation", "server"]), default=None,
        help="Computer type (default: from config).",
    )(func)
    return func


def selection_options(func: Callable) -> Callable:
    func = click.option(
        "--without", "without", multiple=True, metavar="ID", help="Disable a capability (repeatable).",
    )(func)
    func = click.option(
        "--with", "with_", multiple=True, metavar="ID", help="Enable a capability (repeatable).",
    )(func)
    return func


def _echo_report(report, *, verbose: bool = False) -> None:
    for row in report.rows:
        icon, color = _STATE_STYLE.get(row.state, ("•", "white"))
        click.secho(f"   {icon} {row.capability:<24}", fg=color, nl=False)
        click.echo(f" {row.state}" + (f"  — {row.detail}" if row.detail else ""))
        if row.failing_checks and (verbose or row.state != "satisfied"):
            for check in row.failing_checks[:5]:
                click.echo(f"       │ failing: {check}")


def _prompt_secret(name: str, cap) -> str:
    return click.prompt(f"   🔑 {cap.label} needs {name.upper()}", hide_input=True, default="", show_default=False)


# ── apply ──────────────────────────────────────────────────────


@cli.command()
@selection_options
@target_options
@click.option("--dry-run", is_flag=True, help="Plan and log every step, change nothing.")
@click.option("--mock", is_flag=True, help="Use mock adapters (no real execution).")
@click.option("--non-interactive", is_flag=True, help="Never prompt; missing secrets are errors.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def apply(
    ctx: click.Context,
    with_: tuple[str, ...],
    without: tuple[str, ...],
    computer_type: str | None,
    gpu: str | None,
    user: str | None,
    dry_run: bool,
    mock: bool,
    non_interactive: bool,
    as_json: bool,
) -> None:
    """Converge the system to the desired capability set.

    Examples:

        provision apply

        provision apply --with vpn-client --without office-suite

        provision apply --dry-run
    """
    from provisioner.core.use_cases.provision import run_provision

    interactive = not (non_interactive or as_json) and sys.stdin.isatty()
    verbose = ctx.obj.get("verbose", False)

    def on_plan(plan) -> None:
        mode_label = "[dry-run] " if dry_run else "[mock] " if mock else ""
        click.secho(f"\n⚡ {mode_label}Provisioning — run {plan.run_id}", fg="cyan", bold=True)
        if plan.is_empty:
            click.echo("   Nothing to do: every requested capability is satisfied.")
        else:
            click.echo(f"   Plan: {len(plan)} capability(ies)")
        click.echo()

    def on_record(record) -> None:
        icon, color = _OUTCOME_STYLE[record.outcome]
        click.secho(f"   {icon} {record.capability}", fg=color, nl=False)
        timing = f" ({record.duration_ms}ms)" if record.duration_ms else ""
        click.echo(timing + (f"  {record.summary}" if record.summary and (verbose or record.outcome != "success") else ""))

    result = run_provision(
        config_path=ctx.obj.get("config_path"),
        with_=with_,
        without=without,
        computer_type=computer_type,
        gpu=gpu,
        user=user,
        dry_run=dry_run,
        mock_mode=mock,
        prompt=_prompt_secret if interactive else None,
        on_plan=None if as_json else on_plan,
        on_record=None if as_json else on_record,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error_kind == "config":
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(result.exit_code)

    if result.report is not None:
        click.echo()
        click.secho("   Status:", fg="white", bold=True)
        _echo_report(result.report, verbose=verbose)

        if result.report.notes:
            click.echo()
            click.secho("   Next steps:", fg="yellow", bold=True)
            for note in result.report.notes:
                click.echo(f"     • {note}")

    execution = result.execution
    click.echo()
    if result.error:
        click.secho(f"   ❌ {result.error}", fg="red", bold=True)
        if execution is not None and execution.not_attempted:
            click.echo(f"   Not attempted: {', '.join(execution.not_attempted)}")
    elif execution is not None and execution.records:
        click.secho(
            f"   Result: {execution.succeeded} succeeded, {execution.skipped} skipped, "
            f"{execution.unverified} to verify",
            fg="green",
            bold=True,
        )
    click.echo()
    sys.exit(result.exit_code)


# ── plan ───────────────────────────────────────────────────────


@cli.command()
@selection_options
@target_options
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def plan(
    ctx: click.Context,
    with_: tuple[str, ...],
    without: tuple[str, ...],
    computer_type: str | None,
    gpu: str | None,
    user: str | None,
    as_json: bool,
) -> None:
    """Show what apply would do, without changing anything."""
    from provisioner.core.use_cases.provision import preview_plan

    result = preview_plan(
        config_path=ctx.obj.get("config_path"),
        with_=with_,
        without=without,
        computer_type=computer_type,
        gpu=gpu,
        user=user,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(result.exit_code)

    profile = result.profile
    assert profile is not None and result.plan is not None
    click.secho(f"\n📋 {profile.os_id} ({profile.os_family}) — {profile.computer_type}, gpu {profile.gpu}", fg="cyan", bold=True)
    click.echo(f"   Desired: {len(result.desired)} | To act on: {len(result.plan)}")
    click.echo()

    if result.plan.is_empty:
        click.secho("   ✅ Nothing to do", fg="green")
    for index, cap_id in enumerate(result.plan, start=1):
        click.echo(f"   {index:>2}. {cap_id:<24} ({result.plan.reasons.get(cap_id, '')})")
    click.echo()


# ── status ─────────────────────────────────────────────────────


@cli.command()
@target_options
@click.option("--all", "show_all", is_flag=True, help="Include every capability applicable here.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(
    ctx: click.Context,
    computer_type: str | None,
    gpu: str | None,
    user: str | None,
    show_all: bool,
    as_json: bool,
) -> None:
    """Probe the system and show each capability's live state."""
    from provisioner.core.use_cases.status import get_status

    result = get_status(
        config_path=ctx.obj.get("config_path"),
        show_all=show_all,
        computer_type=computer_type,
        gpu=gpu,
        user=user,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(2 if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(2)

    profile = result.profile
    report = result.report
    assert profile is not None and report is not None

    if not ctx.obj.get("quiet", False):
        click.secho(f"\n📋 {profile.os_id} ({profile.os_family}) — user {profile.user}", fg="cyan", bold=True)
        click.echo(f"   {profile.computer_type}, gpu {profile.gpu}")
        click.echo()

    _echo_report(report, verbose=ctx.obj.get("verbose", False))
    click.echo()
    click.secho(
        f"   {report.count('satisfied')}/{len(report.rows)} satisfied",
        fg="green" if report.all_satisfied else "yellow",
        bold=True,
    )

    if result.state and result.state.last_run:
        run = result.state.last_run
        click.echo()
        click.secho("   Last run:", fg="white", bold=True)
        status_color = {"ok": "green", "empty": "green", "failed": "red"}.get(run.status, "white")
        click.echo(f"     {run.run_id} — ", nl=False)
        click.secho(run.status, fg=status_color)
        click.echo(f"     at {run.timestamp}")
        for err in run.errors:
            click.echo(f"     │ {err}")

    click.echo()


# ── list ───────────────────────────────────────────────────────


@cli.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def list_capabilities(as_json: bool) -> None:
    """List every known capability."""
    from provisioner.core.config.loader import ConfigError
    from provisioner.core.engine.registry import load_registry

    try:
        registry = load_registry()
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(2)

    if as_json:
        click.echo(json.dumps([
            {
                "id": cap.id,
                "label": cap.label,
                "depends_on": list(cap.depends_on),
                "tags": sorted(cap.tags),
                "default_enabled": cap.default_enabled,
                "interactive": cap.interactive,
                "os_families": sorted(cap.actions),
            }
            for cap in registry
        ], indent=2))
        return

    click.secho(f"\n🧩 Capabilities ({len(registry)})", fg="cyan", bold=True)
    click.echo()
    for cap in registry:
        marker = "●" if cap.default_enabled else "○"
        deps = f"  ← {', '.join(cap.depends_on)}" if cap.depends_on else ""
        click.echo(f"   {marker} {cap.id:<24} {cap.label}{deps}")
    click.echo()
    click.echo("   ● enabled by default   ○ opt-in")
    click.echo()


# ── config ─────────────────────────────────────────────────────


@cli.group()
def config() -> None:
    """Configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate provision.yml configuration."""
    from provisioner.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 2)

    if result.valid:
        assert result.config is not None  # guaranteed when valid
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        if result.config_path:
            click.echo(f"   File: {result.config_path}")
        click.echo(f"   Computer type: {result.config.computer_type}")
        click.echo(f"   GPU: {result.config.gpu}")
        click.echo(f"   Capability flags: {len(result.config.capabilities)}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        click.echo()
        sys.exit(2)

    click.echo()


# ── Register sub-command groups from provisioner/ui/cli/ ───────────

from provisioner.ui.cli.audit import audit  # noqa: E402
from provisioner.ui.cli.games import games  # noqa: E402

cli.add_command(audit)
cli.add_command(games)


if __name__ == "__main__":
    cli()
