"""
CLI commands for game launchers.

Usage::

    provision games status
    provision games launch battlenet
    provision games launch all
    provision games kill
"""

from __future__ import annotations

import json
import sys

import click


def _profile(ctx: click.Context):
    """Detect the target profile; exit 2 on configuration errors."""
    from provisioner.core.config.loader import ConfigError
    from provisioner.core.use_cases import session as session_mod

    try:
        config, _ = session_mod.load_session_config(ctx.obj.get("config_path"))
        return session_mod.detect_profile(config)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(2)


@click.group()
def games() -> None:
    """Game launchers — status, launch, kill."""


@games.command("status")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def games_status(ctx: click.Context, as_json: bool) -> None:
    """Show which game launchers are installed."""
    from provisioner.core.services.launchers import launcher_status

    result = launcher_status(_profile(ctx))

    if as_json:
        click.echo(json.dumps(result, indent=2))
        return

    click.secho("\n🎮 Game launchers", fg="cyan", bold=True)
    click.echo()
    for entry in result["launchers"]:
        if entry["installed"]:
            click.secho(f"   ✅ {entry['label']}: installed", fg="green")
        else:
            click.secho(f"   ❌ {entry['label']}: not found", fg="red")
    if result["proton"]:
        click.secho("   ✅ Proton-GE: installed", fg="green")
    else:
        click.secho("   ❌ Proton-GE: not installed", fg="red")
    click.echo()


@games.command("launch")
@click.argument("name")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def games_launch(ctx: click.Context, name: str, as_json: bool) -> None:
    """Launch a client (steam, battlenet, ea, epic) or 'all'."""
    from provisioner.core.services.launchers import launch, launch_all

    profile = _profile(ctx)
    result = launch_all(profile) if name == "all" else launch(name, profile)

    if as_json:
        click.echo(json.dumps(result, indent=2))
        sys.exit(0 if result["ok"] else 1)

    for item in result.get("results", [result]):
        if item["ok"]:
            click.secho(f"✅ {item['label']} launched (pid {item.get('pid')})", fg="green")
        else:
            click.secho(f"❌ {item['error']}", fg="red")

    if name == "all" and not result.get("results"):
        click.secho("❌ No launchers installed", fg="red")

    if not result["ok"]:
        sys.exit(1)
    click.secho("⏳ Give the launcher window 10-15 seconds to appear.", fg="yellow")


@games.command("kill")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def games_kill(as_json: bool) -> None:
    """Stop every game launcher process."""
    from provisioner.core.services.launchers import kill_all

    result = kill_all()

    if as_json:
        click.echo(json.dumps(result, indent=2))
        return
    click.secho("⏹️  All game launcher processes stopped", fg="green")
