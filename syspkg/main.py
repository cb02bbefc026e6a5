"""
syspkg - one command line for every system package manager.

Usage:
    syspkg --help
    syspkg managers
    syspkg search vim --all
    syspkg install -m apt --dry-run htop
"""

from __future__ import annotations

import json
import sys
from collections.abc import Callable
from pathlib import Path

import click

from syspkg import __version__
from syspkg.adapters.base import ListFilter, Options, PackageManagerAdapter
from syspkg.core.engine.executor import (
    EXIT_INTERRUPTED,
    EXIT_UNAVAILABLE,
    EXIT_USAGE,
    FanOutReport,
    exit_code_for,
)
from syspkg.core.models.outcome import Operation, OperationResult
from syspkg.core.models.package import ManagerStatus, PackageRecord, PackageStatus
from syspkg.core.observability.logging_config import resolve_level, setup_from_env

_STATUS_COLORS = {
    PackageStatus.INSTALLED: "green",
    PackageStatus.UPGRADABLE: "yellow",
    PackageStatus.AVAILABLE: "white",
    PackageStatus.UNKNOWN: "red",
}


@click.group()
@click.version_option(version=__version__, prog_name="syspkg")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to syspkg.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """syspkg - search, install and upgrade across apt, yum, apk, snap and flatpak."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_from_env(resolve_level(debug=debug, verbose=verbose, quiet=quiet))


# ── Shared plumbing ─────────────────────────────────────────────


def _registry(ctx: click.Context):
    """The registry for this run; built from config on first use."""
    registry = ctx.obj.get("registry")
    if registry is None:
        from syspkg.adapters.builtin import build_registry
        from syspkg.core.config.loader import ConfigError, load_config

        try:
            config = load_config(ctx.obj.get("config_path"))
        except ConfigError as e:
            click.secho(f"❌ {e}", fg="red", err=True)
            ctx.exit(EXIT_USAGE)
        registry = build_registry(config)
        ctx.obj["registry"] = registry
    return registry


def _adapter(ctx: click.Context, manager: str | None) -> PackageManagerAdapter:
    """The named adapter, or the best available one."""
    from syspkg.adapters.registry import RegistrationError

    registry = _registry(ctx)
    if manager:
        try:
            return registry.create(manager)
        except RegistrationError as e:
            raise click.UsageError(f"{e} (known: {', '.join(registry.names())})") from e

    adapter = registry.best_match()
    if adapter is None:
        click.secho("❌ No supported package manager is available", fg="red", err=True)
        ctx.exit(EXIT_UNAVAILABLE)
    return adapter


def _options(ctx: click.Context, **flags) -> Options:
    return Options(
        verbose=ctx.obj.get("verbose", False),
        debug=ctx.obj.get("debug", False),
        **flags,
    )


def _manager_option(fn):
    return click.option(
        "--manager", "-m", default=None, help="Package manager to use (default: best available).",
    )(fn)


def _all_option(fn):
    return click.option(
        "--all", "all_managers", is_flag=True, help="Run on every available manager.",
    )(fn)


def _json_option(fn):
    return click.option(
        "--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.",
    )(fn)


def _change_options(fn):
    fn = click.option("--interactive", is_flag=True, help="Attach the tool to this terminal.")(fn)
    fn = click.option("--yes", "-y", "assume_yes", is_flag=True, help="Answer yes to prompts.")(fn)
    fn = click.option("--dry-run", is_flag=True, help="Show what would change without changing it.")(fn)
    return fn


def _run(
    ctx: click.Context,
    manager: str | None,
    all_managers: bool,
    as_json: bool,
    single: Callable[[PackageManagerAdapter], OperationResult],
    fan_out: Callable[[], FanOutReport] | None = None,
) -> None:
    """Run on one adapter or fan out, print, and exit with the mapped code."""
    if manager and all_managers:
        raise click.UsageError("--manager and --all are mutually exclusive")

    if all_managers and fan_out is not None:
        report = fan_out()
        _print_report(ctx, report, as_json)
        ctx.exit(report.exit_code)

    result = single(_adapter(ctx, manager))
    _print_result(ctx, result, as_json)
    ctx.exit(exit_code_for(result.kind))


# ── Output ──────────────────────────────────────────────────────


def _print_packages(packages: list[PackageRecord], show_manager: bool = False) -> None:
    if not packages:
        return
    width = max(len(p.name) for p in packages)
    for pkg in packages:
        version = pkg.version or "-"
        if pkg.status == PackageStatus.UPGRADABLE:
            version = f"{pkg.installed_version} → {pkg.available_version}"
        manager = f"  [{pkg.manager}]" if show_manager else ""
        click.echo(f"   {pkg.name:<{width}}  {version}  ", nl=False)
        click.secho(pkg.status.value, fg=_STATUS_COLORS.get(pkg.status, "cyan"), nl=False)
        click.echo(manager)


def _print_failure(result: OperationResult) -> None:
    click.secho(f"❌ {result.manager}: {result.detail} ({result.kind.value})", fg="red", err=True)


def _print_result(ctx: click.Context, result: OperationResult, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(result.model_dump(mode="json"), indent=2))
        return
    if result.failed:
        _print_failure(result)
        return

    if result.manager_status is not None:
        _print_status(result.manager_status)
        return

    _print_packages(result.packages)
    if not ctx.obj.get("quiet", False):
        count = len(result.packages)
        dry = " (dry run)" if result.dry_run else ""
        note = f" - {result.detail}" if result.detail else ""
        click.secho(f"✅ {result.manager} {result.operation.value}: {count} package(s){dry}{note}", fg="green")


def _print_report(ctx: click.Context, report: FanOutReport, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        return
    if report.status == "empty":
        click.secho("❌ No supported package manager is available", fg="red", err=True)
        return

    for name in report.succeeded:
        result = report.results[name]
        if result.manager_status is not None:
            _print_status(result.manager_status)
    _print_packages(report.packages(), show_manager=True)
    for name in report.failed:
        _print_failure(report.results[name])

    if not ctx.obj.get("quiet", False):
        color = {"ok": "green", "partial": "yellow", "failed": "red"}.get(report.status, "white")
        click.secho(
            f"{report.operation.value}: {report.status} "
            f"({len(report.succeeded)}/{report.total} managers, {report.duration_ms}ms)",
            fg=color,
        )


def _print_status(status: ManagerStatus) -> None:
    marker = "✓" if status.healthy else "✗"
    click.secho(f"\n📦 {status.manager} {status.version}".rstrip(), fg="cyan", bold=True)
    click.echo(f"   {marker} available={status.available} healthy={status.healthy}")
    click.echo(f"   installed: {status.installed_count}")
    if status.package_count:
        click.echo(f"   packages: {status.package_count}")
    for issue in status.issues:
        click.secho(f"   ⚠️  {issue}", fg="yellow")


# ── Commands ────────────────────────────────────────────────────


@cli.command()
@_json_option
@click.pass_context
def managers(ctx: click.Context, as_json: bool) -> None:
    """List registered package managers and whether they are usable here."""
    registry = _registry(ctx)
    availability = registry.availability()
    rows = [
        {
            "name": reg.name,
            "category": reg.category,
            "priority": reg.priority,
            "available": availability.get(reg.name, False),
        }
        for reg in registry.registrations()
    ]

    if as_json:
        click.echo(json.dumps(rows, indent=2))
        return

    for row in rows:
        marker = "✓" if row["available"] else "✗"
        color = "green" if row["available"] else "white"
        click.secho(
            f"   {marker} {row['name']:<8} {row['category']:<7} priority {row['priority']}",
            fg=color,
        )


@cli.command()
@click.argument("query")
@_manager_option
@_all_option
@_json_option
@click.pass_context
def search(ctx: click.Context, query: str, manager: str | None, all_managers: bool, as_json: bool) -> None:
    """Search repositories for QUERY."""
    opts = _options(ctx)
    _run(
        ctx, manager, all_managers, as_json,
        lambda adapter: adapter.search(query, opts),
        lambda: _registry(ctx).search_all(query, opts),
    )


@cli.command("list")
@click.option(
    "--filter",
    "list_filter",
    type=click.Choice([f.value for f in ListFilter]),
    default=ListFilter.INSTALLED.value,
    show_default=True,
    help="Which packages to list.",
)
@_manager_option
@_all_option
@_json_option
@click.pass_context
def list_packages(
    ctx: click.Context, list_filter: str, manager: str | None, all_managers: bool, as_json: bool,
) -> None:
    """List installed and/or upgradable packages."""
    opts = _options(ctx)
    _run(
        ctx, manager, all_managers, as_json,
        lambda adapter: adapter.list_packages(list_filter, opts),
        lambda: _registry(ctx).list_packages_all(list_filter, opts),
    )


@cli.command()
@click.argument("name")
@_manager_option
@_all_option
@_json_option
@click.pass_context
def info(ctx: click.Context, name: str, manager: str | None, all_managers: bool, as_json: bool) -> None:
    """Show details for one package."""
    opts = _options(ctx)
    _run(
        ctx, manager, all_managers, as_json,
        lambda adapter: adapter.get_info(name, opts),
        lambda: _registry(ctx).fan_out(Operation.GET_INFO, name, opts),
    )


@cli.command()
@click.argument("names", nargs=-1, required=True)
@_manager_option
@_change_options
@_json_option
@click.pass_context
def install(
    ctx: click.Context,
    names: tuple[str, ...],
    manager: str | None,
    dry_run: bool,
    assume_yes: bool,
    interactive: bool,
    as_json: bool,
) -> None:
    """Install one or more packages."""
    opts = _options(ctx, dry_run=dry_run, assume_yes=assume_yes, interactive=interactive)
    _run(ctx, manager, False, as_json, lambda adapter: adapter.install(list(names), opts))


@cli.command()
@click.argument("names", nargs=-1, required=True)
@_manager_option
@_change_options
@_json_option
@click.pass_context
def remove(
    ctx: click.Context,
    names: tuple[str, ...],
    manager: str | None,
    dry_run: bool,
    assume_yes: bool,
    interactive: bool,
    as_json: bool,
) -> None:
    """Remove one or more packages."""
    opts = _options(ctx, dry_run=dry_run, assume_yes=assume_yes, interactive=interactive)
    _run(ctx, manager, False, as_json, lambda adapter: adapter.remove(list(names), opts))


@cli.command()
@_manager_option
@_all_option
@_change_options
@_json_option
@click.pass_context
def refresh(
    ctx: click.Context,
    manager: str | None,
    all_managers: bool,
    dry_run: bool,
    assume_yes: bool,
    interactive: bool,
    as_json: bool,
) -> None:
    """Refresh repository metadata."""
    opts = _options(ctx, dry_run=dry_run, assume_yes=assume_yes, interactive=interactive)
    _run(
        ctx, manager, all_managers, as_json,
        lambda adapter: adapter.refresh(opts),
        lambda: _registry(ctx).refresh_all(opts),
    )


@cli.command()
@click.argument("names", nargs=-1)
@_manager_option
@_all_option
@_change_options
@_json_option
@click.pass_context
def upgrade(
    ctx: click.Context,
    names: tuple[str, ...],
    manager: str | None,
    all_managers: bool,
    dry_run: bool,
    assume_yes: bool,
    interactive: bool,
    as_json: bool,
) -> None:
    """Upgrade NAMES, or everything when none are given."""
    if names and all_managers:
        raise click.UsageError("--all upgrades everything; drop the package names")
    opts = _options(ctx, dry_run=dry_run, assume_yes=assume_yes, interactive=interactive)
    _run(
        ctx, manager, all_managers, as_json,
        lambda adapter: adapter.upgrade(list(names) or None, opts),
        lambda: _registry(ctx).upgrade_all(opts),
    )


@cli.command()
@_manager_option
@_all_option
@_change_options
@_json_option
@click.pass_context
def clean(
    ctx: click.Context,
    manager: str | None,
    all_managers: bool,
    dry_run: bool,
    assume_yes: bool,
    interactive: bool,
    as_json: bool,
) -> None:
    """Clear the package cache."""
    opts = _options(ctx, dry_run=dry_run, assume_yes=assume_yes, interactive=interactive)
    _run(
        ctx, manager, all_managers, as_json,
        lambda adapter: adapter.clean(opts),
        lambda: _registry(ctx).clean_all(opts),
    )


@cli.command()
@_manager_option
@_all_option
@_change_options
@_json_option
@click.pass_context
def autoremove(
    ctx: click.Context,
    manager: str | None,
    all_managers: bool,
    dry_run: bool,
    assume_yes: bool,
    interactive: bool,
    as_json: bool,
) -> None:
    """Remove packages nothing depends on any more."""
    opts = _options(ctx, dry_run=dry_run, assume_yes=assume_yes, interactive=interactive)
    _run(
        ctx, manager, all_managers, as_json,
        lambda adapter: adapter.autoremove(opts),
        lambda: _registry(ctx).autoremove_all(opts),
    )


@cli.command()
@click.argument("names", nargs=-1, required=True)
@_manager_option
@_all_option
@_json_option
@click.pass_context
def verify(
    ctx: click.Context, names: tuple[str, ...], manager: str | None, all_managers: bool, as_json: bool,
) -> None:
    """Check that packages are fully installed."""
    opts = _options(ctx)
    _run(
        ctx, manager, all_managers, as_json,
        lambda adapter: adapter.verify(list(names), opts),
        lambda: _registry(ctx).verify_all(list(names), opts),
    )


@cli.command()
@_manager_option
@_json_option
@click.pass_context
def status(ctx: click.Context, manager: str | None, as_json: bool) -> None:
    """Show health of one manager, or of every available one."""
    opts = _options(ctx)
    _run(
        ctx, manager, manager is None, as_json,
        lambda adapter: adapter.status(opts),
        lambda: _registry(ctx).status_all(opts),
    )


def main() -> None:
    """Console entry point: maps Ctrl-C to exit 130."""
    try:
        rv = cli.main(prog_name="syspkg", standalone_mode=False)
    except click.exceptions.Abort:
        click.echo("\nInterrupted", err=True)
        sys.exit(EXIT_INTERRUPTED)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    sys.exit(rv if isinstance(rv, int) else 0)


if __name__ == "__main__":
    main()
