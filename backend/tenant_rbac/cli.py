"""
Command line entry point.

    tenant-rbac validate values.yaml
    tenant-rbac render values.yaml -o manifests.yaml
    tenant-rbac apply values.yaml --dry-run
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import click

from .config import get_settings
from .core.logging import setup_logging
from .exceptions import ValuesLoadError
from .schemas.rbac import ExpansionResult
from .services.expander import expand_many
from .services.kube_apply import ClusterApplier
from .services.renderer import render_yaml
from .services.values_loader import load_values_file

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_USAGE = 2

_values_argument = click.argument("values", type=click.Path(exists=True, dir_okay=False, path_type=Path))


def _expand_file(ctx: click.Context, path: Path) -> list[ExpansionResult]:
    try:
        configs = load_values_file(path)
    except ValuesLoadError as exc:
        click.echo(f"error: {exc.message}", err=True)
        for key, value in exc.details.items():
            click.echo(f"  {key}: {value}", err=True)
        ctx.exit(EXIT_USAGE)
    return expand_many(configs, get_settings())


def _report(results: list[ExpansionResult]) -> bool:
    ok = True
    for result in results:
        for diagnostic in result.diagnostics:
            click.echo(f"{result.tenant or '<unnamed>'}: {diagnostic}", err=True)
        ok = ok and result.ok
    return ok


async def _apply_all(results: list[ExpansionResult], dry_run: bool) -> bool:
    applier = ClusterApplier(get_settings())
    ok = True
    for result in results:
        for outcome in await applier.apply(result, dry_run=dry_run):
            where = f"{outcome.namespace}/" if outcome.namespace else ""
            line = f"{outcome.kind} {where}{outcome.name} {outcome.action}"
            if outcome.message:
                line += f" ({outcome.message})"
            click.echo(line)
            ok = ok and outcome.action != "failed"
    return ok


@click.group(name="tenant-rbac", help="Expand tenant RBAC declarations into Kubernetes objects.")
def main() -> None:
    setup_logging()


@main.command("validate", help="Report diagnostics without rendering.")
@_values_argument
@click.pass_context
def validate_command(ctx: click.Context, values: Path) -> None:
    results = _expand_file(ctx, values)
    if not _report(results):
        ctx.exit(EXIT_INVALID)
    for result in results:
        click.echo(f"{result.tenant}: ok ({len(result.objects)} objects)")


@main.command("render", help="Print manifests as multi-document YAML.")
@_values_argument
@click.option("-o", "--output", type=click.Path(dir_okay=False, path_type=Path), help="Write to this file instead of stdout.")
@click.pass_context
def render_command(ctx: click.Context, values: Path, output: Path | None) -> None:
    results = _expand_file(ctx, values)
    if not _report(results):
        ctx.exit(EXIT_INVALID)
    text = render_yaml([obj for result in results for obj in result.objects])
    if output is not None:
        output.write_text(text, encoding="utf-8")
    else:
        click.echo(text, nl=False)


@main.command("apply", help="Create or replace the objects in the current cluster.")
@_values_argument
@click.option("--dry-run", is_flag=True, help="Server-side dry run.")
@click.pass_context
def apply_command(ctx: click.Context, values: Path, dry_run: bool) -> None:
    if not get_settings().apply_enabled:
        click.echo("cluster apply is disabled; set APPLY_ENABLED=true", err=True)
        ctx.exit(EXIT_USAGE)
    results = _expand_file(ctx, values)
    if not _report(results):
        ctx.exit(EXIT_INVALID)
    if not asyncio.run(_apply_all(results, dry_run)):
        ctx.exit(EXIT_INVALID)


if __name__ == "__main__":
    main()
