"""CIS Mapper (cismap) - browse CIS Safeguards against a tool catalog.

Every command fetches the safeguards, tools and mapping documents, builds the
in-memory catalog and prints one view of it.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from .. import __version__
from ..core.catalog import load_catalog
from ..core.config import get_effective_config
from ..core.coverage import heat_level
from ..core.index import CatalogIndex
from ..core.session import AggregatorSession, MapperSession
from ..formatters import report
from ..sources.fetcher import SourceError

console = Console()
err_console = Console(stderr=True)

COST_CHOICES = ["$", "$$", "$$$", "$$$$", "$$$$$"]
HEAT_STYLES = ["dim", "green", "bold green", "bold white on green", "bold white on dark_green"]


def _load(ctx: click.Context) -> CatalogIndex:
    """Load the catalog once per invocation, or exit with a terminal error."""
    obj = ctx.ensure_object(dict)
    if "index" in obj:
        return obj["index"]

    try:
        index = asyncio.run(load_catalog(obj["config"]))
    except SourceError as e:
        err_console.print(f"  [red]ERROR[/red] Failed to load {e.source}: {e.message}")
        ctx.exit(1)

    if index.warnings and not obj.get("quiet_warnings"):
        rejected = sum(1 for w in index.warnings if w.rejected)
        err_console.print(
            f"  [yellow]WARN[/yellow] {len(index.warnings)} normalization warning(s), "
            f"{rejected} record(s) skipped. Run 'cismap check' for details."
        )
    obj["index"] = index
    return index


def _output_format(ctx: click.Context) -> str:
    return (ctx.obj["config"].get("output") or {}).get("format") or "table"


@click.group()
@click.version_option(__version__, prog_name="cismap")
@click.pass_context
@click.option("--project", "-p", type=click.Path(exists=True, file_okay=False), help="Project path holding .cis-mapper/config.yaml")
@click.option("--config", "-c", "config_file", type=click.Path(exists=True, dir_okay=False), help="Explicit config file")
@click.option("--source-dir", type=click.Path(exists=True, file_okay=False), help="Read safeguards.json, tools.json and mapping.json from a directory")
@click.option("--timeout", type=float, help="Per-request timeout in seconds")
@click.option("--output-format", "-f", type=click.Choice(["table", "json", "markdown"]))
def cismap_cli(
    ctx: click.Context,
    project: str | None,
    config_file: str | None,
    source_dir: str | None,
    timeout: float | None,
    output_format: str | None,
) -> None:
    """CIS Mapper - cross-reference CIS Safeguards with security tools."""
    overrides: dict = {}
    if timeout is not None:
        overrides["fetch"] = {"timeout_seconds": timeout}
    if output_format:
        overrides["output"] = {"format": output_format}

    ctx.ensure_object(dict)
    ctx.obj["config"] = get_effective_config(
        project_path=Path(project) if project else Path.cwd(),
        config_file=Path(config_file) if config_file else None,
        source_dir=Path(source_dir) if source_dir else None,
        cli_overrides=overrides,
    )


@cismap_cli.command()
@click.pass_context
@click.option("--search", "-q", default="", help="Match title, description or id")
@click.option("--ig", multiple=True, type=click.Choice(["1", "2", "3"]), help="Implementation group (repeatable)")
@click.option("--tier", multiple=True, help="Tier (repeatable)")
def safeguards(ctx: click.Context, search: str, ig: tuple[str, ...], tier: tuple[str, ...]) -> None:
    """List safeguards grouped by control."""
    index = _load(ctx)
    session = MapperSession(index, view_mode="control")
    session.set_search(search)
    session.set_safeguard_filters(ig=set(ig), tier=set(tier))
    groups = session.results()

    fmt = _output_format(ctx)
    if fmt == "json":
        click.echo(report.dump_json(report.safeguard_groups_payload(groups)))
        return
    if fmt == "markdown":
        click.echo(report.safeguard_groups_markdown(groups))
        return

    if not groups:
        console.print("  No safeguards match.")
        return
    for group in groups:
        label = f"Control {group.control_number}" if group.control_number is not None else "Unassigned"
        table = Table(title=label, title_justify="left", show_lines=False)
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Title")
        table.add_column("IG", justify="center")
        table.add_column("Tier", justify="center")
        table.add_column("Tools", justify="right")
        for sg in group.safeguards:
            table.add_row(sg.id, sg.title, sg.ig, sg.tier, str(len(index.related_tools(sg.id))))
        console.print(table)


@cismap_cli.command()
@click.pass_context
@click.option("--search", "-q", default="", help="Match name or description")
@click.option("--edu", is_flag=True, help="Only tools flagged for K-12 education use")
@click.option("--cost", multiple=True, type=click.Choice(COST_CHOICES), help="Cost bracket (repeatable)")
def tools(ctx: click.Context, search: str, edu: bool, cost: tuple[str, ...]) -> None:
    """List tools sorted by name."""
    index = _load(ctx)
    session = MapperSession(index, view_mode="tool")
    session.set_search(search)
    session.set_tool_filters(education_only=edu, cost=set(cost))
    matched = session.results()

    fmt = _output_format(ctx)
    if fmt == "json":
        click.echo(report.dump_json(report.tools_payload(matched)))
        return
    if fmt == "markdown":
        click.echo(report.tools_markdown(matched))
        return

    if not matched:
        console.print("  No tools match.")
        return
    table = Table(title="Tools", title_justify="left")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Cost")
    table.add_column("K-12", justify="center")
    table.add_column("Safeguards", justify="right")
    for tool in matched:
        table.add_row(
            tool.id,
            tool.name,
            tool.cost,
            "[green]yes[/green]" if tool.education_use else "",
            str(len(index.tool_to_safeguards.get(tool.id, []))),
        )
    console.print(table)


@cismap_cli.command()
@click.pass_context
@click.argument("safeguard_id")
def safeguard(ctx: click.Context, safeguard_id: str) -> None:
    """Show one safeguard and the tools mapped to it.

    Example: cismap safeguard 4.1
    """
    index = _load(ctx)
    sg = index.get_safeguard(safeguard_id)
    if sg is None:
        err_console.print(f"  [red]ERROR[/red] Unknown safeguard: {safeguard_id}")
        ctx.exit(1)
    related = index.related_tools(sg.id)

    fmt = _output_format(ctx)
    if fmt == "json":
        click.echo(report.dump_json(report.related_payload(sg, related)))
        return
    if fmt == "markdown":
        click.echo(report.related_markdown(f"{sg.id} - {sg.title}", related))
        return

    console.print(f"\n  [bold cyan]{sg.id}[/bold cyan] {sg.title}")
    console.print(f"  IG{sg.ig}  Tier {sg.tier}  Control {sg.control_number if sg.control_number is not None else '-'}")
    if sg.description:
        console.print(f"  [dim]{sg.description}[/dim]")
    console.print(f"\n  {len(related)} Mapped Tool{'s' if len(related) != 1 else ''}")
    for tool, rationale in related:
        console.print(f"  [green]-[/green] {tool.name}")
        if rationale:
            console.print(f"      [italic dim]{rationale}[/italic dim]")
    console.print()


@cismap_cli.command()
@click.pass_context
@click.argument("tool_ref")
def tool(ctx: click.Context, tool_ref: str) -> None:
    """Show one tool (by id or name) and the safeguards it covers.

    Example: cismap tool "Acme EDR"
    """
    index = _load(ctx)
    found = index.find_tool(tool_ref)
    if found is None:
        err_console.print(f"  [red]ERROR[/red] Unknown tool: {tool_ref}")
        ctx.exit(1)
    related = index.related_safeguards(found.id)

    fmt = _output_format(ctx)
    if fmt == "json":
        click.echo(report.dump_json(report.related_payload(found, related)))
        return
    if fmt == "markdown":
        click.echo(report.related_markdown(found.name, related))
        return

    console.print(f"\n  [bold cyan]{found.name}[/bold cyan] ({found.id})")
    badges = [*found.cost_tiers]
    if found.education_use:
        badges.append("K-12 Education Use")
    if badges:
        console.print(f"  {'  '.join(badges)}")
    if found.desc:
        console.print(f"  [dim]{found.desc}[/dim]")
    console.print(f"\n  Covers {len(related)} safeguard(s)")
    for sg, rationale in related:
        console.print(f"  [green]-[/green] {sg.id} {sg.title}")
        if rationale:
            console.print(f"      [italic dim]{rationale}[/italic dim]")
    console.print()


@cismap_cli.command()
@click.pass_context
@click.option("--tool", "-t", "tool_refs", multiple=True, help="Tool id or name to select (repeatable)")
@click.option("--ig", multiple=True, type=click.Choice(["1", "2", "3"]))
@click.option("--tier", multiple=True)
@click.option("--min-count", type=click.IntRange(min=0), default=0, help="Hide safeguards covered by fewer tools")
@click.option("--distinct/--all-rows", default=None, help="Count each tool once per safeguard")
def heatmap(
    ctx: click.Context,
    tool_refs: tuple[str, ...],
    ig: tuple[str, ...],
    tier: tuple[str, ...],
    min_count: int,
    distinct: bool | None,
) -> None:
    """Show safeguard coverage for a set of selected tools.

    Example: cismap heatmap -t "Acme EDR" -t t7 --ig 1 --min-count 1
    """
    index = _load(ctx)
    if distinct is None:
        distinct = bool((ctx.obj["config"].get("coverage") or {}).get("distinct_edges"))

    session = AggregatorSession(index, distinct=distinct)
    for ref in tool_refs:
        found = index.find_tool(ref)
        if found is None:
            raise click.BadParameter(f"unknown tool {ref!r}", param_hint="--tool")
        if found.id not in session.selected:
            session.toggle_tool(found.id)
    session.set_filters(ig=set(ig), tier=set(tier), min_count=min_count)

    cells = session.heatmap()
    summary = session.summary()

    fmt = _output_format(ctx)
    if fmt == "json":
        click.echo(report.dump_json(report.heatmap_payload(cells, summary)))
        return
    if fmt == "markdown":
        click.echo(report.heatmap_markdown(cells, summary))
        return

    selected = ", ".join(summary.selected_tools) or "[dim]No tools selected.[/dim]"
    console.print(f"\n  [bold cyan]Coverage Heatmap[/bold cyan]  {selected}")
    console.print(
        f"  Coverage: {summary.covered_safeguards}/{summary.total_safeguards} "
        f"({summary.coverage_percent}%)  Showing {len(cells)} SGs"
    )
    table = Table(show_header=True, title_justify="left")
    table.add_column("SG", no_wrap=True)
    table.add_column("Title")
    table.add_column("Count", justify="right")
    table.add_column("Covered By")
    for sg, entry in cells:
        style = HEAT_STYLES[heat_level(entry.count)]
        covered_by = ", ".join(entry.tools) if entry.tools else "[red]Missing Coverage[/red]"
        table.add_row(f"[{style}]{sg.short_id}[/{style}]", sg.title, f"x{entry.count}", covered_by)
    console.print(table)


@cismap_cli.command()
@click.pass_context
@click.option("--strict", is_flag=True, help="Exit 1 when any warning is found")
def check(ctx: click.Context, strict: bool) -> None:
    """Load every source and report normalization warnings."""
    ctx.obj["quiet_warnings"] = True
    index = _load(ctx)

    if _output_format(ctx) == "json":
        click.echo(report.dump_json({
            "safeguards": len(index.safeguard_map),
            "tools": len(index.tool_map),
            "mappings": len(index.edges),
            "dropped_mappings": index.dropped_edges,
            "warnings": report.warnings_payload(index.warnings),
        }))
    else:
        console.print(f"  [green]OK[/green] Safeguards: {len(index.safeguard_map)}")
        console.print(f"  [green]OK[/green] Tools:      {len(index.tool_map)}")
        console.print(
            f"  [green]OK[/green] Mappings:   {len(index.edges)} "
            f"({index.dropped_edges} reference unknown tools)"
        )
        for warning in index.warnings:
            console.print(f"  [yellow]WARN[/yellow] {warning}", highlight=False)
        if not index.warnings:
            console.print("  No normalization warnings.")

    if strict and index.warnings:
        ctx.exit(1)


def main() -> None:
    cismap_cli()


if __name__ == "__main__":
    main()
