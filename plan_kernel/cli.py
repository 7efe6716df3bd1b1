from __future__ import annotations

import json
from collections import Counter
from pathlib import Path
from typing import Any, Sequence

import typer
from rich.console import Console
from rich.table import Table

from plan_kernel.core.build.build_graph import build_graph
from plan_kernel.core.config.kernel_config import ConfigError, KernelConfig, load_and_merge
from plan_kernel.core.content.content_store import FileContentStore
from plan_kernel.core.derive.derive_relations import derive_relations
from plan_kernel.core.errors import PlanBuildError, PlanError, PlanLoadError, PlanValidationError
from plan_kernel.core.export.graph_json import write_graph_json
from plan_kernel.core.io.load_plan import load_definition
from plan_kernel.core.lint.lint_plan import lint_plan
from plan_kernel.core.model import TIMELINE_VARIANTS, PlanNode, milestones_of
from plan_kernel.core.timeline.summarize import schedule, summarize_timelines
from plan_kernel.core.validate.validate_plan import summarize_plan, validate_plan

app = typer.Typer(add_completion=False, no_args_is_help=True)
console = Console()


@app.callback()
def _callback() -> None:
    """Plan kernel CLI: build, validate and inspect a typed business-plan graph."""
    return


@app.command("validate")
def validate(
    path: str = typer.Argument(..., help="Path to a graph definition (.yaml/.yml/.json)"),
    content_dir: str | None = typer.Option(
        None,
        "--content-dir",
        help="Content directory (default: <config content_dir> next to the definition file)",
    ),
    config_file: str | None = typer.Option(None, "--config", help="Optional YAML config file"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Build the graph and validate structure, content and timelines."""
    _check_format(format, "E_VALIDATE_UNKNOWN_FORMAT")

    def _emit_json(ok: bool, *, exit_code: int, errors: list[PlanError], summary: dict | None) -> None:
        payload = {
            "tool": "plan-kernel",
            "command": "validate",
            "ok": ok,
            "error_count": len(errors),
            "errors": [e.to_item() for e in errors],
            "summary": summary,
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        raise typer.Exit(code=exit_code)

    try:
        config = _config(config_file)
        definition = load_definition(path)
        nodes = build_graph(definition)
    except PlanError as e:
        if format == "json":
            _emit_json(False, exit_code=1, errors=[e], summary=None)
        _print_errors([e])
        raise typer.Exit(code=1)

    store = _content_store(path, content_dir, config)
    result = validate_plan(nodes, store, config=config)
    if not result.valid:
        if format == "json":
            _emit_json(False, exit_code=1, errors=list(result.errors), summary=None)
        typer.echo("Validation failed:", err=True)
        _print_errors(result.errors)
        raise typer.Exit(code=1)

    if format == "text":
        typer.echo(summarize_plan(nodes))
        return

    _emit_json(True, exit_code=0, errors=[], summary=_summary_payload(nodes))


@app.command("lint")
def lint(
    path: str = typer.Argument(..., help="Path to a graph definition (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Lint a graph definition (rules beyond validation)."""
    _check_format(format, "E_LINT_UNKNOWN_FORMAT")

    def _emit_json(ok: bool, errors: list[PlanError], exit_code: int) -> None:
        payload = {
            "tool": "plan-kernel",
            "command": "lint",
            "ok": ok,
            "error_count": len(errors),
            "errors": [e.to_item() for e in errors],
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        raise typer.Exit(code=exit_code)

    try:
        nodes = build_graph(load_definition(path))
    except PlanError as e:
        if format == "json":
            _emit_json(False, [e], 1)
        _print_errors([e])
        raise typer.Exit(code=1)

    errors: list[PlanError] = list(lint_plan(nodes))
    if format == "json":
        _emit_json(not errors, errors, 1 if errors else 0)
    if errors:
        _print_errors(errors)
        raise typer.Exit(code=1)
    typer.echo("OK: lint passed")


@app.command("relations")
def relations(
    path: str = typer.Argument(..., help="Path to a graph definition (.yaml/.yml/.json)"),
    node_id: str = typer.Argument(..., help="Node id to show backlinks for"),
) -> None:
    """Show the derived (reverse) relations of one node."""
    nodes = _build_or_exit(path)
    node = next((n for n in nodes if n.id == node_id), None)
    if node is None:
        _print_errors(
            [
                PlanValidationError(
                    code="E_RELATIONS_UNKNOWN_NODE",
                    message=f"unknown node id: {node_id}",
                    file=path,
                )
            ]
        )
        raise typer.Exit(code=1)

    backlinks = derive_relations(nodes).for_node(node)
    typer.echo(f"{node.id} ({node.kind}): {node.title}")
    if not backlinks:
        typer.echo("(no incoming relations)")
        return
    for name, sources in backlinks.items():
        typer.echo(f"- {name}: {', '.join(s.id for s in sources)}")


@app.command("graph")
def graph(
    path: str = typer.Argument(..., help="Path to a graph definition (.yaml/.yml/.json)"),
    out: str = typer.Option(..., "--out", help="Path to write graph JSON"),
) -> None:
    """Write the node/edge graph as JSON for visualization."""
    nodes = _build_or_exit(path)
    write_graph_json(nodes, out)
    typer.echo(f"OK: wrote {len(nodes)} nodes to {out}")


@app.command("timelines")
def timelines(
    path: str = typer.Argument(..., help="Path to a graph definition (.yaml/.yml/.json)"),
    variant: str | None = typer.Option(
        None, "--variant", help="Show the schedule of one variant: expected|aggressive|speedOfLight"
    ),
) -> None:
    """Summarize the three timeline variants."""
    if variant is not None and variant not in TIMELINE_VARIANTS:
        _print_errors(
            [
                PlanValidationError(
                    code="E_TIMELINES_UNKNOWN_VARIANT",
                    message=f"unknown variant: {variant} (choose one of: {', '.join(TIMELINE_VARIANTS)})",
                )
            ]
        )
        raise typer.Exit(code=2)

    nodes = _build_or_exit(path)
    milestones = milestones_of(nodes)

    if variant is None:
        table = Table(title="Timelines")
        table.add_column("Variant")
        table.add_column("Duration")
        table.add_column("Milestones")
        table.add_column("Revenue")
        table.add_column("Costs")
        for s in summarize_timelines(milestones):
            table.add_row(
                s.name,
                f"{s.duration_months:g} months",
                str(s.milestone_count),
                f"{s.total_revenue:,.0f}",
                f"{s.total_costs:,.0f}",
            )
        console.print(table)
        return

    table = Table(title=f"Timeline: {variant}")
    table.add_column("Milestone")
    table.add_column("Start")
    table.add_column("End")
    for m in schedule(milestones, variant):  # type: ignore[arg-type]
        config = m.timelines.for_variant(variant)  # type: ignore[arg-type]
        table.add_row(m.id, f"{config.start_month:g}", f"{config.end_month:g}")
    console.print(table)


def _check_format(format: str, code: str) -> None:
    if format not in ("text", "json"):
        err = PlanValidationError(
            code=code,
            message=f"unknown format: {format} (choose one of: text, json)",
        )
        _print_errors([err])
        raise typer.Exit(code=2)


def _config(config_file: str | None) -> KernelConfig:
    try:
        return load_and_merge(config_file)
    except FileNotFoundError:
        raise PlanLoadError(
            code="E_CONFIG_FILE_NOT_FOUND",
            message=f"config file not found: {config_file}",
            file=config_file,
        )
    except ConfigError as e:
        raise PlanLoadError(code="E_CONFIG_FILE_INVALID", message=str(e), file=config_file) from e


def _content_store(path: str, content_dir: str | None, config: KernelConfig) -> FileContentStore:
    if content_dir is not None:
        root = Path(content_dir)
    else:
        root = Path(path).resolve().parent / config.content_dir
    return FileContentStore(
        root=root,
        extension=config.content_extension,
        display_root=config.content_dir,
    )


def _build_or_exit(path: str) -> list[PlanNode]:
    try:
        return build_graph(load_definition(path))
    except (PlanLoadError, PlanBuildError) as e:
        _print_errors([e])
        raise typer.Exit(code=1)


def _print_errors(errors: Sequence[PlanError]) -> None:
    for e in errors:
        typer.echo(f"  {e}", err=True)


def _summary_payload(nodes: Sequence[PlanNode]) -> dict[str, Any]:
    counts = Counter(n.kind for n in nodes)
    return {"node_count": len(nodes), "kind_counts": {k: int(v) for k, v in counts.items()}}


def main() -> None:
    app(prog_name="plan-kernel")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
