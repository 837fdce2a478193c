from __future__ import annotations

import json
import logging
from collections import Counter
from dataclasses import replace

import typer
from rich.console import Console
from rich.table import Table

from plan_timeline.core.config.settings import Settings, SettingsError, load_or_default
from plan_timeline.core.contributors.directory import build_contributor_directory
from plan_timeline.core.errors import (
    PlanError,
    PlanLoadError,
    PlanValidationError,
    PreconditionError,
    TimelineInvariantError,
)
from plan_timeline.core.export.dump_timeline import dump_timeline, dumps_timeline
from plan_timeline.core.io.load_plan import load_plan
from plan_timeline.core.lint.lint_plan import lint_plan
from plan_timeline.core.model import PlanDocument, TimelineData
from plan_timeline.core.timeline.engine import build_timeline
from plan_timeline.core.validate.validate_plan import summarize_plan, validate_plan

logger = logging.getLogger(__name__)

app = typer.Typer(add_completion=False, no_args_is_help=True)
console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the CLI. ``verbose`` enables DEBUG output."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@app.callback()
def _callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Plan timeline CLI."""
    setup_logging(verbose)


@app.command("validate")
def validate(
    path: str = typer.Argument(..., help="Path to a plan file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Validate a plan file."""
    if format not in ("text", "json"):
        err = PlanValidationError(
            code="E_VALIDATE_UNKNOWN_FORMAT",
            message=f"unknown format: {format} (choose one of: text, json)",
            file=None,
            path="format",
        )
        _print_errors([err])
        raise typer.Exit(code=2)

    def _emit_json(
        ok: bool,
        *,
        exit_code: int,
        schema_version: str | None,
        errors: list[PlanError],
        summary: dict | None,
    ) -> None:
        payload = {
            "tool": "plan-timeline",
            "command": "validate",
            "schema_version": schema_version,
            "ok": ok,
            "error_count": len(errors),
            "errors": [_to_item(e) for e in errors],
            "summary": summary,
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        raise typer.Exit(code=exit_code)

    try:
        plan = load_plan(path)
    except PlanLoadError as e:
        if format == "json":
            _emit_json(False, exit_code=1, schema_version=None, errors=[e], summary=None)
        _print_errors([e])
        raise typer.Exit(code=1)

    document, errors = validate_plan(plan)
    if errors:
        if format == "json":
            schema_v = (
                plan.get("schema_version") if isinstance(plan.get("schema_version"), str) else None
            )
            _emit_json(False, exit_code=2, schema_version=schema_v, errors=errors, summary=None)
        _print_errors(errors)
        raise typer.Exit(code=2)

    assert document is not None

    if format == "text":
        typer.echo(summarize_plan(document))
        return

    summary = {
        "item_count": len(document.items),
        "activity_count": sum(len(i.activities) for i in document.items),
        "dependency_count": sum(len(i.dependency_ids) for i in document.items),
        "roots": [i.id for i in document.items if not i.parent_id],
        "timestamp": document.timestamp,
    }
    _emit_json(
        True,
        exit_code=0,
        schema_version=document.schema_version,
        errors=[],
        summary=summary,
    )


@app.command("lint")
def lint(
    path: str = typer.Argument(..., help="Path to a plan file (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Lint a plan file (rules beyond schema validation)."""
    if format not in ("text", "json"):
        err = PlanValidationError(
            code="E_LINT_UNKNOWN_FORMAT",
            message=f"unknown format: {format} (choose one of: text, json)",
            file=None,
            path="format",
        )
        _print_errors([err])
        raise typer.Exit(code=2)

    def _emit_json(ok: bool, errors: list[PlanError], exit_code: int) -> None:
        payload = {
            "tool": "plan-timeline",
            "command": "lint",
            "ok": ok,
            "error_count": len(errors),
            "errors": [_to_item(e) for e in errors],
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        raise typer.Exit(code=exit_code)

    try:
        plan = load_plan(path)
    except PlanLoadError as e:
        if format == "json":
            _emit_json(False, [e], 1)
        _print_errors([e])
        raise typer.Exit(code=1)

    lint_errors = lint_plan(plan)
    _, validation_errors = validate_plan(plan)
    errors: list[PlanError] = [*lint_errors, *validation_errors]

    if format == "text":
        if errors:
            _print_errors(errors)
            raise typer.Exit(code=2)
        typer.echo("OK: lint passed")
        return

    if errors:
        _emit_json(False, errors, 2)
    _emit_json(True, [], 0)


@app.command("timeline")
def timeline(
    path: str = typer.Argument(..., help="Path to a plan file (.yaml/.yml/.json)"),
    settings_file: str | None = typer.Option(
        None, "--settings", help="Optional YAML settings file (contributors, users, field ids)"
    ),
    out: str | None = typer.Option(None, "--out", help="Write the timeline here instead of stdout"),
    format: str = typer.Option("json", "--format", help="Output format: json|yaml"),
    check_cycles: bool = typer.Option(
        False, "--check-cycles", help="Reject parent cycles inside the engine as well"
    ),
) -> None:
    """Build the timeline (ordered tasks + links) for a plan."""
    if format not in ("json", "yaml"):
        _print_errors(
            [
                PlanValidationError(
                    code="E_TIMELINE_UNKNOWN_FORMAT",
                    message=f"unknown format: {format} (choose one of: json, yaml)",
                    file=None,
                    path="format",
                )
            ]
        )
        raise typer.Exit(code=2)

    data = _build(path, settings_file, check_cycles=check_cycles)

    if out is None:
        typer.echo(dumps_timeline(data, "yaml" if format == "yaml" else "json"))
        return

    dump_timeline(data, out, "yaml" if format == "yaml" else "json")
    typer.echo(f"OK: wrote timeline to {out} (tasks={len(data.tasks)}, links={len(data.links)})")


@app.command("show")
def show(
    path: str = typer.Argument(..., help="Path to a plan file (.yaml/.yml/.json)"),
    settings_file: str | None = typer.Option(
        None, "--settings", help="Optional YAML settings file (contributors, users, field ids)"
    ),
) -> None:
    """Print the timeline tasks as a table, parents before children."""
    data = _build(path, settings_file, check_cycles=False)

    depth: dict[str, int] = {}
    table = Table(title="plan timeline")
    table.add_column("Task")
    table.add_column("Kind")
    table.add_column("Start", justify="right")
    table.add_column("End", justify="right")
    table.add_column("Contributors")
    table.add_column("Flags")
    for t in data.tasks:
        depth[t.id] = depth[t.parent] + 1 if t.parent is not None else 0
        flags = [
            name
            for name, on in (
                ("split", t.render_split),
                ("waiting", t.is_waiting),
                ("future", t.is_in_future),
            )
            if on
        ]
        table.add_row(
            "  " * depth[t.id] + t.id,
            t.kind.value,
            "-" if t.start is None else str(t.start),
            "-" if t.end is None else str(t.end),
            ", ".join(c.name or c.id for c in t.contributors),
            " ".join(flags),
        )
    console.print(table)

    kinds = Counter(t.kind.value for t in data.tasks)
    console.print(
        f"{len(data.tasks)} tasks ("
        + ", ".join(f"{k}={kinds.get(k, 0)}" for k in ("main", "aggregate_only", "activity"))
        + f"), {len(data.links)} links"
    )
    for link in data.links:
        console.print(f"- {link.source} -> {link.target}")


def _build(path: str, settings_file: str | None, *, check_cycles: bool) -> TimelineData:
    document, file = _load_document(path)
    settings = _load_settings(settings_file, file)

    directory = build_contributor_directory(settings, document.items)
    logger.debug("loaded %d item(s), %d contributor(s)", len(document.items), len(directory))
    try:
        return build_timeline(
            document.items,
            timestamp=document.timestamp,
            directory=directory,
            settings=settings,
            check_cycles=check_cycles,
        )
    except (PreconditionError, TimelineInvariantError) as e:
        logger.debug("timeline build aborted: %s", e.code)
        _print_errors([replace(e, file=file)])
        raise typer.Exit(code=2)


def _load_document(path: str) -> tuple[PlanDocument, str | None]:
    try:
        plan = load_plan(path)
    except PlanLoadError as e:
        _print_errors([e])
        raise typer.Exit(code=1)

    document, errors = validate_plan(plan)
    if errors or document is None:
        _print_errors(errors)
        raise typer.Exit(code=2)
    return document, plan.get("__file__")


def _load_settings(settings_file: str | None, file: str | None) -> Settings:
    try:
        return load_or_default(settings_file)
    except FileNotFoundError:
        _print_errors(
            [
                PlanLoadError(
                    code="E_SETTINGS_FILE_NOT_FOUND",
                    message=f"settings file not found: {settings_file}",
                    file=file,
                    path="settings",
                )
            ]
        )
        raise typer.Exit(code=1)
    except SettingsError as e:
        _print_errors(
            [
                PlanValidationError(
                    code="E_SETTINGS_FILE_INVALID",
                    message=str(e),
                    file=file,
                    path="settings",
                )
            ]
        )
        raise typer.Exit(code=2)


def _to_item(e: PlanError) -> dict:
    if isinstance(e, PlanLoadError):
        source = "load"
    elif e.code.startswith("L_"):
        source = "lint"
    else:
        source = "validate"
    return {
        "code": e.code,
        "message": e.message,
        "file": e.file,
        "path": e.path,
        "severity": "error",
        "source": source,
    }


def _print_errors(errors: list[PlanError]) -> None:
    errors_sorted = sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
    for e in errors_sorted:
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name="plan-timeline")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
