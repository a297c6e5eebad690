"""[Layer: Presentation] Typer CLI Commands."""

from importlib.metadata import PackageNotFoundError, version as get_package_version
from pathlib import Path
from typing import Optional

import typer
from pydantic import TypeAdapter, ValidationError
from rich.console import Console
from rich.table import Table

from taskrank.config import get_settings
from taskrank.core.engine import SEARCH_MODES, SearchEngine
from taskrank.models import SearchResult, Task
from taskrank.utils.llm import get_example_config

_TASKS_ADAPTER = TypeAdapter(list[Task])
_SORT_CRITERIA = ("relevance", "dueDate", "priority", "status", "auto")

console = Console()


def _get_version() -> str:
    """Get version from package metadata (single source of truth: pyproject.toml)."""
    try:
        return get_package_version("taskrank")
    except PackageNotFoundError:
        return "0.0.0-dev"


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"taskrank {_get_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="taskrank",
    help="Search and rank tasks with free-text, multilingual queries.",
)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Show help when no command is provided."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


def load_tasks(path: Optional[Path]) -> list[Task]:
    """Load a JSON array of tasks.

    Args:
        path: Task file; defaults to TASKRANK_TASKS_PATH.

    Returns:
        Validated tasks.

    Raises:
        typer.Exit: If no path is configured or the file is unreadable or invalid.
    """
    tasks_path = path or get_settings().tasks_path
    if tasks_path is None:
        typer.echo("No task file: pass --tasks or set TASKRANK_TASKS_PATH.", err=True)
        raise typer.Exit(1)
    try:
        return _TASKS_ADAPTER.validate_json(Path(tasks_path).read_bytes())
    except OSError as e:
        typer.echo(f"Cannot read {tasks_path}: {e}", err=True)
        raise typer.Exit(1)
    except ValidationError as e:
        typer.echo(f"Invalid task file {tasks_path}:\n{e}", err=True)
        raise typer.Exit(1)


def _parse_sort(value: Optional[str]) -> Optional[list[str]]:
    if not value:
        return None
    order = [part.strip() for part in value.split(",") if part.strip()]
    unknown = [c for c in order if c not in _SORT_CRITERIA]
    if unknown:
        raise typer.BadParameter(
            f"unknown sort criteria {', '.join(unknown)}; use {', '.join(_SORT_CRITERIA)}"
        )
    return order


def _render(result: SearchResult, show_scores: bool) -> None:
    table = Table(title=f"{len(result.tasks)} tasks ({result.query_type})")
    table.add_column("#", justify="right")
    table.add_column("Task")
    table.add_column("P", justify="center")
    table.add_column("Due")
    table.add_column("Status")
    if show_scores:
        table.add_column("Score", justify="right")
    for index, scored in enumerate(result.tasks, 1):
        task = scored.task
        row = [
            str(index),
            task.text,
            f"P{task.priority}" if task.priority else "",
            task.due_date.isoformat() if task.due_date else "",
            task.status_category,
        ]
        if show_scores:
            row.append(f"{scored.final_score:.2f}")
        table.add_row(*row)
    console.print(table)

    for diagnostic in result.diagnostics:
        detail = f" ({diagnostic.reason})" if diagnostic.reason else ""
        console.print(f"[yellow]{diagnostic.kind}[/yellow]: {diagnostic.message}{detail}")
    if result.analysis:
        console.print()
        console.print(result.analysis)


@app.command()
def search(
    query: str = typer.Argument(..., help="Free-text query, e.g. 'urgent bug fixes due this week'"),
    tasks_path: Optional[Path] = typer.Option(
        None, "--tasks", "-t", help="JSON file with an array of tasks"
    ),
    mode: str = typer.Option("simple", "--mode", "-m", help="simple, smart or chat"),
    sort: Optional[str] = typer.Option(
        None,
        "--sort",
        "-s",
        help="Comma-separated criteria: relevance,dueDate,priority,status,auto",
    ),
    forced_vague: bool = typer.Option(
        False, "--vague", help="Treat the query as vague (time phrases become context)"
    ),
    show_scores: bool = typer.Option(False, "--scores", help="Show final scores"),
    as_json: bool = typer.Option(False, "--json", help="Print the full result as JSON"),
) -> None:
    """Search and rank tasks."""
    if mode not in SEARCH_MODES:
        raise typer.BadParameter(f"mode must be one of {', '.join(SEARCH_MODES)}")
    order = _parse_sort(sort)
    tasks = load_tasks(tasks_path)

    result = SearchEngine().search(
        query,
        tasks,
        mode=mode,  # type: ignore[arg-type]
        vague_mode="forced" if forced_vague else None,
        sort_order=order,  # type: ignore[arg-type]
    )
    if as_json:
        typer.echo(result.model_dump_json(indent=2))
    else:
        _render(result, show_scores)


@app.command()
def parse(
    query: str = typer.Argument(..., help="Query to parse"),
    forced_vague: bool = typer.Option(False, "--vague", help="Force vague mode"),
) -> None:
    """Show how a query is understood (deterministic parser)."""
    parsed = SearchEngine().parse(query, vague_mode="forced" if forced_vague else None)
    typer.echo(parsed.model_dump_json(indent=2, exclude_none=True))


@app.command()
def terms(
    kind: Optional[str] = typer.Argument(
        None, help="priority, status, due_date or time_context (default: all)"
    ),
) -> None:
    """List the property vocabulary, including user terms."""
    snapshot = SearchEngine().registry.snapshot()
    vocabulary = snapshot.to_prompt_dict()
    if kind is not None and kind not in vocabulary:
        raise typer.BadParameter(f"kind must be one of {', '.join(vocabulary)}")

    table = Table(title=f"Property terms (version {snapshot.version})")
    table.add_column("Property")
    table.add_column("Key")
    table.add_column("Terms")
    for name, categories in vocabulary.items():
        if kind is not None and name != kind:
            continue
        for key, words in categories.items():
            table.add_row(name, key, ", ".join(words))
    console.print(table)


@app.command(name="config-example")
def config_example() -> None:
    """Print an example ~/.taskrank/config.toml for LLM providers."""
    typer.echo(get_example_config())
