from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Iterator, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from techtree.core.config import (
    configure_logging,
    resolve_log_level,
    resolve_seed_file,
    resolve_store_path,
)
from techtree.core.errors import RecordError, TechTreeError, TreeLoadError
from techtree.core.graph.graph_store import GraphStore
from techtree.core.graph.tech_tree import TechTree
from techtree.core.io.kv_store import JsonFileKeyValueStore
from techtree.core.io.load_tree import dump_tree_yaml, load_tree, snapshot_to_doc
from techtree.core.journal.records import DAILY_QUESTIONS, DailyAnswer, DailyRecords, Event
from techtree.core.lint.lint_tree import lint_tree
from techtree.core.model import SelectorOpen, TreeSnapshot, tech_to_dict
from techtree.core.seed.seed_config import load_seed
from techtree.core.validate.validate_tree import summarize_tree, validate_tree

app = typer.Typer(add_completion=False, no_args_is_help=True)
journal_app = typer.Typer(add_completion=False, no_args_is_help=True)
events_app = typer.Typer(add_completion=False, no_args_is_help=True)
app.add_typer(journal_app, name="journal", help="Daily reflective answers.")
app.add_typer(events_app, name="events", help="Calendar events per day.")

console = Console()

RATINGS: dict[str, Optional[int]] = {"good": 1, "bad": 0, "none": None}


@dataclass(frozen=True)
class _Options:
    store_path: Path
    seed_file: Optional[str]


@app.callback()
def _callback(
    ctx: typer.Context,
    store: str | None = typer.Option(None, "--store", help="Path to the JSON key-value store"),
    seed_file: str | None = typer.Option(
        None, "--seed-file", help="YAML/JSON tree used when the store holds no tree yet"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr"),
) -> None:
    """Tech tree and journal CLI."""
    logging.getLogger("techtree").setLevel(resolve_log_level(verbose))
    ctx.obj = _Options(store_path=resolve_store_path(store), seed_file=resolve_seed_file(seed_file))


# --- tech tree -------------------------------------------------------------


@app.command("show")
def show(
    ctx: typer.Context,
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Show the tree column by column."""
    _check_format(format, "E_SHOW_UNKNOWN_FORMAT")
    with _tree_session(ctx) as tree:
        ancestors = tree.highlighted_ancestor_ids
        focused = tree.focused

        if format == "json":
            payload = {
                "tool": "techtree",
                "command": "show",
                "nodes": [tech_to_dict(n) for n in tree.nodes],
                "layout": [list(col) for col in tree.layout],
                "focused": focused.id if focused else None,
                "ancestors": sorted(ancestors),
            }
            typer.echo(json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False))
            return

        table = Table(show_lines=True)
        for i in range(len(tree.layout)):
            table.add_column(f"Column {i + 1}")
        depth = max((len(col) for col in tree.layout), default=0)
        for row in range(depth):
            cells: list[str] = []
            for col in tree.layout:
                if row >= len(col):
                    cells.append("")
                    continue
                node = tree.find_by_id(col[row])
                if node is None:
                    cells.append(escape(f"? {col[row]}"))
                    continue
                marker = "*" if node.is_focused else "^" if node.id in ancestors else ""
                # Titles are free text; keep brackets literal.
                cells.append(escape(f"{marker}{node.title} [{node.id}] ({node.status})"))
            table.add_row(*cells)
        console.print(table)
        typer.echo(summarize_tree(tree.snapshot))


@app.command("ancestors")
def ancestors(ctx: typer.Context) -> None:
    """List every prerequisite of the focused node."""
    with _tree_session(ctx) as tree:
        focused = tree.focused
        if focused is None:
            typer.echo("No focused node")
            return
        typer.echo(f"Focus: {focused.title} [{focused.id}]")
        for nid in sorted(tree.highlighted_ancestor_ids):
            node = tree.find_by_id(nid)
            title = node.title if node else "?"
            typer.echo(f"- {title} [{nid}]")


@app.command("focus")
def focus(ctx: typer.Context, node_id: str = typer.Argument(..., help="Node to focus")) -> None:
    """Make NODE_ID the single focused goal."""
    with _tree_session(ctx) as tree:
        node = tree.set_focus(node_id)
        typer.echo(f"OK: focused {node.id}")


@app.command("add")
def add(
    ctx: typer.Context,
    parent_id: str = typer.Argument(..., help="Node that unlocks the new node"),
    title: str | None = typer.Option(None, "--title", help="Title of the new node"),
) -> None:
    """Add a node unlocked by PARENT_ID in the next column."""
    with _tree_session(ctx) as tree:
        node = tree.add_node(parent_id, title=title) if title else tree.add_node(parent_id)
        typer.echo(f"OK: added {node.id}")


@app.command("delete")
def delete(ctx: typer.Context, node_id: str = typer.Argument(...)) -> None:
    """Delete a node and every edge pointing at it."""
    with _tree_session(ctx) as tree:
        tree.delete_node(node_id)
        typer.echo(f"OK: deleted {node_id}")


@app.command("status")
def status(
    ctx: typer.Context,
    node_id: str = typer.Argument(...),
    value: str = typer.Argument(..., help="pending|inProgress|completed"),
) -> None:
    """Set the status of a node."""
    with _tree_session(ctx) as tree:
        node = tree.set_status(node_id, value)
        typer.echo(f"OK: {node.id} is {node.status}")


@app.command("title")
def title(ctx: typer.Context, node_id: str = typer.Argument(...), text: str = typer.Argument(...)) -> None:
    """Rename a node."""
    with _tree_session(ctx) as tree:
        node = tree.set_title(node_id, text)
        typer.echo(f"OK: {node.id} renamed")


@app.command("info")
def info(ctx: typer.Context, node_id: str = typer.Argument(...), text: str = typer.Argument(...)) -> None:
    """Replace a node's notes; the first line becomes its description."""
    with _tree_session(ctx) as tree:
        tree.select(node_id)
        node = tree.set_info(text.replace("\\n", "\n"))
        typer.echo(f"OK: {node.id} description: {node.description}")


@app.command("parents")
def parents(
    ctx: typer.Context,
    child_id: str = typer.Argument(..., help="Node whose parents to rewire"),
    set_: list[str] = typer.Option([], "--set", help="Parent to keep/connect (repeatable)"),
    clear: bool = typer.Option(False, "--clear", help="Disconnect every candidate parent"),
) -> None:
    """List or rewire the parents of CHILD_ID from the column to its left."""
    with _tree_session(ctx) as tree:
        selector = tree.open_parent_selector(child_id)
        if not isinstance(selector, SelectorOpen):
            typer.echo(f"No candidate parents for {child_id}")
            return

        if not set_ and not clear:
            for nid in selector.candidates:
                mark = "x" if nid in selector.checked else " "
                typer.echo(f"[{mark}] {nid}")
            return

        wanted = set() if clear else set(set_)
        for nid in sorted(wanted | set(selector.checked)):
            if (nid in wanted) != (nid in selector.checked):
                tree.toggle_parent_selection(nid)
        tree.commit_parent_selection()
        typer.echo(f"OK: parents of {child_id}: {', '.join(sorted(wanted)) or '-'}")


@app.command("lint")
def lint(
    ctx: typer.Context,
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Check the stored tree for layout and edge inconsistencies."""
    _check_format(format, "E_LINT_UNKNOWN_FORMAT")
    with _tree_session(ctx) as tree:
        errors = lint_tree(tree.nodes, tree.layout)

    if format == "json":
        _emit_json("lint", errors, exit_code=2 if errors else 0)
    if errors:
        _print_errors(errors)
        raise typer.Exit(code=2)
    typer.echo("OK: lint passed")


@app.command("validate")
def validate(
    path: str = typer.Argument(..., help="Path to a tree document (.yaml/.yml/.json)"),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Validate and lint a tree document without touching the store."""
    _check_format(format, "E_VALIDATE_UNKNOWN_FORMAT")

    try:
        doc = load_tree(path)
    except TreeLoadError as e:
        if format == "json":
            _emit_json("validate", [e], exit_code=1)
        _print_errors([e])
        raise typer.Exit(code=1)

    snapshot, errors = validate_tree(doc)
    all_errors: list[TechTreeError] = list(errors)
    if snapshot is not None:
        all_errors.extend(lint_tree(snapshot.nodes, snapshot.layout, file=doc.get("__file__")))

    if format == "json":
        _emit_json("validate", all_errors, exit_code=2 if all_errors else 0)
    if all_errors or snapshot is None:
        _print_errors(all_errors)
        raise typer.Exit(code=2)
    typer.echo(summarize_tree(snapshot))


@app.command("export")
def export(
    ctx: typer.Context,
    out: str = typer.Option(..., "--out", help="Path to write the YAML tree document"),
) -> None:
    """Write the stored tree as a YAML document."""
    with _tree_session(ctx) as tree:
        dump_tree_yaml(snapshot_to_doc(tree.snapshot), out)
    typer.echo(f"OK: wrote {out}")


@app.command("import")
def import_(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Tree document to load into the store"),
    force: bool = typer.Option(False, "--force", help="Import even when lint reports problems"),
) -> None:
    """Replace the stored tree with a validated document."""
    try:
        doc = load_tree(path)
    except TreeLoadError as e:
        _print_errors([e])
        raise typer.Exit(code=1)

    snapshot, errors = validate_tree(doc)
    if errors or snapshot is None:
        _print_errors(errors)
        raise typer.Exit(code=2)

    lint_errors = lint_tree(snapshot.nodes, snapshot.layout, file=doc.get("__file__"))
    if lint_errors and not force:
        _print_errors(lint_errors)
        raise typer.Exit(code=2)

    with _tree_session(ctx) as tree:
        tree.replace_all(snapshot)
    typer.echo(f"OK: imported {len(snapshot.nodes)} nodes")


@app.command("reset")
def reset(ctx: typer.Context) -> None:
    """Replace the stored tree with the seed graph."""
    with _tree_session(ctx) as tree:
        tree.replace_all(_load_seed_or_exit(ctx.obj))
    typer.echo("OK: tree reset to seed")


# --- journal ---------------------------------------------------------------


@journal_app.command("questions")
def journal_questions() -> None:
    """Print the daily questions."""
    for q in DAILY_QUESTIONS:
        typer.echo(f"{q.key}: {q.text}")


@journal_app.command("show")
def journal_show(ctx: typer.Context, day: str | None = typer.Argument(None, help="YYYY-MM-DD (default: today)")) -> None:
    """Show the answers recorded for a day."""
    with _records_session(ctx) as records:
        d = _parse_day(day)
        answer = records.answer_for(d)
        rating = {1: "good", 0: "bad"}.get(answer.self_rating, "-")
        typer.echo(f"{d.isoformat()}")
        typer.echo(f"{DAILY_QUESTIONS[0].text} {answer.done_today or '-'}")
        typer.echo(f"{DAILY_QUESTIONS[1].text} {rating}")
        typer.echo(f"{DAILY_QUESTIONS[2].text} {answer.improvement or '-'}")


@journal_app.command("answer")
def journal_answer(
    ctx: typer.Context,
    day: str | None = typer.Argument(None, help="YYYY-MM-DD (default: today)"),
    done: str = typer.Option("", "--done", help="What did you do today?"),
    rating: str = typer.Option("none", "--rating", help="good|bad|none"),
    improve: str = typer.Option("", "--improve", help="How could you do better?"),
) -> None:
    """Record the answers for a day (replaces earlier answers)."""
    with _records_session(ctx) as records:
        d = _parse_day(day)
        if rating not in RATINGS:
            raise RecordError(
                code="E_INVALID_ENUM",
                message=f"unknown rating: {rating} (choose one of: {', '.join(RATINGS)})",
                path="rating",
            )
        records.save_daily_answer(d, DailyAnswer(done_today=done, self_rating=RATINGS[rating], improvement=improve))
        typer.echo(f"OK: saved answers for {d.isoformat()}")


@journal_app.command("delete")
def journal_delete(ctx: typer.Context, day: str | None = typer.Argument(None)) -> None:
    """Delete the answers recorded for a day."""
    with _records_session(ctx) as records:
        d = _parse_day(day)
        records.delete_daily_answer(d)
        typer.echo(f"OK: deleted answers for {d.isoformat()}")


@journal_app.command("dates")
def journal_dates(ctx: typer.Context) -> None:
    """List every day with recorded answers."""
    with _records_session(ctx) as records:
        for d in records.answered_dates():
            typer.echo(d)


@events_app.command("list")
def events_list(ctx: typer.Context, day: str | None = typer.Argument(None)) -> None:
    """List the events of a day."""
    with _records_session(ctx) as records:
        for e in records.events_for(_parse_day(day)):
            typer.echo(f"{e.id}: {e.title}" + (f" - {e.memo}" if e.memo else ""))


@events_app.command("add")
def events_add(
    ctx: typer.Context,
    day: str = typer.Argument(..., help="YYYY-MM-DD"),
    title: str = typer.Argument(...),
    memo: str = typer.Option("", "--memo"),
) -> None:
    """Add an event to a day."""
    with _records_session(ctx) as records:
        saved = records.save_event(_parse_day(day), Event(title=title, memo=memo))
        typer.echo(f"OK: added event {saved.id}")


@events_app.command("edit")
def events_edit(
    ctx: typer.Context,
    day: str = typer.Argument(..., help="YYYY-MM-DD"),
    event_id: int = typer.Argument(...),
    title: str | None = typer.Option(None, "--title"),
    memo: str | None = typer.Option(None, "--memo"),
) -> None:
    """Change the title or memo of an event."""
    with _records_session(ctx) as records:
        d = _parse_day(day)
        current = next((e for e in records.events_for(d) if e.id == event_id), None)
        if current is None:
            raise RecordError(
                code="E_EVENT_NOT_FOUND",
                message=f"no event {event_id} on {d.isoformat()}",
                path="event_id",
            )
        records.save_event(
            d,
            Event(
                id=event_id,
                title=title if title is not None else current.title,
                memo=memo if memo is not None else current.memo,
            ),
        )
        typer.echo(f"OK: updated event {event_id}")


@events_app.command("delete")
def events_delete(
    ctx: typer.Context,
    day: str = typer.Argument(..., help="YYYY-MM-DD"),
    event_id: int = typer.Argument(...),
) -> None:
    """Delete an event."""
    with _records_session(ctx) as records:
        records.delete_event(_parse_day(day), event_id)
        typer.echo(f"OK: deleted event {event_id}")


# --- helpers ---------------------------------------------------------------


@contextmanager
def _tree_session(ctx: typer.Context) -> Iterator[TechTree]:
    opts: _Options = ctx.obj
    store = GraphStore(JsonFileKeyValueStore(opts.store_path), seed=_load_seed_or_exit(opts))
    tree = TechTree.open(store)
    try:
        yield tree
    except TechTreeError as e:
        _print_errors([e])
        raise typer.Exit(code=1 if isinstance(e, TreeLoadError) else 2)
    finally:
        tree.close()

    if not tree.last_persist_ok:
        _print_errors(
            [
                TechTreeError(
                    code="E_STORE_WRITE",
                    message="changes were not saved to the store",
                    file=str(opts.store_path),
                )
            ]
        )
        raise typer.Exit(code=1)


@contextmanager
def _records_session(ctx: typer.Context) -> Iterator[DailyRecords]:
    opts: _Options = ctx.obj
    records = DailyRecords(JsonFileKeyValueStore(opts.store_path))
    try:
        records.load_records()
        yield records
    except TechTreeError as e:
        _print_errors([e])
        raise typer.Exit(code=1 if isinstance(e, TreeLoadError) else 2)


def _load_seed_or_exit(opts: _Options) -> TreeSnapshot:
    try:
        return load_seed(opts.seed_file)
    except TechTreeError as e:
        _print_errors([e])
        raise typer.Exit(code=2)


def _parse_day(value: str | None) -> date:
    if not value:
        return date.today()
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise RecordError(
            code="E_INVALID_DATE",
            message=f"expected YYYY-MM-DD, got {value}",
            path="day",
        ) from e


def _check_format(format: str, code: str) -> None:
    if format not in ("text", "json"):
        _print_errors(
            [
                TechTreeError(
                    code=code,
                    message=f"unknown format: {format} (choose one of: text, json)",
                    path="format",
                )
            ]
        )
        raise typer.Exit(code=2)


def _emit_json(command: str, errors: list[TechTreeError], *, exit_code: int) -> None:
    def _to_item(e: TechTreeError) -> dict:
        source = "lint" if e.code.startswith("L_") else "load" if isinstance(e, TreeLoadError) else "validate"
        return {
            "code": e.code,
            "message": e.message,
            "file": e.file,
            "path": e.path,
            "severity": "error",
            "source": source,
        }

    payload = {
        "tool": "techtree",
        "command": command,
        "ok": not errors,
        "error_count": len(errors),
        "errors": [_to_item(e) for e in errors],
    }
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))
    raise typer.Exit(code=exit_code)


def _print_errors(errors: list[TechTreeError]) -> None:
    errors_sorted = sorted(errors, key=lambda e: (e.file or "", e.path or "", e.code))
    for e in errors_sorted:
        typer.echo(str(e), err=True)


def main() -> None:
    configure_logging()
    app(prog_name="techtree")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
