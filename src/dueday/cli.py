"""dueday CLI - task lifecycle from the terminal."""

import json
import logging
import sys
from dataclasses import replace
from datetime import date

import click

from .adapters import create_stores
from .config import load_config
from .core.deadline import Deadline, Recurrence, days_overdue
from .core.tasks import UNSORTED_LIST_ID, Task
from .engine import UNSET, TaskEngine
from .errors import DuedayError

RECURRENCE_CHOICES = [r.value for r in Recurrence]


def build_engine() -> TaskEngine:
    """Engine wired to the configured store, with a fresh collection."""
    config = load_config()
    task_store, list_store = create_stores(config)
    engine = TaskEngine(
        task_store,
        list_store,
        restore_list_on_uncomplete=config.restore_list_on_uncomplete,
        echo_seconds=config.echo_seconds,
    )
    engine.refresh()
    return engine


def _fail(e: DuedayError) -> None:
    click.echo(f"Error: {e}", err=True)
    sys.exit(1)


def _task_dict(t: Task) -> dict:
    return {
        "id": t.id,
        "text": t.text,
        "completed": t.completed,
        "list_id": t.list_id,
        "deadline": (
            {
                "date": t.deadline.date.isoformat(),
                "time": t.deadline.time or None,
                "recurring": t.deadline.recurring.value,
            }
            if t.deadline
            else None
        ),
        "type": t.kind,
    }


def _format_task(t: Task) -> str:
    check = "x" if t.completed else " "
    due = ""
    if t.deadline:
        due = f" (due {t.deadline.date}"
        if t.deadline.has_time:
            due += f" {t.deadline.time}"
        if t.deadline.is_recurring:
            due += f", {t.deadline.recurring.value}"
        due += ")"
    return f"[{check}] {t.id:>5}  {t.text}{due}"


def _show_tasks(tasks: list[Task], as_json: bool, empty_msg: str) -> None:
    """Shared task display logic."""
    if as_json:
        click.echo(json.dumps([_task_dict(t) for t in tasks], indent=2))
        return

    if not tasks:
        click.echo(empty_msg)
        return

    for task in tasks:
        click.echo(_format_task(task))


def _run_view(view: str, as_json: bool, empty_msg: str, *args) -> None:
    try:
        with build_engine() as engine:
            tasks = getattr(engine, view)(*args)
    except DuedayError as e:
        _fail(e)
    _show_tasks(tasks, as_json, empty_msg)


def _parse_date(due: str) -> date:
    try:
        return date.fromisoformat(due)
    except ValueError:
        raise click.BadParameter(f"Expected YYYY-MM-DD, got {due!r}", param_hint="--due") from None


def _parse_deadline(due: str | None, time_str: str | None, repeat: str | None) -> Deadline | None:
    if not due:
        if time_str or repeat:
            raise click.BadParameter("--time and --repeat need --due")
        return None
    return Deadline(date=_parse_date(due), time=time_str or "", recurring=Recurrence.parse(repeat))


def _edit_deadline(
    current: Deadline | None, due: str | None, time_str: str | None, repeat: str | None
) -> Deadline:
    """Apply the supplied deadline parts on top of the current deadline."""
    if current is None:
        return _parse_deadline(due, time_str, repeat)
    changes = {}
    if due:
        changes["date"] = _parse_date(due)
    if time_str:
        changes["time"] = time_str
    if repeat:
        changes["recurring"] = Recurrence.parse(repeat)
    return replace(current, **changes)


@click.group()
@click.version_option()
@click.option("-v", "--verbose", is_flag=True, help="Log engine activity")
def main(verbose: bool):
    """dueday - deadlines, recurrence and the today view."""
    level = logging.DEBUG if verbose else load_config().log_level
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=level,
    )


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def today(as_json: bool):
    """List tasks due today."""
    _run_view("today", as_json, "Nothing due today.")


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def missed(as_json: bool):
    """Review missed deadlines, oldest first."""
    try:
        with build_engine() as engine:
            tasks = engine.missed()
            as_of = engine.clock().date()
    except DuedayError as e:
        _fail(e)

    if as_json or not tasks:
        _show_tasks(tasks, as_json, "No missed deadlines.")
        return

    for task in tasks:
        overdue = days_overdue(task.deadline, as_of)
        suffix = f"  OVERDUE by {overdue}d" if overdue else "  OVERDUE"
        click.echo(f"{_format_task(task)}{suffix}")


@main.command("open")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def open_tasks(as_json: bool):
    """List every open task."""
    _run_view("all_open", as_json, "No open tasks.")


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def archive(as_json: bool):
    """List completed (archived) tasks."""
    _run_view("archived", as_json, "Archive is empty.")


@main.command("show-list")
@click.argument("list_id", type=int)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def show_list(list_id: int, as_json: bool):
    """List tasks on one list (0 = unsorted, -1 = archive)."""
    _run_view("by_list", as_json, "List is empty.", list_id)


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def lists(as_json: bool):
    """Show lists with their open task counts."""
    try:
        with build_engine() as engine:
            all_lists = engine.lists
            counts = engine.open_counts()
    except DuedayError as e:
        _fail(e)

    rows = [{"id": UNSORTED_LIST_ID, "name": "Unsorted", "open": counts.get(UNSORTED_LIST_ID, 0)}]
    rows += [{"id": l.id, "name": l.name, "open": counts.get(l.id, 0)} for l in all_lists]

    if as_json:
        click.echo(json.dumps(rows, indent=2))
        return

    for row in rows:
        click.echo(f"{row['id']:>5}  {row['name']} ({row['open']})")


@main.command()
@click.argument("text")
@click.option("--list", "list_id", type=int, default=UNSORTED_LIST_ID, help="List id")
@click.option("--due", help="Deadline date (YYYY-MM-DD)")
@click.option("--time", "time_str", help="Deadline time (HH:MM)")
@click.option("--repeat", type=click.Choice(RECURRENCE_CHOICES), help="Recurrence policy")
@click.option("--reminder", is_flag=True, help="Create a reminder instead of a task")
def add(text: str, list_id: int, due: str | None, time_str: str | None, repeat: str | None, reminder: bool):
    """Create a task."""
    deadline = _parse_deadline(due, time_str, repeat)
    try:
        with build_engine() as engine:
            task = engine.create_task(text, list_id=list_id, deadline=deadline, kind="reminder" if reminder else "task")
    except DuedayError as e:
        _fail(e)
    click.echo(f"Created {task.id}: {task.text}")


@main.command()
@click.argument("task_id", type=int)
@click.option("--text", help="New text")
@click.option("--list", "list_id", type=int, help="Move to list id")
@click.option("--due", help="Deadline date (YYYY-MM-DD)")
@click.option("--time", "time_str", help="Deadline time (HH:MM)")
@click.option("--repeat", type=click.Choice(RECURRENCE_CHOICES), help="Recurrence policy")
@click.option("--clear-deadline", is_flag=True, help="Remove the deadline")
def edit(
    task_id: int,
    text: str | None,
    list_id: int | None,
    due: str | None,
    time_str: str | None,
    repeat: str | None,
    clear_deadline: bool,
):
    """Edit a task. Deadline parts that are not given keep their current value."""
    if clear_deadline and (due or time_str or repeat):
        raise click.UsageError("--clear-deadline cannot be combined with --due/--time/--repeat")

    try:
        with build_engine() as engine:
            deadline = UNSET
            if clear_deadline:
                deadline = None
            elif due or time_str or repeat:
                deadline = _edit_deadline(engine.get_task(task_id).deadline, due, time_str, repeat)
            task = engine.update_task(
                task_id,
                text=UNSET if text is None else text,
                list_id=UNSET if list_id is None else list_id,
                deadline=deadline,
            )
    except DuedayError as e:
        _fail(e)
    click.echo(f"Updated {task.id}: {task.text}")


@main.command()
@click.argument("task_id", type=int)
def toggle(task_id: int):
    """Complete a task, or re-open a completed one."""
    try:
        with build_engine() as engine:
            result = engine.toggle_complete(task_id)
    except DuedayError as e:
        _fail(e)

    state = "Completed" if result.task.completed else "Re-opened"
    click.echo(f"{state} {result.task.id}: {result.task.text}")
    if result.spawned:
        click.echo(f"Next occurrence {result.spawned.id} due {result.spawned.deadline.date}")


@main.command()
@click.argument("task_id", type=int)
def rm(task_id: int):
    """Delete a task."""
    try:
        with build_engine() as engine:
            engine.delete_task(task_id)
    except DuedayError as e:
        _fail(e)
    click.echo(f"Deleted {task_id}")


@main.command("add-list")
@click.argument("name")
@click.option("--color", default="#0B64F9", help="List color")
@click.option("--shared", is_flag=True, help="Mark the list as shared")
def add_list(name: str, color: str, shared: bool):
    """Create a list."""
    try:
        with build_engine() as engine:
            created = engine.create_list(name, color=color, is_shared=shared)
    except DuedayError as e:
        _fail(e)
    click.echo(f"Created list {created.id}: {created.name}")


@main.command("rm-list")
@click.argument("list_id", type=int)
def rm_list(list_id: int):
    """Delete a list; its tasks move to Unsorted."""
    try:
        with build_engine() as engine:
            moved = engine.delete_list(list_id)
    except DuedayError as e:
        _fail(e)
    click.echo(f"Deleted list {list_id} ({moved} tasks moved to Unsorted)")
