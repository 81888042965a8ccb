from __future__ import annotations

from pathlib import Path
from typing import Callable

from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskID, TextColumn, TimeElapsedColumn


def build_progress(console: Console) -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        TimeElapsedColumn(),
        console=console,
    )


def progress_handler(progress: Progress, console: Console) -> Callable[[dict[str, object]], None]:
    """Translate service progress events into rich progress bar updates."""
    tasks: dict[str, TaskID] = {}

    def _task(name: str) -> TaskID:
        if name not in tasks:
            tasks[name] = progress.add_task(name.capitalize(), total=None)
        return tasks[name]

    def _on_progress(event: dict[str, object]) -> None:
        kind = event.get("event")
        if kind == "scan_complete":
            total = int(event.get("planned_total", 0))
            progress.update(
                _task("vectorize"),
                description=f"Vectorizing {total} images ({event.get('skipped', 0)} already done)",
                total=max(total, 1),
                completed=0 if total else 1,
            )
            return

        if kind == "file_done":
            progress.advance(_task("vectorize"), 1)
            return

        if kind == "file_error":
            progress.advance(_task("vectorize"), 1)
            path = str(event.get("path", ""))
            err = str(event.get("error", "unknown error"))
            console.print(f"[red]failed[/red] {escape(Path(path).name)}: {escape(err)}")
            return

        if kind == "load_start":
            progress.update(
                _task("load"),
                description=f"Loading {event.get('total', 0)} vectors (dim {event.get('dimension')})",
                total=max(int(event.get("batches", 0)), 1),
                completed=0,
            )
            return

        if kind == "load_batch_done":
            progress.update(_task("load"), completed=int(event.get("index", 0)))

    return _on_progress
