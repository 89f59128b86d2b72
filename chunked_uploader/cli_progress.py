"""Console rendering and progress helpers for the chunk-up CLI."""
from __future__ import annotations

import time
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.filesize import decimal
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.table import Table

from .models import UploadConfig
from .utils.events import UploadProgress


LARGE_FILE_THRESHOLD = 50 * 1024 * 1024
PERCENT_STEP = 5

console = Console()


def render_upload_summary(
    source: Path,
    config: UploadConfig,
    replace_video_id: Optional[int] = None,
    env_file: Optional[str] = None,
    log_mode: str = "silent",
) -> None:
    """Print what is about to be uploaded, and where."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    table.add_row("Source", str(source))
    table.add_row("Size", decimal(source.stat().st_size))
    table.add_row("Chunk Size", decimal(config.chunk_size))
    table.add_row("API", config.api_url)
    if replace_video_id is not None:
        table.add_row("Replaces", f"/videos/{replace_video_id}")
    table.add_row("Env File", env_file or "-")
    table.add_row("Logging", log_mode)

    console.print(
        Panel(
            table,
            title="[bold green]chunk-up[/bold green]",
            subtitle="[dim]resumable upload[/dim]",
            border_style="blue",
        )
    )


class SingleFileUploadProgress:
    """Single-file upload progress renderer."""

    def __init__(self, filename: str, file_size: int):
        self.filename = filename
        self.file_size = file_size
        self._started = False
        self._last_printed_percent = -1
        self._last_print_time = 0.0

        self._live: Optional[Live] = None
        self._task_id: Optional[TaskID] = None
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold cyan]{task.fields[filename]}", justify="left"),
            BarColumn(bar_width=42),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            expand=False,
            console=console,
        )

    @property
    def uses_bar(self) -> bool:
        return self.file_size > LARGE_FILE_THRESHOLD

    def start(self) -> None:
        if self._started:
            return

        if self.uses_bar:
            self._live = Live(
                self._progress,
                console=console,
                refresh_per_second=5,
                vertical_overflow="visible",
            )
            self._live.start()
            self._task_id = self._progress.add_task(
                "upload",
                filename=self.filename[:60],
                total=self.file_size,
            )
        else:
            console.print(f"[cyan]Uploading:[/cyan] {self.filename}")

        self._started = True

    def update(self, progress: UploadProgress) -> None:
        if not self._started:
            self.start()

        uploaded = progress.uploaded_bytes
        total = progress.total_bytes or self.file_size
        if total <= 0:
            return

        if self._task_id is not None:
            self._progress.update(self._task_id, completed=uploaded, total=total)
            return

        percent = int((uploaded / total) * 100)
        now = time.monotonic()
        should_print = (
            percent >= 100
            or percent - self._last_printed_percent >= PERCENT_STEP
            or percent < self._last_printed_percent  # server rewound the offset
            or now - self._last_print_time >= 2.0
        )
        if should_print and percent != self._last_printed_percent:
            console.print(f"  {percent:3d}% ({decimal(uploaded)}/{decimal(total)})")
            self._last_printed_percent = percent
            self._last_print_time = now

    def complete(self, success: bool = True, error: Optional[str] = None, location: Optional[str] = None) -> None:
        if self._live is not None:
            self._live.stop()
            self._live = None

        if success:
            suffix = f" -> {location}" if location else ""
            console.print(f"[green]Uploaded:[/green] {self.filename}{suffix}")
            return

        suffix = f" - {error}" if error else ""
        console.print(f"[red]Failed:[/red] {self.filename}{suffix}")

    def get_callback(self):
        return self.update
