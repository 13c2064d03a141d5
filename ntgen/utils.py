"""Shared utility functions for ntgen.

Provides async command execution, file-system helpers and Rich-based
diagnostic output.  Everything is printed to standard error: the tool only
produces files, standard output is never written to.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable
from pathlib import Path

from rich.console import Console
from rich.table import Table
from rich.text import Text

console = Console(stderr=True)

# ---------------------------------------------------------------------------
# Async command execution
# ---------------------------------------------------------------------------


async def run_command(
    cmd: list[str],
    cwd: str | Path | None = None,
    timeout: int = 120,
    env: dict[str, str] | None = None,
) -> tuple[int, str, str]:
    """Run a command asynchronously and capture its output.

    Args:
        cmd: Program and arguments.
        cwd: Working directory for the child process.
        timeout: Maximum wall-clock seconds before the process is killed.
        env: Optional extra environment variables merged on top of ``os.environ``.

    Returns:
        A ``(returncode, stdout, stderr)`` tuple.  A timed out command
        reports a return code of ``-1``.
    """
    merged_env: dict[str, str] | None = None
    if env:
        merged_env = {**os.environ, **env}

    process = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=str(cwd) if cwd else None,
        env=merged_env,
    )

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(), timeout=timeout
        )
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        return -1, "", f"Command timed out after {timeout}s: {' '.join(cmd)}"

    stdout_str = (stdout_bytes or b"").decode("utf-8", errors="replace").strip()
    stderr_str = (stderr_bytes or b"").decode("utf-8", errors="replace").strip()
    return process.returncode or 0, stdout_str, stderr_str


# ---------------------------------------------------------------------------
# File-system helpers
# ---------------------------------------------------------------------------


def ensure_dir(path: str | Path) -> Path:
    """Create a directory (and parents) if it does not exist."""
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def find_files(
    root: str | Path,
    suffix: str,
    exclude: Callable[[str], bool] | None = None,
) -> list[Path]:
    """Recursively list files under *root* whose name ends with *suffix*.

    The suffix comparison ignores case.  Directories are walked top-down in
    sorted order, so the result is stable across runs and platforms.
    Directory names for which *exclude* returns ``True`` are not descended
    into.

    Args:
        root: Directory to search.
        suffix: File name ending such as ``".py"`` or ``".nt"``.
        exclude: Optional predicate on directory names.

    Returns:
        Matching file paths in walk order.  Empty if *root* is not a directory.
    """
    suffix = suffix.lower()
    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not (exclude and exclude(d)))
        for filename in sorted(filenames):
            if filename.lower().endswith(suffix):
                found.append(Path(dirpath) / filename)
    return found


async def write_text_file(path: Path, content: str) -> None:
    """Write *content* to *path* off the event loop, replacing any existing file."""
    await asyncio.to_thread(path.write_text, content, "utf-8")


async def read_text_file(path: Path) -> str:
    return await asyncio.to_thread(path.read_text, "utf-8")


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string.

    Examples::

        format_duration(3.7)    -> "3.7s"
        format_duration(65.2)   -> "1m 5s"
        format_duration(3661.0) -> "1h 1m 1s"
    """
    if seconds < 0:
        return "0.0s"

    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = seconds % 60

    parts: list[str] = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")

    if hours > 0 or minutes > 0:
        parts.append(f"{int(secs)}s")
    else:
        parts.append(f"{secs:.1f}s")

    return " ".join(parts)


# ---------------------------------------------------------------------------
# Rich output helpers
# ---------------------------------------------------------------------------
#
# Messages are wrapped in ``Text`` so that paths and user content containing
# square brackets are never interpreted as Rich markup.


def print_progress(message: str) -> None:
    """Print a dim ``[-]`` progress line."""
    console.print(Text(f"[-] {message}", style="dim"), soft_wrap=True)


def print_warning(message: str) -> None:
    """Print a yellow ``[!]`` warning."""
    console.print(Text(f"[!] {message}", style="bold yellow"), soft_wrap=True)


def print_error(message: str) -> None:
    """Print a red ``[X]`` error."""
    console.print(Text(f"[X] {message}", style="bold red"), soft_wrap=True)


def print_detail(message: str) -> None:
    """Print an indented continuation line under a previous message."""
    console.print(Text(f"      {message}"), soft_wrap=True)


def print_summary_table(data: dict[str, str], title: str = "Summary") -> None:
    """Print a two-column key/value summary table.

    Args:
        data: Mapping of label -> value.
        title: Table title.
    """
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Item", style="dim", no_wrap=True)
    table.add_column("Value")

    for key, value in data.items():
        table.add_row(key, str(value))

    console.print(table)
