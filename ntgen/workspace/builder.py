"""Build service for small, self-contained projects.

Builds a directory holding a stub ``pyproject.toml`` and a handful of Python
sources into a single importable artifact.  The sources are byte-compiled
in a child interpreter (so a broken file cannot take down the caller) and
then packed into ``bin/Debug/<framework>/<name>.zip``.
"""

from __future__ import annotations

import asyncio
import importlib.util
import sys
import time
import tomllib
import zipfile
from dataclasses import dataclass, field
from pathlib import Path

from ntgen.utils import ensure_dir, run_command

BUILD_CONFIGURATION = "Debug"
ARTIFACT_SUFFIX = ".zip"
DEFAULT_FRAMEWORK = "py3"


@dataclass
class BuildSettings:
    """Build-relevant fields of a project descriptor."""

    name: str
    framework: str = DEFAULT_FRAMEWORK
    requires: list[str] = field(default_factory=list)


@dataclass
class BuildResult:
    """Structured result of a build."""

    success: bool
    output_path: Path | None = None
    messages: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0


def read_build_settings(descriptor_path: str | Path) -> BuildSettings:
    """Read ``[project].name`` and ``[tool.ntgen.build]`` from a descriptor.

    Raises:
        OSError: If the descriptor cannot be read.
        tomllib.TOMLDecodeError: If it is not valid TOML.
    """
    path = Path(descriptor_path)
    data = tomllib.loads(path.read_text(encoding="utf-8"))
    build = data.get("tool", {}).get("ntgen", {}).get("build", {})
    return BuildSettings(
        name=str(data.get("project", {}).get("name") or path.parent.name),
        framework=str(build.get("framework", DEFAULT_FRAMEWORK)),
        requires=[str(r) for r in build.get("requires", [])],
    )


def artifact_path(directory: Path, settings: BuildSettings) -> Path:
    """Where a successful build of *directory* leaves its artifact."""
    return (
        directory
        / "bin"
        / BUILD_CONFIGURATION
        / settings.framework
        / f"{settings.name}{ARTIFACT_SUFFIX}"
    )


def _pack(output: Path, sources: list[Path]) -> None:
    ensure_dir(output.parent)
    with zipfile.ZipFile(output, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for source in sources:
            archive.write(source, arcname=source.name)


class BuildService:
    """Builds stub projects into loadable artifacts.

    Args:
        python: Interpreter used to byte-compile the sources.
        timeout: Maximum seconds the compile step may take.
    """

    def __init__(self, python: str | None = None, timeout: int = 300) -> None:
        self.python = python or sys.executable
        self.timeout = timeout

    async def build(self, descriptor_path: str | Path, *, restore: bool = True) -> BuildResult:
        """Build the project described by *descriptor_path*.

        With *restore* enabled every import listed under
        ``[tool.ntgen.build].requires`` must be resolvable first.

        Returns:
            A ``BuildResult``; failures are reported through ``success`` and
            ``messages`` rather than raised.
        """
        start = time.monotonic()
        descriptor = Path(descriptor_path)

        def _failed(*messages: str) -> BuildResult:
            return BuildResult(
                success=False,
                messages=[m for m in messages if m],
                duration_seconds=time.monotonic() - start,
            )

        try:
            settings = read_build_settings(descriptor)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            return _failed(f"Cannot read project file '{descriptor}': {exc}")

        if restore:
            missing = [r for r in settings.requires if importlib.util.find_spec(r) is None]
            if missing:
                return _failed(f"Unable to restore: {', '.join(missing)} not installed")

        sources = sorted(descriptor.parent.glob("*.py"))
        if not sources:
            return _failed(f"Nothing to build in '{descriptor.parent}'")

        returncode, stdout, stderr = await run_command(
            [self.python, "-m", "py_compile", *(s.name for s in sources)],
            cwd=descriptor.parent,
            timeout=self.timeout,
        )
        if returncode != 0:
            output = stderr or stdout or f"py_compile exited with {returncode}"
            return _failed(*output.splitlines())

        output_path = artifact_path(descriptor.parent, settings)
        await asyncio.to_thread(_pack, output_path, sources)

        return BuildResult(
            success=True,
            output_path=output_path,
            duration_seconds=time.monotonic() - start,
        )
