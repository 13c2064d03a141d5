"""Workspace loading and project compilation.

A workspace is an ordered collection of projects loaded either from a
solution file (YAML listing project descriptors) or from a single project
descriptor (``pyproject.toml``) plus the projects it references.

Compiling a project parses every Python source under its directory into a
syntax tree.  Sources of referenced projects (``[tool.ntgen].references``)
are parsed as well and flagged as referenced.  Nothing is cached: every call
to :meth:`ProjectHandle.get_compiled_unit` reads and parses from scratch.
"""

from __future__ import annotations

import ast
import asyncio
import tomllib
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ntgen.config import Config, TargetKind
from ntgen.utils import find_files
from ntgen.workspace.models import CompilationError, CompiledUnit, SourceModule

LogSink = Callable[[str], None]


class WorkspaceLoadError(Exception):
    """Raised when the root target cannot be loaded at all."""


def _default_exclude(name: str) -> bool:
    return name.startswith(".") or name == "__pycache__"


def _discard(message: str) -> None:
    return None


# ---------------------------------------------------------------------------
# Project descriptors
# ---------------------------------------------------------------------------


@dataclass
class ProjectDescriptor:
    """Parsed contents of a project's ``pyproject.toml``."""

    path: Path
    name: str
    references: list[Path] = field(default_factory=list)

    @property
    def directory(self) -> Path:
        return self.path.parent


def _descriptor_path(location: Path) -> Path:
    """Accept either a project directory or a descriptor file."""
    return location / "pyproject.toml" if location.is_dir() else location


def read_project_descriptor(path: str | Path) -> ProjectDescriptor:
    """Read a ``pyproject.toml`` project descriptor.

    The project name is taken from ``[project].name``, then
    ``[tool.poetry].name``, then the directory name.

    Raises:
        WorkspaceLoadError: If the file is missing or is not valid TOML.
    """
    descriptor = Path(path).resolve()
    try:
        data = tomllib.loads(descriptor.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise WorkspaceLoadError(f"Project file not found: {descriptor}") from exc
    except (tomllib.TOMLDecodeError, UnicodeDecodeError) as exc:
        raise WorkspaceLoadError(f"Invalid project file '{descriptor}': {exc}") from exc

    tool = data.get("tool", {})
    name = (
        data.get("project", {}).get("name")
        or tool.get("poetry", {}).get("name")
        or descriptor.parent.name
    )
    references = [
        _descriptor_path((descriptor.parent / ref).resolve())
        for ref in tool.get("ntgen", {}).get("references", [])
    ]
    return ProjectDescriptor(path=descriptor, name=str(name), references=references)


def module_name_for(path: Path, root: Path) -> str:
    """Dotted module name of *path* relative to the project directory *root*."""
    parts = list(path.relative_to(root).with_suffix("").parts)
    if len(parts) > 1 and parts[0] == "src":
        parts = parts[1:]
    if parts and parts[-1] == "__init__":
        parts = parts[:-1]
    return ".".join(parts)


def _parse_source(path: Path, root: Path, project_name: str, referenced: bool) -> SourceModule:
    try:
        text = path.read_text(encoding="utf-8")
        tree = ast.parse(text, filename=str(path))
    except SyntaxError as exc:
        raise CompilationError(
            f"Compiling '{path}' failed: {exc.msg} (line {exc.lineno})", path
        ) from exc
    except UnicodeDecodeError as exc:
        raise CompilationError(f"Compiling '{path}' failed: {exc}", path) from exc
    return SourceModule(
        path=path,
        module_name=module_name_for(path, root),
        tree=tree,
        project_name=project_name,
        referenced=referenced,
    )


# ---------------------------------------------------------------------------
# Project handles and the workspace
# ---------------------------------------------------------------------------


class ProjectHandle:
    """A project in a workspace.

    Attributes:
        name: Human-readable project name.
        file_path: Absolute path of the project descriptor, or ``None`` when
            the solution lists a project whose file does not exist.
        supports_compilation: ``False`` for solution entries that are not
            Python project descriptors.
        references: Descriptor paths of referenced projects.
    """

    def __init__(
        self,
        workspace: "Workspace",
        name: str,
        file_path: Path | None,
        *,
        supports_compilation: bool = True,
        references: Iterable[Path] = (),
    ) -> None:
        self._workspace = workspace
        self.name = name
        self.file_path = file_path
        self.supports_compilation = supports_compilation
        self.references = list(references)

    @property
    def directory(self) -> Path | None:
        return self.file_path.parent if self.file_path else None

    async def get_compiled_unit(self) -> CompiledUnit:
        """Parse the project's sources (and referenced sources) from scratch.

        Raises:
            CompilationError: If the project cannot be compiled or has no
                source files.
        """
        return await self._workspace.compile(self)

    def __repr__(self) -> str:
        return f"ProjectHandle(name={self.name!r}, file_path={self.file_path!r})"


class Workspace:
    """Ordered collection of projects plus the compiler that parses them.

    The *log* sink receives loader and compiler diagnostics; it is owned by
    the workspace and released with it.
    """

    def __init__(
        self,
        name: str,
        *,
        log: LogSink | None = None,
        exclude: Callable[[str], bool] | None = None,
    ) -> None:
        self.name = name
        self.projects: list[ProjectHandle] = []
        self._log = log or _discard
        self._exclude = exclude or _default_exclude

    def add_project(
        self,
        name: str,
        file_path: Path | None,
        *,
        supports_compilation: bool = True,
        references: Iterable[Path] = (),
    ) -> ProjectHandle:
        handle = ProjectHandle(
            self,
            name,
            file_path,
            supports_compilation=supports_compilation,
            references=references,
        )
        self.projects.append(handle)
        return handle

    def find_project(self, file_path: Path) -> ProjectHandle | None:
        for project in self.projects:
            if project.file_path == file_path:
                return project
        return None

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------

    async def compile(self, project: ProjectHandle) -> CompiledUnit:
        if project.file_path is None:
            raise CompilationError(f"Project '{project.name}' has no project file")
        if not project.supports_compilation:
            raise CompilationError(
                f"Compiling '{project.name}' is not supported", project.file_path
            )

        self._log(f"Parsing sources of '{project.name}'")
        modules = await self._parse_project(project.file_path.parent, project.name, False)
        if not modules:
            raise CompilationError(
                f"Compiling '{project.file_path}' failed: no source files found",
                project.file_path,
            )

        seen = {project.file_path}
        pending = list(project.references)
        while pending:
            ref_path = pending.pop(0)
            if ref_path in seen:
                continue
            seen.add(ref_path)
            try:
                ref = read_project_descriptor(ref_path)
            except WorkspaceLoadError as exc:
                self._log(f"Skipping reference of '{project.name}': {exc}")
                continue
            modules.extend(await self._parse_project(ref.directory, ref.name, True))
            pending.extend(ref.references)

        return CompiledUnit(
            project_name=project.name,
            project_path=project.file_path,
            modules=modules,
        )

    async def _parse_project(
        self, root: Path, project_name: str, referenced: bool
    ) -> list[SourceModule]:
        files = await asyncio.to_thread(find_files, root, ".py", self._exclude)
        parsed = await asyncio.gather(
            *(
                asyncio.to_thread(_parse_source, path, root, project_name, referenced)
                for path in files
            )
        )
        return list(parsed)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def _solution_entries(raw: Any, solution_path: Path) -> list[dict[str, Any]]:
    if not isinstance(raw, dict) or not isinstance(raw.get("projects", []), list):
        raise WorkspaceLoadError(
            f"Invalid solution file '{solution_path}': expected a mapping with a 'projects' list"
        )
    entries: list[dict[str, Any]] = []
    for item in raw.get("projects", []):
        if isinstance(item, str):
            entries.append({"path": item})
        elif isinstance(item, dict) and "path" in item:
            entries.append(item)
        else:
            raise WorkspaceLoadError(
                f"Invalid project entry in '{solution_path}': {item!r}"
            )
    return entries


def load_solution(
    solution_path: str | Path,
    *,
    log: LogSink | None = None,
    exclude: Callable[[str], bool] | None = None,
) -> Workspace:
    """Load every project listed in a YAML solution file.

    Entries whose path does not exist become handles without a file path;
    entries that are not ``.toml`` descriptors, or cannot be read, become
    handles that do not support compilation.  Both are reported later by
    template discovery rather than failing the load.

    Raises:
        WorkspaceLoadError: If the solution file is missing or malformed.
    """
    path = Path(solution_path).resolve()
    sink = log or _discard
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except FileNotFoundError as exc:
        raise WorkspaceLoadError(f"Solution file not found: {path}") from exc
    except yaml.YAMLError as exc:
        raise WorkspaceLoadError(f"Invalid solution file '{path}': {exc}") from exc

    entries = _solution_entries(raw, path)
    workspace = Workspace(str(raw.get("name") or path.stem), log=log, exclude=exclude)
    sink(f"Loading solution from '{path}'")

    for entry in entries:
        project_path = _descriptor_path((path.parent / str(entry["path"])).resolve())
        override = entry.get("name")
        if not project_path.exists():
            fallback = (
                project_path.parent.name
                if project_path.suffix.lower() == ".toml"
                else project_path.name
            )
            workspace.add_project(str(override or fallback), None)
            continue
        if project_path.suffix.lower() != ".toml":
            workspace.add_project(
                str(override or project_path.stem),
                project_path,
                supports_compilation=False,
            )
            continue
        try:
            descriptor = read_project_descriptor(project_path)
        except WorkspaceLoadError as exc:
            sink(str(exc))
            workspace.add_project(
                str(override or project_path.parent.name),
                project_path,
                supports_compilation=False,
            )
            continue
        workspace.add_project(
            str(override or descriptor.name),
            descriptor.path,
            references=descriptor.references,
        )

    sink(f"Found {len(workspace.projects)} projects")
    return workspace


def load_project(
    project_path: str | Path,
    *,
    log: LogSink | None = None,
    exclude: Callable[[str], bool] | None = None,
) -> Workspace:
    """Load a single project and, transitively, the projects it references.

    Raises:
        WorkspaceLoadError: If the project descriptor is missing or invalid.
    """
    sink = log or _discard
    root = read_project_descriptor(_descriptor_path(Path(project_path).resolve()))
    sink(f"Loading project from '{root.path}'")
    workspace = Workspace(root.name, log=log, exclude=exclude)

    pending = [root]
    while pending:
        descriptor = pending.pop(0)
        if workspace.find_project(descriptor.path) is not None:
            continue
        workspace.add_project(
            descriptor.name, descriptor.path, references=descriptor.references
        )
        for ref_path in descriptor.references:
            try:
                pending.append(read_project_descriptor(ref_path))
            except WorkspaceLoadError as exc:
                sink(f"Skipping reference of '{descriptor.name}': {exc}")

    return workspace


def load_workspace(config: Config, *, log: LogSink | None = None) -> Workspace:
    """Load the run's target according to ``config.target_kind``."""
    if config.target_kind is TargetKind.SOLUTION:
        return load_solution(config.target_path, log=log, exclude=config.is_excluded_dir)
    return load_project(config.target_path, log=log, exclude=config.is_excluded_dir)
