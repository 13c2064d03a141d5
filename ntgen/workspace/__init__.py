"""ntgen workspace module.

Loads solutions and projects, compiles project sources into analysable
units, and builds small stub projects into loadable artifacts.

Key classes:
    Workspace       - Ordered project collection plus source compiler
    ProjectHandle   - A project with an async ``get_compiled_unit()``
    CompiledUnit    - Parsed sources of a project and its references
    BuildService    - Byte-compiles and packs a stub project
"""

from .builder import BuildResult, BuildService, BuildSettings, artifact_path, read_build_settings
from .loader import (
    ProjectDescriptor,
    ProjectHandle,
    Workspace,
    WorkspaceLoadError,
    load_project,
    load_solution,
    load_workspace,
    read_project_descriptor,
)
from .models import CompilationError, CompiledUnit, SourceModule

__all__ = [
    # Loading
    "Workspace",
    "ProjectHandle",
    "ProjectDescriptor",
    "WorkspaceLoadError",
    "load_solution",
    "load_project",
    "load_workspace",
    "read_project_descriptor",
    # Compilation
    "CompiledUnit",
    "SourceModule",
    "CompilationError",
    # Building
    "BuildService",
    "BuildResult",
    "BuildSettings",
    "artifact_path",
    "read_build_settings",
]
