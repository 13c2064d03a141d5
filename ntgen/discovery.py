"""Template discovery.

Finds template files under every project directory of a workspace.  Only
projects that own at least one template take part in generation: projects
without templates are never compiled or configured.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from ntgen.utils import find_files, print_progress, print_warning
from ntgen.workspace import ProjectHandle


@dataclass
class ProjectTemplates:
    """A project together with its templates, in walk order."""

    project: ProjectHandle
    templates: list[Path] = field(default_factory=list)


def find_templates(
    project_dir: Path,
    extension: str = ".nt",
    exclude: Callable[[str], bool] | None = None,
) -> list[Path]:
    """Every file under *project_dir* ending in *extension*, at any depth."""
    return find_files(project_dir, extension, exclude)


async def discover_templates(
    projects: Iterable[ProjectHandle],
    *,
    extension: str = ".nt",
    exclude: Callable[[str], bool] | None = None,
    verbose: bool = False,
) -> list[ProjectTemplates]:
    """Map each eligible project to its templates.

    Projects that cannot be compiled or lack a project file are skipped
    with a warning.  Projects with zero templates are left out of the result.

    Returns:
        ``ProjectTemplates`` for projects with templates, in workspace order.
    """
    discovered: list[ProjectTemplates] = []
    for project in projects:
        if not project.supports_compilation:
            print_warning(f"Compiling '{project.name}' is not supported")
            continue
        if project.file_path is None:
            print_warning(
                f"Project '{project.name}' lacks a project file, which is not supported"
            )
            continue

        if verbose:
            print_progress(f"Looking for templates in project '{project.name}'")
        templates = await asyncio.to_thread(
            find_templates, project.file_path.parent, extension, exclude
        )
        if verbose:
            print_progress(f"Found {len(templates)} templates in project")
        if templates:
            discovered.append(ProjectTemplates(project=project, templates=templates))

    return discovered
