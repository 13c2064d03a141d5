"""Data types shared by the workspace loader and its consumers."""

from __future__ import annotations

import ast
from dataclasses import dataclass, field
from pathlib import Path


class CompilationError(Exception):
    """Raised when a project does not produce a usable compiled unit."""

    def __init__(self, message: str, project_path: Path | None = None):
        self.project_path = project_path
        super().__init__(message)


@dataclass
class SourceModule:
    """One parsed source file of a compiled unit."""

    path: Path
    module_name: str
    tree: ast.Module
    project_name: str
    referenced: bool = False


@dataclass
class CompiledUnit:
    """The analysable form of a project: its own modules plus referenced ones.

    Modules of referenced projects carry ``referenced=True`` so the symbol
    extractor can leave them out on request.
    """

    project_name: str
    project_path: Path
    modules: list[SourceModule] = field(default_factory=list)

    @property
    def syntax_trees(self) -> list[ast.Module]:
        """Syntax trees of the project's own sources."""
        return [m.tree for m in self.modules if not m.referenced]

    @property
    def referenced_modules(self) -> list[SourceModule]:
        return [m for m in self.modules if m.referenced]
