"""Shared pytest fixtures for the ntgen test suite.

Provides reusable fixtures for:
- Python projects written to a temporary directory
- Compiled units built from inline source text
- Fake project handles that count compilations
- Sample editor config sources
"""

from __future__ import annotations

import ast
import textwrap
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from ntgen.config import Config, TargetKind
from ntgen.workspace import CompilationError, CompiledUnit, SourceModule


# ---------------------------------------------------------------------------
# Projects on disk
# ---------------------------------------------------------------------------

def _pyproject(name: str, references: list[str] | None = None) -> str:
    text = f'[project]\nname = "{name}"\nversion = "0.1.0"\n'
    if references:
        refs = ", ".join(f'"{r}"' for r in references)
        text += f"\n[tool.ntgen]\nreferences = [{refs}]\n"
    return text


@pytest.fixture
def make_project(tmp_path: Path) -> Callable[..., Path]:
    """Factory writing a project directory and returning its ``pyproject.toml``.

    Usage::

        descriptor = make_project("app", {"app/models.py": "class User: ..."})
    """

    def _make_project(
        name: str,
        files: dict[str, str] | None = None,
        *,
        references: list[str] | None = None,
        root: Path | None = None,
    ) -> Path:
        project_dir = (root or tmp_path) / name
        project_dir.mkdir(parents=True, exist_ok=True)
        descriptor = project_dir / "pyproject.toml"
        descriptor.write_text(_pyproject(name, references), encoding="utf-8")
        for rel, content in (files or {}).items():
            path = project_dir / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(content), encoding="utf-8")
        return descriptor

    return _make_project


@pytest.fixture
def run_config(tmp_path: Path) -> Callable[..., Config]:
    """Factory for a ``Config`` with test defaults."""

    def _run_config(**overrides: Any) -> Config:
        values: dict[str, Any] = {
            "target_path": tmp_path / "demo.yaml",
            "target_kind": TargetKind.SOLUTION,
        }
        values.update(overrides)
        return Config(**values)

    return _run_config


# ---------------------------------------------------------------------------
# Compiled units
# ---------------------------------------------------------------------------

@pytest.fixture
def make_unit() -> Callable[..., CompiledUnit]:
    """Factory building a ``CompiledUnit`` from ``{module_name: source}`` mappings."""

    def _make_unit(
        project_name: str,
        sources: dict[str, str],
        referenced: dict[str, str] | None = None,
    ) -> CompiledUnit:
        modules = [
            SourceModule(
                path=Path(f"/src/{project_name}/{name.replace('.', '/')}.py"),
                module_name=name,
                tree=ast.parse(textwrap.dedent(text)),
                project_name=project_name,
            )
            for name, text in sources.items()
        ]
        modules += [
            SourceModule(
                path=Path(f"/src/shared/{name.replace('.', '/')}.py"),
                module_name=name,
                tree=ast.parse(textwrap.dedent(text)),
                project_name="shared",
                referenced=True,
            )
            for name, text in (referenced or {}).items()
        ]
        return CompiledUnit(
            project_name=project_name,
            project_path=Path(f"/src/{project_name}/pyproject.toml"),
            modules=modules,
        )

    return _make_unit


# ---------------------------------------------------------------------------
# Fake project handles
# ---------------------------------------------------------------------------

class FakeProject:
    """Stand-in for ``ProjectHandle`` that records how often it is compiled."""

    def __init__(
        self,
        name: str,
        file_path: Path | None,
        unit: CompiledUnit | None = None,
        *,
        error: CompilationError | None = None,
        supports_compilation: bool = True,
    ) -> None:
        self.name = name
        self.file_path = file_path
        self.unit = unit
        self.error = error
        self.supports_compilation = supports_compilation
        self.compile_calls = 0

    @property
    def directory(self) -> Path | None:
        return self.file_path.parent if self.file_path else None

    async def get_compiled_unit(self) -> CompiledUnit:
        self.compile_calls += 1
        if self.error is not None:
            raise self.error
        assert self.unit is not None
        return self.unit


class FakeWorkspace:
    def __init__(self, projects: list[FakeProject]) -> None:
        self.name = "fake"
        self.projects = projects


@pytest.fixture
def fake_project() -> type[FakeProject]:
    return FakeProject


@pytest.fixture
def fake_workspace() -> type[FakeWorkspace]:
    return FakeWorkspace


# ---------------------------------------------------------------------------
# Editor config sources
# ---------------------------------------------------------------------------

@pytest.fixture
def editor_config_source() -> str:
    """A valid editor config module named ``GeneratorConfig``."""
    return textwrap.dedent(
        """\
        from ntgen.editor_config import EditorConfig, NTEditorFile


        class Shouting:
            @staticmethod
            def shout(value):
                return str(value).upper()


        @NTEditorFile
        class GeneratorConfig(EditorConfig):
            types_that_contain_custom_functions = [Shouting]
            projects_to_be_searched = ["app"]
            namespaces_to_be_searched = ["app.models"]
            search_in_referenced_projects_and_assemblies = False
        """
    )
