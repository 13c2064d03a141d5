"""Per-project generator configuration, written by users.

A project opts into custom settings by adding a module whose file name
matches a class that subclasses :class:`EditorConfig` and is marked with
:func:`NTEditorFile`::

    # generatorconfig.py  (or generator_config.py)
    from ntgen.editor_config import EditorConfig, NTEditorFile


    class Formatting:
        @staticmethod
        def shout(value: str) -> str:
            return value.upper()


    @NTEditorFile
    class GeneratorConfig(EditorConfig):
        types_that_contain_custom_functions = [Formatting]
        namespaces_to_be_searched = ["app.models"]

The module is copied into an isolated build, so it may only import the
standard library and ``ntgen`` itself.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TypeVar

T = TypeVar("T", bound=type)


def NTEditorFile(cls: T) -> T:
    """Mark *cls* as the project's editor config.

    The marker is what the generator looks for in the project's symbols; at
    runtime it only tags the class.
    """
    cls.__ntgen_editor_file__ = True
    return cls


class EditorConfig:
    """Defaults for every setting.  Override as class attributes or properties."""

    #: Classes whose static and class methods become template functions.
    types_that_contain_custom_functions: Sequence[type] = ()

    #: Names of workspace projects to collect symbols from; empty means all.
    projects_to_be_searched: Sequence[str] = ()

    #: Namespaces (dotted module paths) to keep; empty means all.
    namespaces_to_be_searched: Sequence[str] = ()

    #: Whether symbols declared in referenced projects are visible.
    search_in_referenced_projects_and_assemblies: bool = True
