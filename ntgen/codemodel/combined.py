"""Symbol model spanning several compiled units."""

from __future__ import annotations

from collections.abc import Iterable

from ntgen.codemodel.models import SymbolModel, TypeDescriptor


class CombinedCodeModel:
    """Concatenation of several symbol models.

    Every accessor re-concatenates the sources in construction order, so the
    result always reflects the current sources.  Types visible from more than
    one unit appear once per unit.
    """

    def __init__(self, code_models: Iterable[SymbolModel]) -> None:
        self._code_models = list(code_models)

    @property
    def classes(self) -> list[TypeDescriptor]:
        return [t for model in self._code_models for t in model.classes]

    @property
    def interfaces(self) -> list[TypeDescriptor]:
        return [t for model in self._code_models for t in model.interfaces]

    @property
    def enums(self) -> list[TypeDescriptor]:
        return [t for model in self._code_models for t in model.enums]

    @property
    def delegates(self) -> list[TypeDescriptor]:
        return [t for model in self._code_models for t in model.delegates]

    @property
    def source_count(self) -> int:
        """Number of per-unit models combined, not the number of types."""
        return len(self._code_models)
