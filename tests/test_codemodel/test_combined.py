"""Unit tests for the combined symbol model (ntgen.codemodel.combined)."""

from __future__ import annotations

import pytest

from ntgen.codemodel import CodeModel, CombinedCodeModel, TypeDescriptor, TypeKind


def _types(kind: TypeKind, *names: str) -> list[TypeDescriptor]:
    return [TypeDescriptor(name=n, kind=kind) for n in names]


def _model(prefix: str, classes: int, interfaces: int = 0, enums: int = 0, delegates: int = 0):
    return CodeModel(
        classes=_types(TypeKind.CLASS, *(f"{prefix}C{i}" for i in range(classes))),
        interfaces=_types(TypeKind.INTERFACE, *(f"{prefix}I{i}" for i in range(interfaces))),
        enums=_types(TypeKind.ENUM, *(f"{prefix}E{i}" for i in range(enums))),
        delegates=_types(TypeKind.DELEGATE, *(f"{prefix}D{i}" for i in range(delegates))),
    )


class MutableModel:
    """A symbol model whose collections can change after construction."""

    def __init__(self) -> None:
        self.classes: list[TypeDescriptor] = []
        self.interfaces: list[TypeDescriptor] = []
        self.enums: list[TypeDescriptor] = []
        self.delegates: list[TypeDescriptor] = []


class TestCombinedCodeModel:
    @pytest.mark.unit
    def test_sizes_are_sums(self):
        combined = CombinedCodeModel(
            [_model("a", 2, 1, 0, 3), _model("b", 1, 0, 4, 0), _model("c", 0, 2, 1, 1)]
        )
        assert len(combined.classes) == 3
        assert len(combined.interfaces) == 3
        assert len(combined.enums) == 5
        assert len(combined.delegates) == 4
        assert combined.source_count == 3
        with pytest.raises(TypeError):
            len(combined)

    @pytest.mark.unit
    def test_order_follows_sources(self):
        combined = CombinedCodeModel([_model("a", 2), _model("b", 2)])
        assert [t.name for t in combined.classes] == ["aC0", "aC1", "bC0", "bC1"]

    @pytest.mark.unit
    def test_no_sources(self):
        combined = CombinedCodeModel([])
        assert combined.classes == []
        assert combined.interfaces == []
        assert combined.enums == []
        assert combined.delegates == []

    @pytest.mark.unit
    def test_duplicates_kept(self):
        shared = TypeDescriptor(name="Money", kind=TypeKind.CLASS)
        combined = CombinedCodeModel(
            [CodeModel(classes=[shared]), CodeModel(classes=[shared])]
        )
        assert combined.classes == [shared, shared]

    @pytest.mark.unit
    def test_reflects_source_changes(self):
        source = MutableModel()
        combined = CombinedCodeModel([source])
        assert combined.enums == []

        source.enums.append(TypeDescriptor(name="Color", kind=TypeKind.ENUM))

        assert [t.name for t in combined.enums] == ["Color"]

    @pytest.mark.unit
    def test_repeated_access_is_stable(self):
        combined = CombinedCodeModel([_model("a", 2), _model("b", 1)])
        first = combined.classes
        first.clear()
        assert len(combined.classes) == 3

    @pytest.mark.unit
    def test_accepts_generator(self):
        combined = CombinedCodeModel(_model(p, 1) for p in "xyz")
        assert [t.name for t in combined.classes] == ["xC0", "yC0", "zC0"]
        # A generator is consumed once at construction, not on every access.
        assert len(combined.classes) == 3
