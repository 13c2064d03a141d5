"""Pydantic v2 models describing the symbols of compiled projects.

A symbol model exposes four disjoint, ordered collections of type
descriptors: classes, interfaces, enums and delegates.  Templates navigate
these descriptors through the ``data`` variable.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol, Sequence

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class TypeKind(str, Enum):
    """Which collection of a symbol model a type belongs to."""
    CLASS = "class"
    INTERFACE = "interface"
    ENUM = "enum"
    DELEGATE = "delegate"


class MemberKind(str, Enum):
    """What sort of member a descriptor describes."""

    METHOD = "method"
    PROPERTY = "property"
    FIELD = "field"
    VALUE = "value"


def _simple_name(name: str) -> str:
    """``pkg.markers.NTEditorFileAttribute`` -> ``NTEditorFile``."""
    name = name.rsplit(".", 1)[-1]
    if name.endswith("Attribute") and name != "Attribute":
        name = name[: -len("Attribute")]
    return name


# ---------------------------------------------------------------------------
# Descriptors
# ---------------------------------------------------------------------------

class MemberDescriptor(BaseModel):
    """A method, property, field or enum value of a type."""
    name: str = Field(..., description="Member name as written in source")
    kind: MemberKind = Field(..., description="What sort of member this is")
    type_name: str = Field(default="", description="Annotation or return annotation source text")
    attributes: list[str] = Field(default_factory=list, description="Decorator names")
    is_static: bool = Field(default=False, description="staticmethod or classmethod")

    def has_attribute(self, name: str) -> bool:
        wanted = _simple_name(name)
        return any(_simple_name(a) == wanted for a in self.attributes)


class TypeDescriptor(BaseModel):
    """A type found in a compiled unit."""
    name: str = Field(..., description="Simple type name")
    namespace: str = Field(default="", description="Dotted module path")
    containing_type: str = Field(default="", description="Enclosing class for nested types")
    kind: TypeKind = Field(..., description="Collection the type belongs to")
    attributes: list[str] = Field(default_factory=list, description="Decorator names")
    bases: list[str] = Field(default_factory=list, description="Base class expressions")
    members: list[MemberDescriptor] = Field(default_factory=list)
    signature: str = Field(default="", description="Aliased callable type, delegates only")
    source_path: str = Field(default="", description="File the type is declared in")
    project_name: str = Field(default="", description="Project that declares the type")
    from_referenced: bool = Field(default=False, description="Declared in a referenced project")

    @property
    def full_name(self) -> str:
        return ".".join(p for p in (self.namespace, self.containing_type, self.name) if p)

    @property
    def methods(self) -> list[MemberDescriptor]:
        return [m for m in self.members if m.kind is MemberKind.METHOD]

    @property
    def properties(self) -> list[MemberDescriptor]:
        return [m for m in self.members if m.kind is MemberKind.PROPERTY]

    @property
    def fields(self) -> list[MemberDescriptor]:
        return [m for m in self.members if m.kind is MemberKind.FIELD]

    @property
    def values(self) -> list[MemberDescriptor]:
        return [m for m in self.members if m.kind is MemberKind.VALUE]

    def has_attribute(self, name: str) -> bool:
        """True if the type is decorated with *name*.

        Module qualification and a trailing ``Attribute`` suffix are ignored
        on both sides, so ``NTEditorFile`` matches ``@markers.NTEditorFile``.
        """
        wanted = _simple_name(name)
        return any(_simple_name(a) == wanted for a in self.attributes)


# ---------------------------------------------------------------------------
# Extraction settings
# ---------------------------------------------------------------------------

class CodeModelConfiguration(BaseModel):
    """Controls which symbols end up in an extracted code model."""
    omit_symbols_from_referenced_assemblies: bool = Field(
        default=False, description="Leave out types declared in referenced projects"
    )
    namespaces: list[str] = Field(
        default_factory=list, description="Only keep types under these namespaces"
    )

    def filter_by_namespace(self, namespace: str) -> None:
        namespace = namespace.strip(".")
        if namespace and namespace not in self.namespaces:
            self.namespaces.append(namespace)

    def includes_namespace(self, namespace: str) -> bool:
        """True when no filter is set or *namespace* equals / nests under one."""
        if not self.namespaces:
            return True
        return any(
            namespace == ns or namespace.startswith(f"{ns}.") for ns in self.namespaces
        )


# ---------------------------------------------------------------------------
# Symbol models
# ---------------------------------------------------------------------------

class SymbolModel(Protocol):
    """Read-only view of the types of one or more compiled units."""

    @property
    def classes(self) -> Sequence[TypeDescriptor]: ...

    @property
    def interfaces(self) -> Sequence[TypeDescriptor]: ...

    @property
    def enums(self) -> Sequence[TypeDescriptor]: ...

    @property
    def delegates(self) -> Sequence[TypeDescriptor]: ...


class CodeModel:
    """Symbol model of a single compiled unit."""

    def __init__(
        self,
        classes: Sequence[TypeDescriptor] = (),
        interfaces: Sequence[TypeDescriptor] = (),
        enums: Sequence[TypeDescriptor] = (),
        delegates: Sequence[TypeDescriptor] = (),
    ) -> None:
        self._classes = tuple(classes)
        self._interfaces = tuple(interfaces)
        self._enums = tuple(enums)
        self._delegates = tuple(delegates)

    @property
    def classes(self) -> list[TypeDescriptor]:
        return list(self._classes)

    @property
    def interfaces(self) -> list[TypeDescriptor]:
        return list(self._interfaces)

    @property
    def enums(self) -> list[TypeDescriptor]:
        return list(self._enums)

    @property
    def delegates(self) -> list[TypeDescriptor]:
        return list(self._delegates)

    def __repr__(self) -> str:
        return (
            f"CodeModel(classes={len(self._classes)}, interfaces={len(self._interfaces)}, "
            f"enums={len(self._enums)}, delegates={len(self._delegates)})"
        )
