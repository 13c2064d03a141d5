"""Builds a ``CodeModel`` from the syntax trees of a compiled unit.

Classification of class definitions:

* enums      -- a base named ``Enum``, ``IntEnum``, ``StrEnum``, ``Flag`` or ``IntFlag``
* interfaces -- a base named ``Protocol`` or ``ABC``, or ``metaclass=ABCMeta``
* classes    -- everything else, including classes nested in classes

Delegates are module-level aliases of ``Callable[...]``: a plain assignment,
an assignment annotated with ``TypeAlias``, or a ``type`` statement.
Classes defined inside functions or conditional blocks are not visited.
"""

from __future__ import annotations

import ast
from collections.abc import Iterator

from ntgen.codemodel.models import (
    CodeModel,
    CodeModelConfiguration,
    MemberDescriptor,
    MemberKind,
    TypeDescriptor,
    TypeKind,
)
from ntgen.workspace.models import CompiledUnit, SourceModule

_ENUM_BASES = {"Enum", "IntEnum", "StrEnum", "Flag", "IntFlag"}
_INTERFACE_BASES = {"Protocol", "ABC"}
_TYPE_ALIAS_NODE = getattr(ast, "TypeAlias", None)


def _dotted(node: ast.expr) -> str:
    """Dotted name of a decorator or base expression, ignoring call/subscript."""
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        prefix = _dotted(node.value)
        return f"{prefix}.{node.attr}" if prefix else node.attr
    if isinstance(node, ast.Call):
        return _dotted(node.func)
    if isinstance(node, ast.Subscript):
        return _dotted(node.value)
    return ""


def _last(name: str) -> str:
    return name.rsplit(".", 1)[-1]


def _unparse(node: ast.expr | None) -> str:
    return ast.unparse(node) if node is not None else ""


def _is_callable_alias(node: ast.expr | None) -> bool:
    return isinstance(node, ast.Subscript) and _last(_dotted(node.value)) == "Callable"


def _classify(node: ast.ClassDef) -> TypeKind:
    bases = {_last(_dotted(b)) for b in node.bases}
    if bases & _ENUM_BASES:
        return TypeKind.ENUM
    if bases & _INTERFACE_BASES:
        return TypeKind.INTERFACE
    for keyword in node.keywords:
        if keyword.arg == "metaclass" and _last(_dotted(keyword.value)) == "ABCMeta":
            return TypeKind.INTERFACE
    return TypeKind.CLASS


def _members(node: ast.ClassDef, kind: TypeKind) -> list[MemberDescriptor]:
    members: list[MemberDescriptor] = []
    field_kind = MemberKind.VALUE if kind is TypeKind.ENUM else MemberKind.FIELD

    for stmt in node.body:
        if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
            decorators = [_dotted(d) for d in stmt.decorator_list]
            # Setter/deleter halves of a property are the same member.
            if any(d.endswith((".setter", ".deleter")) for d in decorators):
                continue
            simple = [_last(d) for d in decorators]
            is_property = "property" in simple or "cached_property" in simple
            members.append(
                MemberDescriptor(
                    name=stmt.name,
                    kind=MemberKind.PROPERTY if is_property else MemberKind.METHOD,
                    type_name=_unparse(stmt.returns),
                    attributes=simple,
                    is_static="staticmethod" in simple or "classmethod" in simple,
                )
            )
        elif isinstance(stmt, ast.AnnAssign) and isinstance(stmt.target, ast.Name):
            members.append(
                MemberDescriptor(
                    name=stmt.target.id,
                    kind=field_kind,
                    type_name=_unparse(stmt.annotation),
                )
            )
        elif isinstance(stmt, ast.Assign):
            for target in stmt.targets:
                if isinstance(target, ast.Name):
                    members.append(MemberDescriptor(name=target.id, kind=field_kind))
    return members


def _class_types(
    node: ast.ClassDef, module: SourceModule, containing: str = ""
) -> Iterator[TypeDescriptor]:
    kind = _classify(node)
    yield TypeDescriptor(
        name=node.name,
        namespace=module.module_name,
        containing_type=containing,
        kind=kind,
        attributes=[_dotted(d) for d in node.decorator_list],
        bases=[_unparse(b) for b in node.bases],
        members=_members(node, kind),
        source_path=str(module.path),
        project_name=module.project_name,
        from_referenced=module.referenced,
    )
    nested_prefix = f"{containing}.{node.name}" if containing else node.name
    for stmt in node.body:
        if isinstance(stmt, ast.ClassDef):
            yield from _class_types(stmt, module, nested_prefix)


def _delegate(name: str, value: ast.expr, module: SourceModule) -> TypeDescriptor:
    return TypeDescriptor(
        name=name,
        namespace=module.module_name,
        kind=TypeKind.DELEGATE,
        signature=_unparse(value),
        source_path=str(module.path),
        project_name=module.project_name,
        from_referenced=module.referenced,
    )


def _module_types(module: SourceModule) -> Iterator[TypeDescriptor]:
    for stmt in module.tree.body:
        if isinstance(stmt, ast.ClassDef):
            yield from _class_types(stmt, module)
        elif isinstance(stmt, ast.Assign):
            if (
                len(stmt.targets) == 1
                and isinstance(stmt.targets[0], ast.Name)
                and _is_callable_alias(stmt.value)
            ):
                yield _delegate(stmt.targets[0].id, stmt.value, module)
        elif isinstance(stmt, ast.AnnAssign):
            if (
                isinstance(stmt.target, ast.Name)
                and _last(_dotted(stmt.annotation)) == "TypeAlias"
                and _is_callable_alias(stmt.value)
            ):
                yield _delegate(stmt.target.id, stmt.value, module)
        elif _TYPE_ALIAS_NODE is not None and isinstance(stmt, _TYPE_ALIAS_NODE):
            if _is_callable_alias(stmt.value):
                yield _delegate(stmt.name.id, stmt.value, module)


def extract_code_model(
    unit: CompiledUnit, configuration: CodeModelConfiguration | None = None
) -> CodeModel:
    """Collect the types of *unit* into a ``CodeModel``.

    Args:
        unit: Parsed sources of a project (and its references).
        configuration: Namespace filter and referenced-symbol omission.
            Defaults to keeping everything.

    Returns:
        A code model whose collections follow source-file order, then
        declaration order within each file.
    """
    configuration = configuration or CodeModelConfiguration()
    buckets: dict[TypeKind, list[TypeDescriptor]] = {kind: [] for kind in TypeKind}

    for module in unit.modules:
        if module.referenced and configuration.omit_symbols_from_referenced_assemblies:
            continue
        if not configuration.includes_namespace(module.module_name):
            continue
        for descriptor in _module_types(module):
            buckets[descriptor.kind].append(descriptor)

    return CodeModel(
        classes=buckets[TypeKind.CLASS],
        interfaces=buckets[TypeKind.INTERFACE],
        enums=buckets[TypeKind.ENUM],
        delegates=buckets[TypeKind.DELEGATE],
    )
