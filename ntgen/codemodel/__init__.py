"""ntgen code model.

Typed view of the classes, interfaces, enums and delegates declared in
compiled projects, and the combined view used when rendering templates.

Usage::

    from ntgen.codemodel import CodeModelConfiguration, extract_code_model

    unit = await project.get_compiled_unit()
    model = extract_code_model(unit, CodeModelConfiguration())
    print([t.full_name for t in model.classes])
"""

from ntgen.codemodel.combined import CombinedCodeModel
from ntgen.codemodel.extractor import extract_code_model
from ntgen.codemodel.models import (
    CodeModel,
    CodeModelConfiguration,
    MemberDescriptor,
    MemberKind,
    SymbolModel,
    TypeDescriptor,
    TypeKind,
)

__all__ = [
    "extract_code_model",
    "CodeModel",
    "CombinedCodeModel",
    "CodeModelConfiguration",
    "SymbolModel",
    "TypeDescriptor",
    "MemberDescriptor",
    "TypeKind",
    "MemberKind",
]
