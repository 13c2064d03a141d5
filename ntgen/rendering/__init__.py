"""ntgen template rendering.

Quick usage::

    from ntgen.rendering import TemplateRenderer

    result = await TemplateRenderer().render(text, code_model, [MyFunctions])
    if not result.has_errors:
        for item in result.items:
            print(item.name, len(item.content))
"""

from ntgen.rendering.renderer import (
    CaptureExtension,
    RenderedItem,
    RenderResult,
    TemplateRenderer,
    custom_functions,
)

__all__ = [
    "TemplateRenderer",
    "RenderResult",
    "RenderedItem",
    "CaptureExtension",
    "custom_functions",
]
