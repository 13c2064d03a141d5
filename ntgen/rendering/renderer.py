"""Jinja2 rendering of ``.nt`` templates against a symbol model.

A template names its outputs with ``capture`` blocks; text outside capture
blocks is discarded::

    {% for cls in data.classes %}
    {% capture cls.name | snake_case ~ ".ts" %}
    export interface {{ cls.name }} {
    {% for f in cls.fields %}
      {{ f.name | camel_case }}: {{ f.type_name | ts_type }};
    {% endfor %}
    }
    {% endcapture %}
    {% endfor %}

Rendering never raises for template problems: syntax errors, undefined
variables and exceptions from custom functions come back as diagnostic
messages on a failing ``RenderResult``.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from jinja2 import (
    BaseLoader,
    Environment,
    FileSystemLoader,
    StrictUndefined,
    TemplateError,
    TemplateSyntaxError,
    nodes,
)
from jinja2.ext import Extension
from jinja2.parser import Parser

from ntgen.codemodel import SymbolModel


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class RenderedItem:
    """One named output produced by a template."""

    name: str
    content: str


@dataclass
class RenderResult:
    """Outcome of rendering one template."""

    items: list[RenderedItem] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)
    has_errors: bool = False

    @classmethod
    def failed(cls, messages: list[str]) -> "RenderResult":
        return cls(messages=messages, has_errors=True)


# ---------------------------------------------------------------------------
# capture extension
# ---------------------------------------------------------------------------

class CaptureExtension(Extension):
    """``{% capture name %}...{% endcapture %}`` appends a named output."""

    tags = {"capture"}

    def __init__(self, environment: Environment) -> None:
        super().__init__(environment)
        environment.extend(captured_items=[])

    def parse(self, parser: Parser) -> nodes.Node:
        lineno = next(parser.stream).lineno
        name = parser.parse_expression()
        body = parser.parse_statements(("name:endcapture",), drop_needle=True)
        call = self.call_method("_capture", [name])
        return nodes.CallBlock(call, [], [], body).set_lineno(lineno)

    def _capture(self, name: Any, caller: Callable[[], str]) -> str:
        self.environment.captured_items.append(RenderedItem(name=str(name), content=caller()))
        return ""


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------

def custom_functions(types: Iterable[type]) -> dict[str, Callable[..., Any]]:
    """Public static and class methods of *types*, keyed by name.

    Inherited members are included; later types win on name clashes.
    """
    functions: dict[str, Callable[..., Any]] = {}
    for cls in types:
        for klass in reversed(cls.__mro__):
            if klass is object:
                continue
            for name, attr in vars(klass).items():
                if not name.startswith("_") and isinstance(attr, (staticmethod, classmethod)):
                    functions[name] = getattr(cls, name)
    return functions


class TemplateRenderer:
    """Renders template text with a symbol model bound to ``data``.

    Built-in filters: ``slugify``, ``pascal_case``, ``snake_case`` and
    ``camel_case``.  Custom function types passed to :meth:`render` add
    their static members as both filters and globals.
    """

    def __init__(self, filters: dict[str, Callable[..., Any]] | None = None) -> None:
        self.filters: dict[str, Callable[..., Any]] = {
            "slugify": _slugify_filter,
            "pascal_case": _pascal_case_filter,
            "snake_case": _snake_case_filter,
            "camel_case": _camel_case_filter,
        }
        self.filters.update(filters or {})

    def _environment(self, template_path: Path | None) -> Environment:
        loader: BaseLoader | None = None
        if template_path is not None:
            loader = FileSystemLoader(str(template_path.parent))
        env = Environment(
            loader=loader,
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
            extensions=[CaptureExtension],
        )
        env.filters.update(self.filters)
        return env

    def render_sync(
        self,
        template_text: str,
        code_model: SymbolModel,
        custom_function_types: Iterable[type] = (),
        template_path: Path | None = None,
    ) -> RenderResult:
        """Render *template_text* and collect its captured outputs."""
        location = str(template_path) if template_path else "<template>"
        env = self._environment(template_path)
        functions = custom_functions(custom_function_types)
        env.filters.update(functions)
        env.globals.update(functions)

        try:
            template = env.from_string(template_text)
            template.render(data=code_model)
        except TemplateSyntaxError as exc:
            return RenderResult.failed([f"{location}({exc.lineno}): {exc.message}"])
        except TemplateError as exc:
            return RenderResult.failed([f"{location}: {exc}"])
        except Exception as exc:
            # Custom functions are user code; report rather than crash.
            return RenderResult.failed([f"{location}: {type(exc).__name__}: {exc}"])

        return RenderResult(items=list(env.captured_items))

    async def render(
        self,
        template_text: str,
        code_model: SymbolModel,
        custom_function_types: Iterable[type] = (),
        template_path: Path | None = None,
    ) -> RenderResult:
        """Async wrapper running :meth:`render_sync` in a worker thread."""
        return await asyncio.to_thread(
            self.render_sync,
            template_text,
            code_model,
            tuple(custom_function_types),
            template_path,
        )


# ---------------------------------------------------------------------------
# Jinja2 built-in filters
# ---------------------------------------------------------------------------

def _slugify_filter(value: str) -> str:
    """Convert a string to a URL/filename-safe slug."""
    slug = re.sub(r"[^a-z0-9]+", "-", value.lower().strip())
    return slug.strip("-")


def _pascal_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``SomeThing``."""
    parts = re.split(r"[-_\s]+", value)
    return "".join(word[:1].upper() + word[1:] for word in parts if word)


def _snake_case_filter(value: str) -> str:
    """Convert ``SomeThing`` or ``some-thing`` to ``some_thing``."""
    s1 = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", value)
    s2 = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s1)
    return re.sub(r"[-\s]+", "_", s2).lower()


def _camel_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``someThing``."""
    pascal = _pascal_case_filter(value)
    if pascal:
        return pascal[0].lower() + pascal[1:]
    return ""
