"""ntgen -- template-driven code generation from project symbols.

Discovers ``.nt`` templates in a solution or project, resolves each
project's editor config in an isolated build, aggregates the symbols of the
selected projects and renders the templates into files next to them.

Usage::

    ntgen demo.yaml --solution --verbose
"""

__version__ = "0.1.0"
