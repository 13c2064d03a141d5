"""ntgen generation driver.

Runs one generation pass over a workspace:

1. DISCOVER  -- find ``.nt`` templates; projects without templates are skipped.
2. CONFIGURE -- resolve each remaining project's editor config (default on failure).
3. SELECT    -- pick the projects whose symbols are aggregated.
4. COMPILE   -- compile every selected project concurrently; any failure aborts.
5. AGGREGATE -- combine per-project code models under the config's filters.
6. RENDER    -- render each template and write its outputs next to it;
                the first renderer failure aborts the whole run.

Projects are processed one after another.  Output is files only; every
message goes to standard error.

Usage::

    python -m ntgen demo.yaml --solution
    ntgen app/pyproject.toml --project --verbose
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from ntgen.codemodel import CombinedCodeModel, extract_code_model
from ntgen.config import Config, TargetKind
from ntgen.discovery import ProjectTemplates, discover_templates
from ntgen.rendering import TemplateRenderer
from ntgen.resolver import ConfigResolver, ResolvedConfiguration
from ntgen.utils import (
    console,
    ensure_dir,
    format_duration,
    print_detail,
    print_error,
    print_progress,
    print_summary_table,
    print_warning,
    read_text_file,
    write_text_file,
)
from ntgen.workspace import (
    BuildService,
    CompilationError,
    ProjectHandle,
    Workspace,
    WorkspaceLoadError,
    load_workspace,
)

EXIT_OK = 0
EXIT_RENDER_ERROR = 1
EXIT_USAGE = 2
EXIT_COMPILATION_ERROR = 3
EXIT_FATAL = 4

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class RenderError(Exception):
    """Raised when the renderer reports diagnostics for a template."""

    def __init__(self, template_path: Path, messages: list[str]) -> None:
        self.template_path = template_path
        self.messages = list(messages)
        super().__init__(
            f"Rendering '{template_path}' failed with {len(self.messages)} error(s)"
        )


@dataclass
class GenerationSummary:
    """What a completed run did."""

    projects: list[str] = field(default_factory=list)
    templates_rendered: int = 0
    files_written: list[Path] = field(default_factory=list)
    duration_seconds: float = 0.0


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class Generator:
    """Drives template generation for every project of a workspace.

    Attributes:
        workspace: Loaded projects.
        config: Run settings.
        resolver: Resolves each project's editor config.
        renderer: Renders template text against the combined code model.
    """

    def __init__(
        self,
        workspace: Workspace,
        config: Config,
        *,
        resolver: ConfigResolver | None = None,
        renderer: TemplateRenderer | None = None,
    ) -> None:
        self.workspace = workspace
        self.config = config
        self.resolver = resolver or ConfigResolver(
            BuildService(timeout=config.build_timeout),
            verbose=config.verbose,
            keep_build_dir=config.keep_config_build,
            marker_attribute=config.marker_attribute,
            exclude=config.is_excluded_dir,
        )
        self.renderer = renderer or TemplateRenderer()

    def _progress(self, message: str) -> None:
        if self.config.verbose:
            print_progress(message)

    async def generate(self) -> GenerationSummary:
        """Run generation for every project that has templates.

        Raises:
            CompilationError: If a project selected for aggregation fails to
                compile.  Nothing more is written for that project.
            RenderError: If the renderer reports errors for a template.  The
                errors have already been printed.
        """
        start = time.monotonic()
        summary = GenerationSummary()

        self._progress("Discovering projects")
        discovered = await discover_templates(
            self.workspace.projects,
            extension=self.config.template_extension,
            verbose=self.config.verbose,
        )

        self._progress("Generating based on templates")
        for entry in discovered:
            await self._generate_project(entry, summary)

        summary.duration_seconds = time.monotonic() - start
        if self.config.verbose:
            print_summary_table(
                {
                    "Projects": ", ".join(summary.projects) or "(none)",
                    "Templates": str(summary.templates_rendered),
                    "Files written": str(len(summary.files_written)),
                    "Duration": format_duration(summary.duration_seconds),
                },
                title="Generation Summary",
            )
        return summary

    async def _generate_project(self, entry: ProjectTemplates, summary: GenerationSummary) -> None:
        project = entry.project
        configuration = await self._resolve_configuration(project)
        selected = self._select_projects(configuration)
        code_model = await self._build_code_model(selected, configuration)

        for template_path in entry.templates:
            written = await self._render_template(template_path, code_model, configuration)
            summary.templates_rendered += 1
            summary.files_written.extend(written)
        summary.projects.append(project.name)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _resolve_configuration(self, project: ProjectHandle) -> ResolvedConfiguration:
        configuration = await self.resolver.resolve(project)
        if configuration is None:
            print_progress(f"Found no config for '{project.name}', using defaults.")
            configuration = ResolvedConfiguration.default()
        return configuration

    def _select_projects(self, configuration: ResolvedConfiguration) -> list[ProjectHandle]:
        compilable = [
            p
            for p in self.workspace.projects
            if p.supports_compilation and p.file_path is not None
        ]
        if not configuration.projects_to_be_searched:
            return compilable

        wanted = set(configuration.projects_to_be_searched)
        for missing in sorted(wanted - {p.name for p in compilable}):
            print_warning(f"Project '{missing}' listed in config was not found in the workspace")
        return [p for p in compilable if p.name in wanted]

    async def _build_code_model(
        self, projects: list[ProjectHandle], configuration: ResolvedConfiguration
    ) -> CombinedCodeModel:
        self._progress(f"Generating code model for '{len(projects)}' projects")
        units = await asyncio.gather(*(p.get_compiled_unit() for p in projects))
        code_model_configuration = configuration.code_model_configuration()
        return CombinedCodeModel(
            extract_code_model(unit, code_model_configuration) for unit in units
        )

    async def _render_template(
        self,
        template_path: Path,
        code_model: CombinedCodeModel,
        configuration: ResolvedConfiguration,
    ) -> list[Path]:
        self._progress(f"Processing template '{template_path}'")
        template = await read_text_file(template_path)
        result = await self.renderer.render(
            template,
            code_model,
            configuration.custom_function_types,
            template_path=template_path,
        )

        if result.has_errors:
            print_error("Template renderer returned the following errors:")
            for message in result.messages:
                print_detail(message)
            raise RenderError(template_path, result.messages)

        written: list[Path] = []
        for item in result.items:
            path = template_path.parent / item.name
            self._progress(f"Saving captured output to '{path}'")
            if not path.parent.exists():
                self._progress(f"Creating directory path '{path.parent}'")
                ensure_dir(path.parent)
            await write_text_file(path, item.content)
            written.append(path)
        return written


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


async def run(config: Config) -> int:
    """Load the target and generate; returns the process exit code."""
    try:
        workspace = load_workspace(config, log=print_progress if config.verbose else None)
        await Generator(workspace, config).generate()
    except RenderError:
        return EXIT_RENDER_ERROR
    except CompilationError as exc:
        print_error(str(exc))
        return EXIT_COMPILATION_ERROR
    except WorkspaceLoadError as exc:
        print_error(str(exc))
        return EXIT_FATAL
    except Exception as exc:
        print_error(f"Unexpected error: {exc}")
        if config.verbose:
            console.print_exception()
        return EXIT_FATAL
    return EXIT_OK


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for ``ntgen`` / ``python -m ntgen``."""
    parser = argparse.ArgumentParser(
        prog="ntgen",
        description="Generate source files from .nt templates and project symbols",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  ntgen demo.yaml --solution\n"
            "  ntgen app/pyproject.toml --project --verbose\n"
        ),
    )
    parser.add_argument("target", help="Solution file or project descriptor")
    kind = parser.add_mutually_exclusive_group()
    kind.add_argument(
        "-s", "--solution",
        dest="target_kind",
        action="store_const",
        const=TargetKind.SOLUTION,
        help="Target is a solution",
    )
    kind.add_argument(
        "-p", "--project",
        dest="target_kind",
        action="store_const",
        const=TargetKind.PROJECT,
        help="Target is a project",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Print step-by-step progress",
    )
    parser.add_argument(
        "--keep-config-build",
        action="store_true",
        help="Keep the temporary directory used to build each project's config",
    )

    args = parser.parse_args(argv)

    if args.target_kind is None:
        print_error("You have to specify whether the target is a project or a solution!")
        sys.exit(EXIT_USAGE)

    try:
        config = Config.from_env(
            Path(args.target),
            args.target_kind,
            verbose=args.verbose or None,
            keep_config_build=args.keep_config_build or None,
        )
    except ValidationError as exc:
        print_error("Invalid NTGEN_* settings:")
        for error in exc.errors():
            print_detail(f"{'.'.join(map(str, error['loc']))}: {error['msg']}")
        sys.exit(EXIT_USAGE)
    except ValueError as exc:
        print_error(f"Invalid NTGEN_* settings: {exc}")
        sys.exit(EXIT_USAGE)

    exit_code = asyncio.run(run(config))
    if exit_code != EXIT_OK:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
