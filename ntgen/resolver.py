"""Per-project configuration resolution.

A project's configuration is ordinary Python code: a subclass of
:class:`ntgen.editor_config.EditorConfig` marked with ``@NTEditorFile``.
To obtain a concrete instance the resolver:

1. compiles the project and looks for marked classes in its own symbols,
2. finds the source file named after the class,
3. copies that file next to a stub project descriptor in a private
   temporary directory (the isolated build unit),
4. builds the unit with the :class:`~ntgen.workspace.BuildService`,
5. executes the resulting artifact and instantiates the single
   ``EditorConfig`` subclass it defines.

The temporary directory is removed on every exit path unless retention was
requested for debugging.
"""

from __future__ import annotations

import asyncio
import importlib.util
import shutil
import sys
import tempfile
import types
import uuid
import zipfile
import zipimport
from collections.abc import Callable
from importlib import resources
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ntgen.codemodel import CodeModelConfiguration, TypeDescriptor, extract_code_model
from ntgen.editor_config import EditorConfig
from ntgen.utils import find_files, print_detail, print_error, print_progress, print_warning
from ntgen.workspace import (
    BuildService,
    CompilationError,
    ProjectHandle,
    artifact_path,
    read_build_settings,
)

STUB_DESCRIPTOR_NAME = "pyproject.toml"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigResolutionWarning(UserWarning):
    """Ambiguous or missing configuration artifacts; the run continues."""


class ConfigBuildError(Exception):
    """Raised when the isolated config unit cannot be built or loaded."""

    def __init__(self, message: str, messages: list[str] | None = None):
        self.messages = messages or []
        super().__init__(message)


class NoConfigTypeFound(Exception):
    """Raised when a built config artifact holds zero or several config types."""

    def __init__(self, message: str, candidates: list[str] | None = None):
        self.candidates = candidates or []
        super().__init__(message)


# ---------------------------------------------------------------------------
# Resolved configuration
# ---------------------------------------------------------------------------


class ResolvedConfiguration(BaseModel):
    """Validated settings that drive symbol aggregation and rendering."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    custom_function_types: tuple[type, ...] = Field(
        default=(), description="Classes whose static members become template functions"
    )
    projects_to_be_searched: tuple[str, ...] = Field(
        default=(), description="Project names to aggregate symbols from; empty means all"
    )
    namespaces_to_be_searched: tuple[str, ...] = Field(
        default=(), description="Namespaces to keep; empty means all"
    )
    search_in_referenced: bool = Field(
        default=True, description="Include symbols declared in referenced projects"
    )

    @classmethod
    def default(cls) -> "ResolvedConfiguration":
        return cls()

    @classmethod
    def from_editor_config(cls, config: Any) -> "ResolvedConfiguration":
        """Validate the settings exposed by a user ``EditorConfig`` instance.

        Raises:
            pydantic.ValidationError: If a setting has the wrong shape.
        """
        values = {
            "custom_function_types": getattr(config, "types_that_contain_custom_functions", None),
            "projects_to_be_searched": getattr(config, "projects_to_be_searched", None),
            "namespaces_to_be_searched": getattr(config, "namespaces_to_be_searched", None),
            "search_in_referenced": getattr(
                config, "search_in_referenced_projects_and_assemblies", None
            ),
        }
        return cls(**{k: v for k, v in values.items() if v is not None})

    @property
    def omit_referenced(self) -> bool:
        return not self.search_in_referenced

    def code_model_configuration(self) -> CodeModelConfiguration:
        configuration = CodeModelConfiguration(
            omit_symbols_from_referenced_assemblies=self.omit_referenced
        )
        for namespace in self.namespaces_to_be_searched:
            configuration.filter_by_namespace(namespace)
        return configuration


# ---------------------------------------------------------------------------
# Artifact loading
# ---------------------------------------------------------------------------


def load_editor_config(artifact: Path) -> ResolvedConfiguration:
    """Execute a built config artifact and instantiate its config class.

    Each module in the archive is imported through ``zipimport`` under a
    private dotted name (``_ntgen_config_<token>.<stem>``) that is
    unregistered again afterwards, so loading never shadows real modules.

    Raises:
        ConfigBuildError: If the archive cannot be read, a module raises while
            executing, the config constructor fails, or its settings do not
            validate.
        NoConfigTypeFound: If the artifact does not define exactly one
            ``EditorConfig`` subclass.
    """
    package = f"_ntgen_config_{uuid.uuid4().hex[:8]}"
    registered: list[str] = []
    modules: list[types.ModuleType] = []

    try:
        try:
            with zipfile.ZipFile(artifact) as archive:
                entries = sorted(n for n in archive.namelist() if n.endswith(".py"))
            importer = zipimport.zipimporter(str(artifact))
        except (OSError, zipfile.BadZipFile, zipimport.ZipImportError) as exc:
            raise ConfigBuildError(f"Reading config artifact '{artifact}' failed: {exc}") from exc

        for entry in entries:
            # zipimporter looks entries up by the last component of the name.
            spec = importer.find_spec(f"{package}.{Path(entry).stem}")
            if spec is None or spec.loader is None:
                raise ConfigBuildError(f"Config module '{entry}' cannot be imported")
            module = importlib.util.module_from_spec(spec)
            sys.modules[spec.name] = module
            registered.append(spec.name)
            try:
                spec.loader.exec_module(module)
            except Exception as exc:
                raise ConfigBuildError(
                    f"Loading config module '{entry}' failed: {exc}"
                ) from exc
            modules.append(module)

        config_types = [
            obj
            for module in modules
            for obj in vars(module).values()
            if isinstance(obj, type)
            and issubclass(obj, EditorConfig)
            and obj is not EditorConfig
            and obj.__module__ == module.__name__
        ]
        if len(config_types) != 1:
            names = [t.__qualname__ for t in config_types]
            raise NoConfigTypeFound(
                f"Expected exactly one EditorConfig subclass in '{artifact}', "
                f"found {len(config_types)}",
                names,
            )

        config_type = config_types[0]
        try:
            instance = config_type()
        except Exception as exc:
            raise ConfigBuildError(
                f"Creating '{config_type.__qualname__}' failed: {exc}"
            ) from exc

        try:
            return ResolvedConfiguration.from_editor_config(instance)
        except ValidationError as exc:
            raise ConfigBuildError(
                f"'{config_type.__qualname__}' has invalid settings",
                [f"{'.'.join(map(str, e['loc']))}: {e['msg']}" for e in exc.errors()],
            ) from exc
    finally:
        for module_name in registered:
            sys.modules.pop(module_name, None)


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


def _normalise_name(name: str) -> str:
    return name.lower().replace("_", "").replace("-", "")


class ConfigResolver:
    """Resolves the ``ResolvedConfiguration`` of a project.

    Args:
        build_service: Builds the isolated config unit.
        verbose: Print step-by-step progress.
        keep_build_dir: Leave the isolated build directory on disk.
        marker_attribute: Decorator that marks the config class.
        exclude: Predicate for directory names skipped when searching sources.
    """

    def __init__(
        self,
        build_service: BuildService | None = None,
        *,
        verbose: bool = False,
        keep_build_dir: bool = False,
        marker_attribute: str = "NTEditorFile",
        exclude: Callable[[str], bool] | None = None,
    ) -> None:
        self.build_service = build_service or BuildService()
        self.verbose = verbose
        self.keep_build_dir = keep_build_dir
        self.marker_attribute = marker_attribute
        self.exclude = exclude or (lambda name: name.startswith(".") or name == "__pycache__")
        self.warnings: list[ConfigResolutionWarning] = []

    def _progress(self, message: str) -> None:
        if self.verbose:
            print_progress(message)

    def _warn(self, message: str) -> None:
        self.warnings.append(ConfigResolutionWarning(message))
        print_warning(message)

    async def resolve(self, project: ProjectHandle) -> ResolvedConfiguration | None:
        """Resolve the configuration of *project*.

        Returns:
            The project's configuration, the default configuration when the
            project has no marked class, or ``None`` when a config exists but
            could not be built or loaded.
        """
        self._progress(f"Compiling project '{project.name}'")
        try:
            unit = await project.get_compiled_unit()
        except CompilationError as exc:
            self._warn(f"Failed to compile project '{project.name}': {exc}")
            return None

        self._progress(f"Looking for ntgen config in project '{project.name}'")
        model = extract_code_model(
            unit, CodeModelConfiguration(omit_symbols_from_referenced_assemblies=True)
        )
        candidates = [c for c in model.classes if c.has_attribute(self.marker_attribute)]
        if not candidates:
            self._progress(f"No class marked @{self.marker_attribute} in '{project.name}'")
            return ResolvedConfiguration.default()
        if len(candidates) > 1:
            self._warn(f"Found more than one potential config in '{project.name}'")

        files = await asyncio.to_thread(self._candidate_files, project, candidates)
        if not files:
            print_error(
                f"Found no potential files for our config in '{project.name}', "
                "make sure the file has the same name as the class."
            )
            return None
        if len(files) > 1:
            self._warn(f"Found more than one potential file for our config in '{project.name}'")
            print_detail(f"using   {files[0]}")
            for ignored in files[1:]:
                print_detail(f"ignored {ignored}")

        if project.file_path is None or not project.file_path.exists():
            self._warn(
                f"Can't find the project file for '{project.name}' "
                f"(looked at '{project.file_path}')"
            )
            return None

        try:
            return await self._build_and_load(files[0])
        except (ConfigBuildError, NoConfigTypeFound) as exc:
            self._warn(str(exc))
            for detail in getattr(exc, "messages", []):
                print_detail(detail)
            return None

    def _candidate_files(
        self, project: ProjectHandle, candidates: list[TypeDescriptor]
    ) -> list[Path]:
        sources = find_files(project.directory, ".py", self.exclude)
        wanted = {_normalise_name(c.name) for c in candidates}
        return sorted(p for p in sources if _normalise_name(p.stem) in wanted)

    async def _build_and_load(self, source: Path) -> ResolvedConfiguration:
        build_dir = Path(tempfile.mkdtemp(prefix="ntgen-config-"))
        try:
            descriptor = await asyncio.to_thread(create_isolated_unit, build_dir, [source])
            if self.verbose:
                print_progress("Created temporary project with:")
                print_detail(str(source))

            self._progress(f"Building config (located at '{descriptor}')")
            result = await self.build_service.build(descriptor, restore=True)
            if not result.success:
                raise ConfigBuildError(
                    f"Failed to build config (located at '{descriptor}')", result.messages
                )

            artifact = artifact_path(build_dir, read_build_settings(descriptor))
            if not artifact.exists():
                raise ConfigBuildError(
                    f"Failed to find built config (looked at '{artifact}')"
                )

            self._progress(f"Loading config from '{artifact}'")
            return await asyncio.to_thread(load_editor_config, artifact)
        finally:
            if self.keep_build_dir:
                print_progress(f"Keeping config build directory '{build_dir}'")
            else:
                shutil.rmtree(build_dir, ignore_errors=True)


def create_isolated_unit(build_dir: Path, sources: list[Path]) -> Path:
    """Populate *build_dir* with the stub descriptor and copies of *sources*.

    Returns:
        Path of the written project descriptor.
    """
    descriptor = build_dir / STUB_DESCRIPTOR_NAME
    stub = resources.files("ntgen") / "resources" / "config_stub.toml"
    descriptor.write_text(stub.read_text(encoding="utf-8"), encoding="utf-8")
    for source in sources:
        shutil.copyfile(source, build_dir / source.name)
    return descriptor
