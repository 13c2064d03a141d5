"""ntgen run configuration.

Typed settings for one generator run.  Uses Pydantic v2 so values coming
from the command line or the environment are validated at construction time.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

_TRUTHY = {"1", "true", "yes", "on"}


class TargetKind(str, Enum):
    """What the root target path points at."""

    SOLUTION = "solution"
    PROJECT = "project"


class Config(BaseModel):
    """Settings for a single generation run.

    Instances are created once by the CLI entry point (or by tests) and then
    passed to the workspace loader, the config resolver and the generator.
    """

    target_path: Path
    target_kind: TargetKind
    verbose: bool = Field(default=False, description="Print step-by-step progress")
    keep_config_build: bool = Field(
        default=False,
        description="Keep the isolated config build directory for debugging",
    )
    template_extension: str = Field(default=".nt", description="Template file suffix")
    marker_attribute: str = Field(
        default="NTEditorFile",
        description="Decorator that marks a project's editor config class",
    )
    build_timeout: int = Field(
        default=300, ge=10, description="Isolated config build timeout in seconds"
    )
    exclude_dirs: list[str] = Field(
        default_factory=lambda: [
            "__pycache__",
            "build",
            "dist",
            "node_modules",
            "venv",
            "site-packages",
        ],
        description="Directory names never searched for sources or templates",
    )

    @field_validator("template_extension")
    @classmethod
    def _normalise_extension(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("template extension must not be empty")
        return value if value.startswith(".") else f".{value}"

    @classmethod
    def from_env(cls, target_path: Path, target_kind: TargetKind, **overrides: Any) -> "Config":
        """Build a ``Config`` for *target_path*, reading tunables from the environment.

        Recognised variables (all optional):
            NTGEN_VERBOSE, NTGEN_KEEP_CONFIG_BUILD, NTGEN_TEMPLATE_EXTENSION,
            NTGEN_MARKER_ATTRIBUTE, NTGEN_BUILD_TIMEOUT.

        Explicit keyword *overrides* win over environment values.
        """
        kwargs: dict[str, Any] = {}
        if os.environ.get("NTGEN_VERBOSE"):
            kwargs["verbose"] = os.environ["NTGEN_VERBOSE"].lower() in _TRUTHY
        if os.environ.get("NTGEN_KEEP_CONFIG_BUILD"):
            kwargs["keep_config_build"] = (
                os.environ["NTGEN_KEEP_CONFIG_BUILD"].lower() in _TRUTHY
            )
        if os.environ.get("NTGEN_TEMPLATE_EXTENSION"):
            kwargs["template_extension"] = os.environ["NTGEN_TEMPLATE_EXTENSION"]
        if os.environ.get("NTGEN_MARKER_ATTRIBUTE"):
            kwargs["marker_attribute"] = os.environ["NTGEN_MARKER_ATTRIBUTE"]
        if os.environ.get("NTGEN_BUILD_TIMEOUT"):
            kwargs["build_timeout"] = int(os.environ["NTGEN_BUILD_TIMEOUT"])

        kwargs.update({k: v for k, v in overrides.items() if v is not None})
        return cls(target_path=target_path, target_kind=target_kind, **kwargs)

    def is_excluded_dir(self, name: str) -> bool:
        """True for directories skipped when collecting project sources."""
        return name.startswith(".") or name in self.exclude_dirs
