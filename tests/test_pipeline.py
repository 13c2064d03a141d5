"""Unit tests for the generation driver and CLI (ntgen.pipeline).

Tests cover:
- Generator.generate with fake projects and a fake resolver:
  - only projects with templates are configured
  - only selected projects are compiled, all of them concurrently
  - outputs land next to the template, directories created
  - compilation and render failures abort with nothing further written
- run() exit code mapping
- main() argument handling
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from ntgen.config import TargetKind
from ntgen.pipeline import (
    EXIT_COMPILATION_ERROR,
    EXIT_FATAL,
    EXIT_OK,
    EXIT_RENDER_ERROR,
    EXIT_USAGE,
    Generator,
    RenderError,
    main,
    run,
)
from ntgen.resolver import ResolvedConfiguration
from ntgen.workspace import CompilationError, WorkspaceLoadError

INTERFACES = """\
{% for cls in data.classes %}
{% capture cls.name | snake_case ~ ".ts" %}
export interface {{ cls.name }} {
{% for f in cls.fields %}
  {{ f.name }}: {{ f.type_name }};
{% endfor %}
}
{% endcapture %}
{% endfor %}
"""


def _resolver(*configs: ResolvedConfiguration | None) -> MagicMock:
    resolver = MagicMock()
    resolver.resolve = AsyncMock(side_effect=list(configs))
    return resolver


@pytest.fixture
def two_projects(make_project, make_unit, fake_project):
    """Project ``web`` owns a template; project ``core`` only has models."""
    web_descriptor = make_project("web", {"templates/models.nt": INTERFACES})
    core_descriptor = make_project("core", {"core/models.py": ""})
    web = fake_project(
        "web", web_descriptor, make_unit("web", {"web.views": "class Page:\n    title: str\n"})
    )
    core = fake_project(
        "core", core_descriptor, make_unit("core", {"core.models": "class User:\n    name: str\n"})
    )
    return web, core


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class TestGenerator:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_generates_from_selected_projects(
        self, two_projects, fake_workspace, run_config
    ):
        web, core = two_projects
        resolver = _resolver(ResolvedConfiguration(projects_to_be_searched=("core",)))
        generator = Generator(fake_workspace([web, core]), run_config(), resolver=resolver)

        summary = await generator.generate()

        output = web.directory / "templates" / "user.ts"
        assert summary.files_written == [output]
        assert summary.templates_rendered == 1
        assert summary.projects == ["web"]
        assert output.read_text() == "export interface User {\n  name: str;\n}\n"
        assert resolver.resolve.await_count == 1
        assert resolver.resolve.await_args.args[0] is web
        assert core.compile_calls == 1
        assert web.compile_calls == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_defaults_when_config_missing(
        self, two_projects, fake_workspace, run_config, capsys
    ):
        web, core = two_projects
        generator = Generator(fake_workspace([web, core]), run_config(), resolver=_resolver(None))

        summary = await generator.generate()

        assert "[-] Found no config for 'web', using defaults." in capsys.readouterr().err
        assert sorted(p.name for p in summary.files_written) == ["page.ts", "user.ts"]
        assert web.compile_calls == 1
        assert core.compile_calls == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unsupported_projects_never_compiled(
        self, two_projects, fake_project, fake_workspace, run_config, tmp_path: Path, capsys
    ):
        web, core = two_projects
        unsupported = fake_project("docs", tmp_path / "docs.json", supports_compilation=False)
        missing = fake_project("gone", None)
        generator = Generator(
            fake_workspace([web, unsupported, missing, core]),
            run_config(),
            resolver=_resolver(ResolvedConfiguration.default()),
        )

        await generator.generate()

        assert unsupported.compile_calls == 0
        assert missing.compile_calls == 0
        err = capsys.readouterr().err
        assert "[!] Compiling 'docs' is not supported" in err
        assert "[!] Project 'gone' lacks a project file, which is not supported" in err

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_project_in_config_warns(
        self, two_projects, fake_workspace, run_config, capsys
    ):
        web, core = two_projects
        resolver = _resolver(ResolvedConfiguration(projects_to_be_searched=("core", "billing")))

        await Generator(fake_workspace([web, core]), run_config(), resolver=resolver).generate()

        assert (
            "[!] Project 'billing' listed in config was not found in the workspace"
            in capsys.readouterr().err
        )

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_projects_without_templates_skipped(
        self, make_project, make_unit, fake_project, fake_workspace, run_config
    ):
        lonely = fake_project(
            "lonely", make_project("lonely"), make_unit("lonely", {"m": "class A: ...\n"})
        )
        resolver = _resolver()

        summary = await Generator(
            fake_workspace([lonely]), run_config(), resolver=resolver
        ).generate()

        assert summary.files_written == []
        resolver.resolve.assert_not_awaited()
        assert lonely.compile_calls == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_compilation_failure_aborts(
        self, two_projects, fake_workspace, run_config
    ):
        web, core = two_projects
        core.error = CompilationError("Compiling 'core' failed: invalid syntax (line 1)")
        generator = Generator(
            fake_workspace([web, core]),
            run_config(),
            resolver=_resolver(ResolvedConfiguration.default()),
        )

        with pytest.raises(CompilationError):
            await generator.generate()

        assert not (web.directory / "templates" / "page.ts").exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_render_failure_aborts(
        self, make_project, make_unit, fake_project, fake_workspace, run_config, capsys
    ):
        descriptor = make_project(
            "web",
            {
                "a_first.nt": '{% capture "never.txt" %}{{ data.structs }}{% endcapture %}',
                "b_second.nt": '{% capture "also_never.txt" %}ok{% endcapture %}',
            },
        )
        web = fake_project("web", descriptor, make_unit("web", {"web": "class A: ...\n"}))
        generator = Generator(
            fake_workspace([web]), run_config(), resolver=_resolver(ResolvedConfiguration())
        )

        with pytest.raises(RenderError) as exc_info:
            await generator.generate()

        assert exc_info.value.template_path == descriptor.parent / "a_first.nt"
        assert exc_info.value.messages
        assert not (descriptor.parent / "never.txt").exists()
        assert not (descriptor.parent / "also_never.txt").exists()
        err = capsys.readouterr().err
        assert "[X] Template renderer returned the following errors:" in err
        assert "structs" in err

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_creates_output_directories_and_overwrites(
        self, make_project, make_unit, fake_project, fake_workspace, run_config
    ):
        descriptor = make_project(
            "web",
            {
                "gen.nt": '{% capture "out/nested/all.txt" %}'
                "{{ data.classes | map(attribute='name') | join(',') }}"
                "{% endcapture %}"
                '{% capture "existing.txt" %}fresh{% endcapture %}',
                "existing.txt": "stale content that is longer",
            },
        )
        web = fake_project(
            "web", descriptor, make_unit("web", {"web": "class A: ...\nclass B: ...\n"})
        )
        generator = Generator(
            fake_workspace([web]), run_config(), resolver=_resolver(ResolvedConfiguration())
        )

        await generator.generate()

        assert (descriptor.parent / "out" / "nested" / "all.txt").read_text() == "A,B"
        assert (descriptor.parent / "existing.txt").read_text() == "fresh"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_configuration_drives_model_and_functions(
        self, make_project, make_unit, fake_project, fake_workspace, run_config
    ):
        class Shouting:
            @staticmethod
            def shout(value):
                return str(value).upper()

        descriptor = make_project(
            "web",
            {
                "gen.nt": '{% capture "names.txt" %}'
                "{% for c in data.classes %}{{ shout(c.name) }};{% endfor %}"
                "{% endcapture %}"
            },
        )
        unit = make_unit(
            "web",
            {"web.models": "class Order: ...\n", "web.views": "class Page: ...\n"},
            referenced={"shared.money": "class Money: ...\n"},
        )
        web = fake_project("web", descriptor, unit)
        configuration = ResolvedConfiguration(
            custom_function_types=(Shouting,),
            namespaces_to_be_searched=("web.models", "shared"),
            search_in_referenced=False,
        )
        generator = Generator(
            fake_workspace([web]), run_config(), resolver=_resolver(configuration)
        )

        await generator.generate()

        assert (descriptor.parent / "names.txt").read_text() == "ORDER;"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_projects_processed_in_order(
        self, make_project, make_unit, fake_project, fake_workspace, run_config
    ):
        template = '{% capture "count.txt" %}{{ data.classes | length }}{% endcapture %}'
        first = fake_project(
            "first",
            make_project("first", {"t.nt": template}),
            make_unit("first", {"f": "class A: ...\n"}),
        )
        second = fake_project(
            "second",
            make_project("second", {"t.nt": template}),
            make_unit("second", {"s": "class B: ...\nclass C: ...\n"}),
        )
        resolver = _resolver(ResolvedConfiguration(), ResolvedConfiguration())

        summary = await Generator(
            fake_workspace([first, second]), run_config(verbose=True), resolver=resolver
        ).generate()

        assert summary.projects == ["first", "second"]
        assert [c.args[0].name for c in resolver.resolve.await_args_list] == ["first", "second"]
        assert (first.directory / "count.txt").read_text() == "3"
        assert first.compile_calls == 2
        assert second.compile_calls == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_verbose_progress(self, two_projects, fake_workspace, run_config, capsys):
        web, core = two_projects
        resolver = _resolver(ResolvedConfiguration(projects_to_be_searched=("core",)))

        await Generator(
            fake_workspace([web, core]), run_config(verbose=True), resolver=resolver
        ).generate()

        err = capsys.readouterr().err
        assert "[-] Discovering projects" in err
        assert "[-] Generating based on templates" in err
        assert "[-] Generating code model for '1' projects" in err
        assert "[-] Processing template" in err
        assert "[-] Saving captured output to" in err
        assert "Generation Summary" in err

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_quiet_by_default(self, two_projects, fake_workspace, run_config, capsys):
        web, core = two_projects
        resolver = _resolver(ResolvedConfiguration(projects_to_be_searched=("core",)))

        await Generator(fake_workspace([web, core]), run_config(), resolver=resolver).generate()

        captured = capsys.readouterr()
        assert captured.out == ""
        assert captured.err == ""


# ---------------------------------------------------------------------------
# run()
# ---------------------------------------------------------------------------


class TestRun:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_ok(self, run_config):
        with patch("ntgen.pipeline.load_workspace"), patch(
            "ntgen.pipeline.Generator.generate", new_callable=AsyncMock
        ):
            assert await run(run_config()) == EXIT_OK

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error, code",
        [
            (RenderError(Path("t.nt"), ["t.nt(1): boom"]), EXIT_RENDER_ERROR),
            (CompilationError("Compiling 'core' failed"), EXIT_COMPILATION_ERROR),
            (RuntimeError("surprise"), EXIT_FATAL),
        ],
    )
    async def test_generate_errors(self, run_config, error, code):
        with patch("ntgen.pipeline.load_workspace"), patch(
            "ntgen.pipeline.Generator.generate", new_callable=AsyncMock, side_effect=error
        ):
            assert await run(run_config()) == code

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_load_error(self, run_config, capsys):
        with patch(
            "ntgen.pipeline.load_workspace",
            side_effect=WorkspaceLoadError("Solution file not found: demo.yaml"),
        ):
            assert await run(run_config()) == EXIT_FATAL
        assert "[X] Solution file not found: demo.yaml" in capsys.readouterr().err

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_target(self, run_config, tmp_path: Path):
        config = run_config(target_path=tmp_path / "missing.yaml")
        assert await run(config) == EXIT_FATAL


# ---------------------------------------------------------------------------
# main()
# ---------------------------------------------------------------------------


class TestMain:
    @pytest.mark.unit
    def test_missing_target_kind(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["demo.yaml"])
        assert exc_info.value.code == EXIT_USAGE
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "You have to specify whether the target is a project or a solution!" in captured.err

    @pytest.mark.unit
    def test_both_kinds_rejected(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["demo.yaml", "--solution", "--project"])
        assert exc_info.value.code == EXIT_USAGE

    @pytest.mark.unit
    def test_missing_target(self):
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == EXIT_USAGE

    @pytest.mark.unit
    def test_success_does_not_exit(self, monkeypatch):
        monkeypatch.delenv("NTGEN_VERBOSE", raising=False)
        with patch("ntgen.pipeline.run", new_callable=AsyncMock, return_value=EXIT_OK) as fake:
            main(["app/pyproject.toml", "-p"])

        config = fake.await_args.args[0]
        assert config.target_path == Path("app/pyproject.toml")
        assert config.target_kind is TargetKind.PROJECT
        assert config.verbose is False

    @pytest.mark.unit
    def test_flags(self):
        with patch("ntgen.pipeline.run", new_callable=AsyncMock, return_value=EXIT_OK) as fake:
            main(["demo.yaml", "--solution", "--verbose", "--keep-config-build"])

        config = fake.await_args.args[0]
        assert config.target_kind is TargetKind.SOLUTION
        assert config.verbose is True
        assert config.keep_config_build is True

    @pytest.mark.unit
    def test_failure_exit_code(self):
        with patch(
            "ntgen.pipeline.run", new_callable=AsyncMock, return_value=EXIT_RENDER_ERROR
        ), pytest.raises(SystemExit) as exc_info:
            main(["demo.yaml", "-s"])
        assert exc_info.value.code == EXIT_RENDER_ERROR

    @pytest.mark.unit
    def test_non_numeric_build_timeout(self, monkeypatch, capsys):
        monkeypatch.setenv("NTGEN_BUILD_TIMEOUT", "abc")
        with patch("ntgen.pipeline.run", new_callable=AsyncMock) as fake, pytest.raises(
            SystemExit
        ) as exc_info:
            main(["demo.yaml", "-s"])

        assert exc_info.value.code == EXIT_USAGE
        fake.assert_not_awaited()
        err = capsys.readouterr().err
        assert "[X] Invalid NTGEN_* settings:" in err
        assert "abc" in err

    @pytest.mark.unit
    def test_build_timeout_below_minimum(self, monkeypatch, capsys):
        monkeypatch.setenv("NTGEN_BUILD_TIMEOUT", "5")
        with patch("ntgen.pipeline.run", new_callable=AsyncMock) as fake, pytest.raises(
            SystemExit
        ) as exc_info:
            main(["demo.yaml", "-s"])

        assert exc_info.value.code == EXIT_USAGE
        fake.assert_not_awaited()
        err = capsys.readouterr().err
        assert "[X] Invalid NTGEN_* settings:" in err
        assert "build_timeout:" in err
