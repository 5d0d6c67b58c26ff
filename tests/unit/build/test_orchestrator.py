"""Tests for build orchestration."""

from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from zerobuild.build import BuildOrchestrator, MissingPackageError, Project
from zerobuild.build.orchestrator import executable_name
from zerobuild.config import BuildOptions, EnvironmentOverrides
from zerobuild.packages import (
    CompilerLocator,
    FlagSet,
    HostPlatform,
    NoCompilerFoundError,
    PackageMapper,
    PackageRecommendation,
    PlatformProbe,
)
from zerobuild.subprocess_utils import CommandResult

EXECUTOR_RUN = "zerobuild.build.compilation_executor.run_command"
LINKER_RUN = "zerobuild.build.linker.run_command"


class TestExecutableName:
    """Test executable naming."""

    def test_directory_name(self, tmp_path):
        assert executable_name(tmp_path / "game") == "game"

    def test_src_directory(self, tmp_path):
        assert executable_name(tmp_path / "src") == "main"

    def test_win64(self, tmp_path):
        assert executable_name(tmp_path / "game", win64=True) == "game.exe"


class TestBuildOrchestrator:
    """Test the scan, assemble, plan sequence."""

    @pytest.fixture
    def project_dir(self, tmp_path):
        project_dir = tmp_path / "game"
        project_dir.mkdir()
        (project_dir / "main.cpp").write_text("#include <GL/glew.h>\nint main() {}\n")
        return project_dir

    @pytest.fixture
    def orchestrator(self):
        locator = Mock(spec=CompilerLocator)
        locator.select.return_value = "/usr/bin/g++"
        locator.best_cxx_standard.return_value = "c++20"
        mapper = Mock(spec=PackageMapper)
        mapper.probe = Mock(spec=PlatformProbe)
        mapper.resolve_all.return_value = FlagSet()
        return BuildOrchestrator(
            BuildOptions(),
            host=HostPlatform("linux"),
            env=EnvironmentOverrides({}),
            locator=locator,
            mapper=mapper,
            echo=False,
        )

    def test_nothing_to_build(self, orchestrator, project_dir):
        result = orchestrator.build(project_dir, project=Project(test_sources=["lib_test.cpp"]))
        assert result.success
        assert result.nothing_to_build
        assert result.commands_run == []

    def test_library_only_directory(self, orchestrator, tmp_path):
        project_dir = tmp_path / "mylib"
        project_dir.mkdir()
        (project_dir / "lib.cpp").write_text("void foo() {}\n")

        result = orchestrator.build(project_dir)

        assert result.success
        assert result.nothing_to_build
        assert result.commands_run == []
        orchestrator.locator.select.assert_not_called()

    def test_empty_directory(self, orchestrator, tmp_path):
        project_dir = tmp_path / "empty"
        project_dir.mkdir()
        result = orchestrator.build(project_dir)
        assert not result.success
        assert result.message == "no source files found"

    def test_no_sources(self, orchestrator, project_dir):
        result = orchestrator.build(project_dir, project=Project())
        assert not result.success
        assert result.message == "no source files found"

    def test_single_source_build(self, orchestrator, project_dir):
        project = Project(main_source="main.cpp", includes=["GL/glew.h"])
        with patch(EXECUTOR_RUN, return_value=CommandResult(0, "", "")) as mock_run:
            result = orchestrator.build(project_dir, project=project)

        assert result.success
        assert result.executable == project_dir / "game"
        assert len(result.commands_run) == 1
        assert mock_run.call_count == 1
        assert result.build_time >= 0
        orchestrator.mapper.resolve_all.assert_called_once_with(["GL/glew.h"], win64=False)

    def test_multi_source_build(self, orchestrator, project_dir):
        (project_dir / "util.cpp").write_text("int util() { return 1; }\n")
        project = Project(main_source="main.cpp", dep_sources=["util.cpp"])
        with patch(EXECUTOR_RUN, return_value=CommandResult(0, "", "")) as compile_run:
            with patch(LINKER_RUN, return_value=CommandResult(0, "", "")) as link_run:
                result = orchestrator.build(project_dir, project=project)

        assert result.success
        assert compile_run.call_count == 2
        link_command = link_run.call_args.args[0]
        assert link_command[:4] == ["/usr/bin/g++", "-o", "game", "main.o"]
        assert "util.o" in link_command

    def test_missing_package_recommendation(self, orchestrator, project_dir):
        project = Project(main_source="main.cpp", includes=["GL/glew.h"])
        advisor = Mock()
        advisor.advise.return_value = PackageRecommendation("GL/glew.h", "glew", "pacman -S glew")
        with patch(EXECUTOR_RUN, return_value=CommandResult(1, "", "GL/glew.h: No such file")):
            with patch("zerobuild.build.orchestrator.PackageAdvisor", return_value=advisor):
                result = orchestrator.build(project_dir, project=project)

        assert not result.success
        assert result.message == 'Could not find "GL/glew.h", install with: pacman -S glew'

    def test_advise_raises(self, orchestrator):
        advisor = Mock()
        advisor.advise.return_value = PackageRecommendation("GL/glew.h", "glew-dev", "apt install glew-dev")
        with patch("zerobuild.build.orchestrator.PackageAdvisor", return_value=advisor):
            with pytest.raises(MissingPackageError) as excinfo:
                orchestrator.advise(Project(includes=["GL/glew.h"]))
        assert excinfo.value.package == "glew-dev"
        assert excinfo.value.install_command == "apt install glew-dev"

    def test_compile_failure_with_hints(self, orchestrator, project_dir):
        project = Project(main_source="main.cpp", includes=["GL/glut.h"])
        advisor = Mock()
        advisor.advise.return_value = None
        advisor.hints.return_value = ["include GLUT/glut.h"]
        with patch(EXECUTOR_RUN, return_value=CommandResult(1, "", "error")):
            with patch("zerobuild.build.orchestrator.PackageAdvisor", return_value=advisor):
                result = orchestrator.build(project_dir, project=project)

        assert not result.success
        assert result.hints == ["include GLUT/glut.h"]
        assert result.output == "error"

    def test_no_compiler(self, orchestrator, project_dir):
        orchestrator.locator.select.side_effect = NoCompilerFoundError("no C/C++ compiler found")
        result = orchestrator.build(project_dir, project=Project(main_source="main.cpp"))
        assert not result.success
        assert result.message == "no C/C++ compiler found"

    def test_missing_directory(self, orchestrator, tmp_path):
        result = orchestrator.build(tmp_path / "missing")
        assert not result.success
        assert "not found" in result.message

    def test_clean(self, orchestrator, project_dir):
        for name in ("util.cpp", "main.o", "main.d", "util.o", "game", "notes.txt"):
            (project_dir / name).write_text("")
        (project_dir / "util.cpp").write_text("int util() { return 1; }\n")

        removed = orchestrator.clean(project_dir)

        assert sorted(Path(p).name for p in removed) == ["game", "main.d", "main.o", "util.o"]
        assert (project_dir / "notes.txt").exists()
        assert (project_dir / "main.cpp").exists()

    def test_mapper_uses_compiler_include_dirs(self, tmp_path):
        locator = Mock(spec=CompilerLocator)
        locator.find_native.return_value = "/usr/bin/g++"
        locator.dumpmachine.return_value = "x86_64-linux-gnu"
        locator.compiler_includes.return_value = [tmp_path]
        orchestrator = BuildOrchestrator(
            BuildOptions(), host=HostPlatform("linux"), env=EnvironmentOverrides({}), locator=locator
        )
        with patch("zerobuild.build.orchestrator.create_package_mapper") as create:
            assert orchestrator.mapper is create.return_value
        locator.compiler_includes.assert_called_once_with("/usr/bin/g++")
        assert create.call_args.kwargs["compiler_include_dirs"] == [tmp_path]
        assert create.call_args.kwargs["machine"] == "x86_64-linux-gnu"
