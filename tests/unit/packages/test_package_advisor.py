"""Unit tests for missing-package recommendations."""

from unittest.mock import Mock, patch

from zerobuild.packages import ArchProbe, DebianProbe, GenericProbe, HostPlatform, PackageAdvisor, PcFileCache, PkgConfig
from zerobuild.subprocess_utils import CommandResult

RUN = "zerobuild.packages.package_advisor.run_command"


def probe_of(cls, system_dirs=()):
    probe = cls(Mock(spec=PkgConfig), PcFileCache())
    probe.system_include_dirs = lambda: list(system_dirs)
    return probe


def has_tool(name):
    return f"/usr/bin/{name}"


class TestPackageAdvisor:
    """Test cases for PackageAdvisor."""

    def test_missing_headers(self, tmp_path):
        (tmp_path / "SDL2").mkdir()
        (tmp_path / "SDL2" / "SDL.h").write_text("")
        advisor = PackageAdvisor(HostPlatform("linux"), probe_of(ArchProbe, [tmp_path]), which=has_tool)
        assert advisor.missing_headers(["SDL2/SDL.h", "GL/glew.h"]) == ["GL/glew.h"]

    def test_arch_recommendation(self):
        advisor = PackageAdvisor(HostPlatform("linux"), probe_of(ArchProbe), which=has_tool)
        with patch(RUN, return_value=CommandResult(0, "extra/glew\n", "")):
            recommendation = advisor.advise(["GL/glew.h"])
        assert recommendation.package == "glew"
        assert recommendation.install_command == "pacman -S glew"
        assert str(recommendation) == 'Could not find "GL/glew.h", install with: pacman -S glew'

    def test_debian_recommendation(self):
        advisor = PackageAdvisor(HostPlatform("linux"), probe_of(DebianProbe), which=has_tool)
        with patch(RUN, return_value=CommandResult(0, "libglew-dev\n", "")) as mock_run:
            recommendation = advisor.advise(["GL/glew.h"])
        assert recommendation.install_command == "apt install libglew-dev"
        assert mock_run.call_args.args[0] == ["apt-file", "find", "-Fl", "GL/glew.h"]

    def test_skipped_package(self):
        advisor = PackageAdvisor(HostPlatform("linux"), probe_of(ArchProbe), which=has_tool)
        with patch(RUN, return_value=CommandResult(0, "core/glibc\n", "")):
            assert advisor.advise(["features.h"]) is None

    def test_tool_missing(self):
        advisor = PackageAdvisor(HostPlatform("linux"), probe_of(ArchProbe), which=lambda name: None)
        with patch(RUN) as mock_run:
            assert advisor.advise(["GL/glew.h"]) is None
        mock_run.assert_not_called()

    def test_other_platforms(self):
        advisor = PackageAdvisor(HostPlatform("linux"), probe_of(GenericProbe), which=has_tool)
        assert advisor.advise(["GL/glew.h"]) is None

    def test_macos_hints(self):
        advisor = PackageAdvisor(HostPlatform("darwin"), probe_of(GenericProbe), which=has_tool)
        hints = advisor.hints(["GL/glut.h", "SDL2/SDL.h"])
        assert len(hints) == 1
        assert "GLUT/glut.h" in hints[0]

    def test_no_hints_off_macos(self):
        advisor = PackageAdvisor(HostPlatform("linux"), probe_of(GenericProbe), which=has_tool)
        assert advisor.hints(["GL/gl.h"]) == []
