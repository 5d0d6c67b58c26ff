"""Unit tests for compiler discovery."""

from unittest.mock import patch

import pytest

from zerobuild.config import EnvironmentOverrides
from zerobuild.packages import CompilerLocator, NoCompilerFoundError
from zerobuild.packages.toolchain import is_compiler_clang, is_compiler_gcc
from zerobuild.subprocess_utils import CommandResult


def which_from(*names):
    """PATH lookup that only knows the given executables."""
    available = set(names)
    return lambda name: f"/usr/bin/{name}" if name in available else None


class TestCompilerFamily:
    """Test cases for compiler family checks."""

    def test_gcc(self):
        assert is_compiler_gcc("/usr/bin/g++")
        assert is_compiler_gcc("/usr/bin/x86_64-w64-mingw32-g++")
        assert is_compiler_gcc("gcc-13")
        assert not is_compiler_gcc("/usr/bin/clang++")

    def test_clang(self):
        assert is_compiler_clang("/usr/bin/clang++")
        assert not is_compiler_clang("/usr/bin/g++")


class TestCompilerLocator:
    """Test cases for CompilerLocator."""

    def test_native_cxx_prefers_gxx(self):
        locator = CompilerLocator(EnvironmentOverrides({}), which=which_from("g++", "clang++"))
        assert locator.select(is_c=False, win64=False) == "/usr/bin/g++"

    def test_clang_requested(self):
        locator = CompilerLocator(EnvironmentOverrides({}), which=which_from("g++", "clang++"))
        assert locator.select(is_c=False, win64=False, use_clang=True) == "/usr/bin/clang++"

    def test_cxx_environment_override(self):
        env = EnvironmentOverrides({"CXX": "clang++"})
        locator = CompilerLocator(env, which=which_from("g++", "clang++"))
        assert locator.find_native(use_clang=False, is_c=False) == "/usr/bin/clang++"

    def test_missing_override_falls_back(self):
        env = EnvironmentOverrides({"CC": "tcc"})
        locator = CompilerLocator(env, which=which_from("gcc"))
        assert locator.find_native(use_clang=False, is_c=True) == "/usr/bin/gcc"

    def test_win64_cross_compiler(self):
        locator = CompilerLocator(EnvironmentOverrides({}), which=which_from("g++", "x86_64-w64-mingw32-g++"))
        assert locator.select(is_c=False, win64=True) == "/usr/bin/x86_64-w64-mingw32-g++"

    def test_zapcc(self):
        locator = CompilerLocator(EnvironmentOverrides({}), which=which_from("g++", "zapcc++"))
        assert locator.select(is_c=False, win64=False, zap=True) == "/usr/bin/zapcc++"

    def test_zapcc_missing_falls_back(self):
        locator = CompilerLocator(EnvironmentOverrides({}), which=which_from("g++"))
        assert locator.select(is_c=False, win64=False, zap=True) == "/usr/bin/g++"

    def test_no_compiler(self):
        locator = CompilerLocator(EnvironmentOverrides({}), which=which_from())
        with pytest.raises(NoCompilerFoundError):
            locator.select(is_c=True, win64=False)

    def test_best_cxx_standard(self):
        locator = CompilerLocator(EnvironmentOverrides({}), which=which_from("g++"))

        def fake_run(cmd, **kwargs):
            return CommandResult(0 if cmd[1] == "-std=c++20" else 1, "", "")

        with patch("zerobuild.packages.toolchain.run_command", side_effect=fake_run) as mock_run:
            assert locator.best_cxx_standard("/usr/bin/g++") == "c++20"
            calls = mock_run.call_count
            assert locator.best_cxx_standard("/usr/bin/g++") == "c++20"
            assert mock_run.call_count == calls

    def test_best_cxx_standard_fallback(self):
        locator = CompilerLocator(EnvironmentOverrides({}), which=which_from("g++"))
        with patch("zerobuild.packages.toolchain.run_command", return_value=CommandResult(1, "", "")):
            assert locator.best_cxx_standard("/usr/bin/g++") == "c++17"

    def test_dumpmachine(self):
        locator = CompilerLocator(EnvironmentOverrides({}), which=which_from("g++"))
        result = CommandResult(0, "x86_64-linux-gnu\n", "")
        with patch("zerobuild.packages.toolchain.run_command", return_value=result):
            assert locator.dumpmachine("/usr/bin/g++") == "x86_64-linux-gnu"
        assert locator.dumpmachine(None) == ""

    def test_compiler_includes(self, tmp_path):
        locator = CompilerLocator(EnvironmentOverrides({}), which=which_from("g++"))
        stderr = (
            "#include <...> search starts here:\n"
            f" {tmp_path}\n"
            " /definitely/not/a/dir\n"
            "End of search list.\n"
        )
        with patch("zerobuild.packages.toolchain.run_command", return_value=CommandResult(0, "", stderr)):
            assert locator.compiler_includes("/usr/bin/g++") == [tmp_path]
        assert locator.compiler_includes(None) == []
