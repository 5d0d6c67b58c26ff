"""Tests for incremental build planning."""

import os
from unittest.mock import Mock, patch

import pytest

from zerobuild.build import BuildFlags, BuildPlanner, CompilationExecutor, CompileResult, Linker, LinkResult
from zerobuild.build.build_planner import default_jobs, depfile_path_for, object_path_for, parse_depfile


def touch(path, mtime):
    path.parent.mkdir(parents=True, exist_ok=True)
    if not path.exists():
        path.write_text("")
    os.utime(path, (mtime, mtime))


class TestHelpers:
    """Test path and depfile helpers."""

    def test_object_and_depfile_paths(self):
        assert object_path_for("common/util.cpp") == "common/util.o"
        assert depfile_path_for("common/util.o") == "common/util.d"

    def test_parse_depfile(self):
        text = "main.o: main.cpp game.h \\\n  include/engine.h\n\ngame.h:\n"
        assert parse_depfile(text) == ["main.cpp", "game.h", "include/engine.h"]

    def test_default_jobs(self):
        with patch("zerobuild.build.build_planner.psutil.cpu_count", return_value=None):
            assert default_jobs() == 1
        with patch("zerobuild.build.build_planner.psutil.cpu_count", return_value=8):
            assert default_jobs() == 8


class TestBuildPlanner:
    """Test staleness decisions and the compile/link sequence."""

    @pytest.fixture
    def flags(self):
        return BuildFlags(compiler="g++", std="c++20")

    @pytest.fixture
    def executor(self):
        executor = Mock(spec=CompilationExecutor)
        executor.compile_object.side_effect = lambda flags, src, obj: CompileResult(
            src, obj, ["g++", "-c", "-o", obj, src], 0, ""
        )
        executor.compile_and_link.side_effect = lambda flags, srcs, out: CompileResult(
            srcs[0], out, ["g++", "-o", out] + list(srcs), 0, ""
        )
        return executor

    @pytest.fixture
    def linker(self, tmp_path):
        linker = Mock(spec=Linker)
        linker.link.side_effect = lambda flags, objs, out: LinkResult(
            True, tmp_path / out, ["g++", "-o", out] + list(objs)
        )
        return linker

    def planner(self, tmp_path, executor, linker, jobs=1):
        return BuildPlanner(tmp_path, executor=executor, linker=linker, jobs=jobs)

    def test_single_source_one_invocation(self, tmp_path, flags, executor, linker):
        touch(tmp_path / "main.cpp", 100)
        result = self.planner(tmp_path, executor, linker).build(flags, ["main.cpp"], "game")

        assert result.success
        executor.compile_and_link.assert_called_once_with(flags, ["main.cpp"], "game")
        executor.compile_object.assert_not_called()
        linker.link.assert_not_called()
        assert result.commands_run == ["g++ -o game main.cpp"]

    def test_clean_build(self, tmp_path, flags, executor, linker):
        touch(tmp_path / "main.cpp", 100)
        touch(tmp_path / "game.cpp", 100)

        result = self.planner(tmp_path, executor, linker).build(flags, ["main.cpp", "game.cpp"], "game")

        assert result.success
        assert [c.args[1] for c in executor.compile_object.call_args_list] == ["main.cpp", "game.cpp"]
        linker.link.assert_called_once_with(flags, ["main.o", "game.o"], "game")
        assert len(result.commands_run) == 3

    def test_up_to_date(self, tmp_path, flags, executor, linker):
        touch(tmp_path / "main.cpp", 100)
        touch(tmp_path / "game.cpp", 100)
        touch(tmp_path / "main.o", 200)
        touch(tmp_path / "game.o", 200)
        touch(tmp_path / "game", 300)

        result = self.planner(tmp_path, executor, linker).build(flags, ["main.cpp", "game.cpp"], "game")

        assert result.success
        assert result.up_to_date
        assert result.commands_run == []
        executor.compile_object.assert_not_called()
        linker.link.assert_not_called()

    def test_changed_source_recompiles_and_relinks_all(self, tmp_path, flags, executor, linker):
        touch(tmp_path / "main.cpp", 100)
        touch(tmp_path / "game.cpp", 250)
        touch(tmp_path / "main.o", 200)
        touch(tmp_path / "game.o", 200)
        touch(tmp_path / "game", 300)

        result = self.planner(tmp_path, executor, linker).build(flags, ["main.cpp", "game.cpp"], "game")

        assert result.success
        assert [c.args[1] for c in executor.compile_object.call_args_list] == ["game.cpp"]
        linker.link.assert_called_once_with(flags, ["main.o", "game.o"], "game")

    def test_header_in_depfile(self, tmp_path, flags, executor, linker):
        touch(tmp_path / "main.cpp", 100)
        touch(tmp_path / "game.h", 250)
        touch(tmp_path / "main.o", 200)
        (tmp_path / "main.d").write_text("main.o: main.cpp game.h\n")

        planner = self.planner(tmp_path, executor, linker)
        assert planner.needs_recompile("main.cpp", "main.o")

    def test_missing_depfile(self, tmp_path, executor, linker):
        touch(tmp_path / "main.cpp", 100)
        touch(tmp_path / "main.o", 200)
        assert not self.planner(tmp_path, executor, linker).needs_recompile("main.cpp", "main.o")

    def test_missing_executable_relinks(self, tmp_path, flags, executor, linker):
        touch(tmp_path / "main.cpp", 100)
        touch(tmp_path / "game.cpp", 100)
        touch(tmp_path / "main.o", 200)
        touch(tmp_path / "game.o", 200)

        result = self.planner(tmp_path, executor, linker).build(flags, ["main.cpp", "game.cpp"], "game")

        assert result.success
        executor.compile_object.assert_not_called()
        linker.link.assert_called_once()

    def test_compile_failure_stops_build(self, tmp_path, flags, executor, linker):
        for name in ("a.cpp", "b.cpp", "c.cpp"):
            touch(tmp_path / name, 100)
        executor.compile_object.side_effect = lambda flags, src, obj: CompileResult(
            src, obj, ["g++", src], 1 if src == "a.cpp" else 0, "error" if src == "a.cpp" else ""
        )

        result = self.planner(tmp_path, executor, linker).build(flags, ["a.cpp", "b.cpp", "c.cpp"], "prog")

        assert not result.success
        assert result.failed_source == "a.cpp"
        assert executor.compile_object.call_count == 1
        linker.link.assert_not_called()
        assert result.output == "error"

    def test_parallel_failure_never_links(self, tmp_path, flags, executor, linker):
        sources = [f"s{i}.cpp" for i in range(6)]
        for name in sources:
            touch(tmp_path / name, 100)
        executor.compile_object.side_effect = lambda flags, src, obj: CompileResult(
            src, obj, ["g++", src], 1 if src == "s1.cpp" else 0, ""
        )

        result = self.planner(tmp_path, executor, linker, jobs=2).build(flags, sources, "prog")

        assert not result.success
        assert result.failed_source == "s1.cpp"
        assert result.link is None
        linker.link.assert_not_called()

    def test_parallel_success_keeps_source_order(self, tmp_path, flags, executor, linker):
        sources = [f"s{i}.cpp" for i in range(5)]
        for name in sources:
            touch(tmp_path / name, 100)

        result = self.planner(tmp_path, executor, linker, jobs=3).build(flags, sources, "prog")

        assert result.success
        assert [c.source for c in result.compiled] == sources
        linker.link.assert_called_once_with(flags, [f"s{i}.o" for i in range(5)], "prog")

    def test_link_failure(self, tmp_path, flags, executor, linker):
        touch(tmp_path / "main.cpp", 100)
        touch(tmp_path / "game.cpp", 100)
        linker.link.side_effect = lambda flags, objs, out: LinkResult(False, None, ["g++"], "", "undefined reference")

        result = self.planner(tmp_path, executor, linker).build(flags, ["main.cpp", "game.cpp"], "game")

        assert not result.success
        assert result.link is not None
        assert "undefined reference" in result.output
