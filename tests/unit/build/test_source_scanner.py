"""Tests for project discovery."""

from unittest.mock import Mock

import pytest

from zerobuild.build import IncludeResolver, NoMainSourceError, Project, SourceScanner, SourceScannerError
from zerobuild.build.source_scanner import contains_main, is_test_file, scan_features


class TestSourceScanner:
    """Test source discovery and classification."""

    @pytest.fixture
    def project(self, tmp_path):
        """Create temporary project directory."""
        project = tmp_path / "game"
        project.mkdir()
        return project

    def write(self, path, text=""):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text)
        return path

    def scanner(self, project_dir):
        return SourceScanner(project_dir, include_resolver=Mock(spec=IncludeResolver), case_insensitive=False)

    def test_missing_directory(self, tmp_path):
        with pytest.raises(SourceScannerError):
            self.scanner(tmp_path / "nope").scan()

    def test_no_main_source_error_is_scanner_error(self):
        assert issubclass(NoMainSourceError, SourceScannerError)

    def test_main_dep_and_test_sources(self, project):
        self.write(project / "main.cpp", '#include "game.h"\nint main() { return 0; }\n')
        self.write(project / "game.cpp", "void run() {}\n")
        self.write(project / "game.h", "void run();\n")
        self.write(project / "game_test.cpp", "int main() { return 0; }\n")

        result = self.scanner(project).scan(resolve_includes=False)

        assert result.main_source == "main.cpp"
        assert result.dep_sources == ["game.cpp"]
        assert result.test_sources == ["game_test.cpp"]
        assert not result.is_c
        assert result.build_sources() == ["main.cpp", "game.cpp"]

    def test_c_project(self, project):
        self.write(project / "main.c", "int main(void) { return 0; }\n")
        result = self.scanner(project).scan(resolve_includes=False)
        assert result.main_source == "main.c"
        assert result.is_c

    def test_single_candidate_with_main(self, project):
        self.write(project / "hello.cpp", "int main() { return 0; }\n")
        assert self.scanner(project).scan(resolve_includes=False).main_source == "hello.cpp"

    def test_single_candidate_without_main(self, project):
        self.write(project / "lib.cpp", "int add(int a, int b) { return a + b; }\n")
        self.write(project / "lib_test.cpp", "int main() { return 0; }\n")

        result = self.scanner(project).scan(resolve_includes=False)

        assert result.main_source == ""
        assert result.test_sources == ["lib_test.cpp"]
        assert result.build_sources() == []

    def test_main_in_comment_is_ignored(self, project):
        self.write(project / "lib.cpp", "// int main() is elsewhere\nint f() { return 1; }\n")
        assert self.scanner(project).scan(resolve_includes=False).main_source == ""

    def test_multiple_candidates(self, project):
        self.write(project / "a.cpp", "int helper() { return 1; }\n")
        self.write(project / "b.cpp", "int main(int argc, char** argv) { return 0; }\n")

        result = self.scanner(project).scan(resolve_includes=False)

        assert result.main_source == "b.cpp"
        assert result.dep_sources == ["a.cpp"]

    def test_sdl_main(self, project):
        self.write(project / "app.cpp", "int SDL_main(int argc, char* argv[]) { return 0; }\n")
        assert self.scanner(project).scan(resolve_includes=False).main_source == "app.cpp"

    def test_src_fallback(self, project):
        self.write(project / "src" / "main.cpp", "int main() {}\n")
        assert self.scanner(project).scan(resolve_includes=False).main_source == "src/main.cpp"

    def test_test_cpp_is_test(self, project):
        self.write(project / "main.cpp", "int main() {}\n")
        self.write(project / "test.cpp", "int main() {}\n")
        result = self.scanner(project).scan(resolve_includes=False)
        assert result.test_sources == ["test.cpp"]
        assert result.dep_sources == []

    def test_common_sources(self, project):
        self.write(project / "main.cpp", '#include "util.h"\nint main() {}\n')
        self.write(project / "common" / "util.h", "int util();\n")
        self.write(project / "common" / "util.cpp", "int util() { return 1; }\n")
        self.write(project / "common" / "util_test.cpp", "int main() {}\n")

        result = self.scanner(project).scan(resolve_includes=False)

        assert result.dep_sources == ["common/util.cpp"]
        assert result.test_sources == ["common/util_test.cpp"]

    def test_resolve_common_deps_fixed_point(self, project):
        self.write(project / "main.cpp", '#include "a.h"\nint main() {}\n')
        self.write(project / "common" / "a.h", '#include "b.h"\n')
        self.write(project / "common" / "a.cpp", '#include "a.h"\n')
        self.write(project / "common" / "b.h", "")
        self.write(project / "common" / "b.cpp", '#include "b.h"\n')

        scanner = self.scanner(project)
        result = Project(main_source="main.cpp")
        scanner.resolve_common_deps(result)

        assert result.dep_sources == ["common/a.cpp", "common/b.cpp"]

    def test_collect_local_includes_transitive(self, project):
        self.write(project / "main.cpp", '#include "a.h"\n#include "a.h"\n')
        self.write(project / "include" / "a.h", '#include "b.h"\n')
        assert self.scanner(project).collect_local_includes(["main.cpp"]) == ["a.h", "b.h"]

    def test_case_insensitive_dedupe(self, project):
        scanner = SourceScanner(project, include_resolver=Mock(spec=IncludeResolver), case_insensitive=True)
        assert scanner.unique(["common/Util.cpp", "Common/util.cpp", "./common/util.cpp"]) == ["common/Util.cpp"]

    def test_includes_resolved(self, project):
        self.write(project / "main.cpp", "#include <SDL2/SDL.h>\nint main() {}\n")
        resolver = Mock(spec=IncludeResolver)
        resolver.resolve.return_value = ["SDL2/SDL.h"]
        scanner = SourceScanner(project, include_resolver=resolver, case_insensitive=False)

        result = scanner.scan()

        assert result.includes == ["SDL2/SDL.h"]
        resolver.resolve.assert_called_once_with(["main.cpp"], False)

    def test_boost_example(self, project):
        self.write(
            project / "main.cpp",
            "#include <boost/filesystem.hpp>\n"
            "#include <boost/program_options/options_description.hpp>\n"
            "#include <thread>\n"
            "#include <cmath>\n"
            "int main() {}\n",
        )
        result = self.scanner(project).scan(resolve_includes=False)

        assert result.has_boost
        assert result.boost_libs == ["boost_filesystem", "boost_program_options"]
        assert result.has_threads
        assert result.has_math_lib


class TestFeatureScan:
    """Test the line-based feature heuristics."""

    def scan(self, text):
        project = Project()
        scan_features(text, project)
        return project

    def test_openmp(self):
        assert self.scan("#pragma omp parallel for\n").has_openmp

    def test_qt6(self):
        assert self.scan("#include <QApplication>\n").has_qt6

    def test_filesystem(self):
        assert self.scan("#include <filesystem>\n").has_fs

    def test_math_requires_exact_line(self):
        assert self.scan('#include "math.h"\n').has_math_lib
        assert not self.scan("#include <cmath> // trig\n").has_math_lib

    def test_dlopen(self):
        assert self.scan("#include <dlfcn.h>\n").has_dlopen

    def test_windows(self):
        assert self.scan("#include<windows.h>\n").has_win64
        assert self.scan('  #include "windows.h"\n').has_win64

    def test_glfw_vulkan(self):
        assert self.scan("#define GLFW_INCLUDE_VULKAN\n").has_glfw_vulkan

    def test_nothing(self):
        project = self.scan("int main() {}\n")
        assert not any([project.has_openmp, project.has_boost, project.has_threads, project.has_win64])


class TestHelpers:
    """Test module-level helpers."""

    def test_is_test_file(self):
        assert is_test_file("common/util_test.cpp")
        assert is_test_file("test.c")
        assert not is_test_file("testing.cpp")
        assert not is_test_file("main.cpp")

    def test_contains_main(self, tmp_path):
        source = tmp_path / "x.cpp"
        source.write_text("main(void) {}\n")
        assert contains_main(source)
        assert not contains_main(tmp_path / "missing.cpp")
