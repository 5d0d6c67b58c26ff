"""
Project discovery for zero-configuration C/C++ projects.

This module handles:
- Finding the main source (main.cpp, or the one source that defines main())
- Classifying the remaining sources into dependencies and tests
- Pulling in common/ implementation files for headers the project includes
- Detecting language features (OpenMP, Boost, Qt6, threads, ...) by line scan
"""

import os
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..config.conventions import (
    C_EXTENSIONS,
    LOCAL_COMMON_PATHS,
    LOCAL_INCLUDE_PATHS,
    SOURCE_EXTENSIONS,
    SRC_DIR,
)
from ..packages.platform_utils import PlatformDetector
from .include_resolver import IncludeResolver, read_source

MAIN_MARKERS = (" main(", " SDL_main(", " main (")
MAIN_PREFIXES = ("main(", "SDL_main(", "main (")

MATH_INCLUDES = {"#include <cmath>", '#include "math.h"', "#include <math.h>"}
THREAD_INCLUDES = {
    "#include <thread>",
    "#include <pthread.h>",
    "#include <mutex>",
    "#include <future>",
    "#include <condition_variable>",
    "#include <shared_mutex>",
}
WINDOWS_INCLUDES = ("#include <windows.h>", '#include "windows.h"', "#include<windows.h>")


class SourceScannerError(Exception):
    """Exception raised for source scanning errors."""

    pass


class NoMainSourceError(SourceScannerError):
    """Raised when a project has no buildable entry point."""

    pass


@dataclass
class Project:
    """The detected shape of a source tree.

    All paths are relative to the project directory. An empty main_source
    means there is nothing to build.
    """

    main_source: str = ""
    dep_sources: List[str] = field(default_factory=list)
    test_sources: List[str] = field(default_factory=list)
    includes: List[str] = field(default_factory=list)
    boost_libs: List[str] = field(default_factory=list)
    is_c: bool = False
    has_openmp: bool = False
    has_boost: bool = False
    has_qt6: bool = False
    has_math_lib: bool = False
    has_fs: bool = False
    has_threads: bool = False
    has_win64: bool = False
    has_glfw_vulkan: bool = False
    has_dlopen: bool = False

    def build_sources(self) -> List[str]:
        """Main source followed by dependency sources."""
        if not self.main_source:
            return []
        return [self.main_source] + self.dep_sources

    def all_sources(self) -> List[str]:
        """Main, dependency and test sources."""
        sources = [self.main_source] if self.main_source else []
        return sources + self.dep_sources + self.test_sources


def is_test_file(path: str) -> bool:
    """Check if a file is a test source (*_test.<ext> or test.<ext>)."""
    stem = os.path.splitext(os.path.basename(path))[0]
    return stem.endswith("_test") or stem == "test"


def contains_main(path: Path) -> bool:
    """Check if a source file defines main() or SDL_main().

    Lines starting with // are ignored. This is a text heuristic: block
    comments and unusual formatting are not understood.
    """
    text = read_source(path)
    if text is None:
        return False
    for line in text.split("\n"):
        trimmed = line.strip()
        if trimmed.startswith("//"):
            continue
        if any(marker in line for marker in MAIN_MARKERS) or trimmed.startswith(MAIN_PREFIXES):
            return True
    return False


def scan_features(text: str, project: Project) -> None:
    """Set feature flags on a project from one file's text."""
    for line in text.splitlines():
        trimmed = line.strip()

        if "#pragma omp" in line:
            project.has_openmp = True

        if "#include <boost/" in line:
            project.has_boost = True
            # <boost/filesystem.hpp> -> boost_filesystem
            rest = line.split("<boost/", 1)[1]
            end = min((i for i in (rest.find(c) for c in "./>") if i >= 0), default=-1)
            if end >= 0:
                lib = "boost_" + rest[:end]
                if lib not in project.boost_libs:
                    project.boost_libs.append(lib)

        if "#include <QApplication" in line:
            project.has_qt6 = True
        if "#include <filesystem>" in line:
            project.has_fs = True
        if trimmed in MATH_INCLUDES:
            project.has_math_lib = True
        if trimmed in THREAD_INCLUDES:
            project.has_threads = True
        if trimmed == "#include <dlfcn.h>":
            project.has_dlopen = True
        if any(spelling in line for spelling in WINDOWS_INCLUDES):
            project.has_win64 = True
        if "#define GLFW_INCLUDE_VULKAN" in line:
            project.has_glfw_vulkan = True


class SourceScanner:
    """
    Scans a project directory and builds a Project.

    The scanner:
    1. Finds test sources in the root and the common/ directories
    2. Picks the main source
    3. Collects dependency sources (root + common/)
    4. Scans every source for feature flags
    5. Adds common/ implementations of locally included headers
    6. Resolves the external headers through the IncludeResolver
    """

    def __init__(
        self,
        project_dir: Path,
        include_resolver: Optional[IncludeResolver] = None,
        case_insensitive: Optional[bool] = None,
    ):
        """
        Initialize source scanner.

        Args:
            project_dir: Project root directory
            include_resolver: Resolver for external headers
            case_insensitive: Fold path case when de-duplicating
                (defaults to True on macOS and Windows)
        """
        self.project_dir = Path(project_dir)
        self.include_resolver = include_resolver or IncludeResolver(self.project_dir)
        if case_insensitive is None:
            host = PlatformDetector.detect()
            case_insensitive = host.is_darwin or host.is_windows
        self.case_insensitive = case_insensitive

    # -- path helpers -------------------------------------------------------

    def path_key(self, path: str) -> str:
        """Normalized path used for de-duplication."""
        key = os.path.normpath(path)
        return key.lower() if self.case_insensitive else key

    def unique(self, paths: List[str]) -> List[str]:
        seen = set()
        result = []
        for path in paths:
            key = self.path_key(path)
            if key not in seen:
                seen.add(key)
                result.append(path)
        return result

    def exists(self, rel_path: str) -> bool:
        return (self.project_dir / rel_path).exists()

    def glob(self, directory: str, pattern: str) -> List[str]:
        """Sorted matches of a pattern in a project-relative directory."""
        base = self.project_dir / directory
        if not base.is_dir():
            return []
        return sorted(
            os.path.normpath(os.path.join(directory, p.name))
            for p in base.glob(pattern)
            if p.is_file()
        )

    # -- classification -------------------------------------------------------

    def find_test_sources(self) -> List[str]:
        tests: List[str] = []
        for directory in ["."] + LOCAL_COMMON_PATHS:
            for ext in SOURCE_EXTENSIONS:
                tests.extend(self.glob(directory, f"*_test{ext}"))
            for ext in SOURCE_EXTENSIONS:
                candidate = os.path.normpath(os.path.join(directory, f"test{ext}"))
                if self.exists(candidate):
                    tests.append(candidate)
                    break
        return self.unique(tests)

    def _pick_main(self, candidates: List[str]) -> str:
        if len(candidates) == 1:
            return candidates[0] if contains_main(self.project_dir / candidates[0]) else ""
        for candidate in candidates:
            if contains_main(self.project_dir / candidate):
                return candidate
        return ""

    def find_main_source(self, test_sources: List[str]) -> str:
        """
        Find the main source file.

        Args:
            test_sources: Already-detected test sources (never main)

        Returns:
            Relative path of the main source, or '' when there is none
        """
        for ext in SOURCE_EXTENSIONS:
            if self.exists(f"main{ext}"):
                return f"main{ext}"

        test_keys = {self.path_key(t) for t in test_sources}
        candidates = [
            src
            for ext in SOURCE_EXTENSIONS
            for src in self.glob(".", f"*{ext}")
            if self.path_key(src) not in test_keys and not is_test_file(src)
        ]
        if candidates:
            return self._pick_main(candidates)

        for ext in SOURCE_EXTENSIONS:
            candidate = os.path.join(SRC_DIR, f"main{ext}")
            if self.exists(candidate):
                return candidate
        candidates = [
            src
            for ext in SOURCE_EXTENSIONS
            for src in self.glob(SRC_DIR, f"*{ext}")
            if not is_test_file(src)
        ]
        return self._pick_main(candidates) if candidates else ""

    def find_dep_sources(self, main_source: str, test_sources: List[str]) -> List[str]:
        test_keys = {self.path_key(t) for t in test_sources}
        main_key = self.path_key(main_source) if main_source else None
        deps = [
            src
            for ext in SOURCE_EXTENSIONS
            for src in self.glob(".", f"*{ext}")
            if self.path_key(src) not in (test_keys | {main_key}) and not is_test_file(src)
        ]
        for common in LOCAL_COMMON_PATHS:
            for ext in SOURCE_EXTENSIONS:
                deps.extend(src for src in self.glob(common, f"*{ext}") if not is_test_file(src))
        return self.unique(deps)

    # -- common/ resolution ---------------------------------------------------

    def collect_local_includes(self, files: List[str]) -> List[str]:
        """Collect #include "..." names from files and the local headers they include."""
        result: List[str] = []
        seen = set()
        examined = set()
        queue = deque(files)

        while queue:
            source = queue.popleft()
            if not source or source.lower() in examined:
                continue
            examined.add(source.lower())

            text = read_source(self.project_dir / source)
            if text is None:
                continue
            for line in text.splitlines():
                line = line.strip()
                if not line.startswith('#include "'):
                    continue
                parts = line.split('"', 2)
                if len(parts) < 2 or parts[1] in seen:
                    continue
                include = parts[1]
                seen.add(include)
                result.append(include)
                for local_path in LOCAL_INCLUDE_PATHS:
                    header = os.path.normpath(os.path.join(local_path, include))
                    if self.exists(header):
                        queue.append(header)
                        break
        return result

    def resolve_common_deps(self, project: Project) -> None:
        """Add common/ sources implementing locally included headers.

        Repeats until a pass adds nothing, since a newly added source can
        include further headers.
        """
        if not project.main_source:
            return
        while True:
            includes = self.collect_local_includes([project.main_source] + project.dep_sources)
            existing = {self.path_key(d) for d in project.dep_sources}
            found_new = False
            for include in includes:
                stem = os.path.splitext(include)[0]
                for common in LOCAL_COMMON_PATHS:
                    for ext in SOURCE_EXTENSIONS:
                        candidate = os.path.normpath(os.path.join(common, stem + ext))
                        key = self.path_key(candidate)
                        if key in existing or not self.exists(candidate):
                            continue
                        project.dep_sources.append(candidate)
                        existing.add(key)
                        found_new = True
            if not found_new:
                break

    # -- entry point ------------------------------------------------------

    def scan(self, resolve_includes: bool = True) -> Project:
        """
        Scan the project directory.

        Args:
            resolve_includes: Also collect external headers (runs cpp)

        Returns:
            Project

        Raises:
            SourceScannerError: If the project directory does not exist
        """
        if not self.project_dir.is_dir():
            raise SourceScannerError(f"Project directory not found: {self.project_dir}")

        project = Project()
        project.test_sources = self.find_test_sources()
        project.main_source = self.find_main_source(project.test_sources)
        project.dep_sources = self.find_dep_sources(project.main_source, project.test_sources)
        project.is_c = os.path.splitext(project.main_source)[1] in C_EXTENSIONS

        for source in project.all_sources():
            text = read_source(self.project_dir / source)
            if text is not None:
                scan_features(text, project)

        self.resolve_common_deps(project)
        project.dep_sources = self.unique(project.dep_sources)
        project.test_sources = self.unique(project.test_sources)

        if resolve_includes:
            project.includes = self.include_resolver.resolve(project.all_sources(), project.has_win64)
        return project
