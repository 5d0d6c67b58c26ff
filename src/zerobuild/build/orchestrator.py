"""
Build orchestration for Zerobuild projects.

This module coordinates the entire build process, from scanning the source
tree to producing the executable. It integrates all build system components:
- Source scanning (main/dependency/test sources, feature flags)
- External header discovery (cpp-assisted, text fallback)
- Package resolution (static table, pkg-config, package managers)
- Flag assembly
- Incremental compilation and linking
"""

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..config.build_options import BuildOptions
from ..config.environment import EnvironmentOverrides
from ..packages.package_advisor import PackageAdvisor, PackageRecommendation
from ..packages.package_mapper import PackageMapper, create_package_mapper
from ..packages.platform_utils import HostPlatform, PlatformDetector
from ..packages.toolchain import CompilerLocator, ToolchainError
from .build_planner import BuildPlanner, depfile_path_for, object_path_for
from .compilation_executor import CompilationExecutor
from .flag_builder import BuildFlags, FlagBuilder, FlagBuilderError
from .linker import Linker
from .source_scanner import NoMainSourceError, Project, SourceScanner, SourceScannerError

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    """Result of a complete build operation."""

    success: bool
    executable: Optional[Path] = None
    commands_run: List[str] = field(default_factory=list)
    output: str = ""
    message: str = ""
    up_to_date: bool = False
    nothing_to_build: bool = False
    build_time: float = 0.0
    hints: List[str] = field(default_factory=list)


class BuildOrchestratorError(Exception):
    """Exception raised for build orchestration errors."""
    pass


class MissingPackageError(BuildOrchestratorError):
    """A header is not installed, and the package manager knows which package provides it."""

    def __init__(self, recommendation: PackageRecommendation):
        super().__init__(str(recommendation))
        self.include = recommendation.include
        self.package = recommendation.package
        self.install_command = recommendation.install_command


def executable_name(project_dir: Path, win64: bool = False) -> str:
    """Name of the executable for a project directory.

    The directory name, or "main" when the directory is literally "src".
    """
    name = Path(project_dir).resolve().name
    if name == "src":
        name = "main"
    return name + ".exe" if win64 else name


class BuildOrchestrator:
    """
    Orchestrates the complete build process for C/C++ projects.

    This class coordinates all phases of the build:
    1. Scan the source tree into a Project
    2. Select the compiler and assemble BuildFlags
    3. Recompile stale objects and relink when needed
    4. On compile failure, look for uninstalled packages

    Example usage:
        orchestrator = BuildOrchestrator(BuildOptions.from_mode("debug"))
        result = orchestrator.build(Path("."))
        if result.success:
            print(f"Executable: {result.executable}")
    """

    def __init__(
        self,
        options: Optional[BuildOptions] = None,
        host: Optional[HostPlatform] = None,
        env: Optional[EnvironmentOverrides] = None,
        locator: Optional[CompilerLocator] = None,
        mapper: Optional[PackageMapper] = None,
        echo: bool = True,
    ):
        """
        Initialize build orchestrator.

        Args:
            options: Build options (defaults to the default mode)
            host: Host platform (detected when omitted)
            env: Environment overrides
            locator: Compiler locator
            mapper: Package mapper (created on first use when omitted)
            echo: Print compiler commands as they run
        """
        self.options = options or BuildOptions()
        self.host = host or PlatformDetector.detect()
        self.env = env or EnvironmentOverrides()
        self.locator = locator or CompilerLocator(env=self.env)
        self._mapper = mapper
        self.echo = echo

    @property
    def mapper(self) -> PackageMapper:
        if self._mapper is None:
            native = self.locator.find_native(use_clang=False, is_c=False)
            self._mapper = create_package_mapper(
                self.host,
                machine=self.locator.dumpmachine(native),
                env=self.env,
                compiler_include_dirs=self.locator.compiler_includes(native),
            )
        return self._mapper

    def scan(self, project_dir: Path) -> Project:
        """Scan a project directory (raises SourceScannerError)."""
        return SourceScanner(project_dir).scan()

    def assemble(self, project_dir: Path, project: Project) -> BuildFlags:
        """Assemble BuildFlags for a scanned project (raises NoCompilerFoundError)."""
        builder = FlagBuilder(
            project_dir,
            self.options,
            host=self.host,
            locator=self.locator,
            mapper=self.mapper,
            env=self.env,
        )
        return builder.build(project)

    def is_win64(self, project: Project) -> bool:
        return self.options.win64 or project.has_win64

    def advise(self, project: Project) -> List[str]:
        """Hints for a failed build.

        Raises:
            MissingPackageError: If a header is missing and an installable
                package provides it
        """
        advisor = PackageAdvisor(self.host, self.mapper.probe)
        recommendation = advisor.advise(project.includes)
        if recommendation is not None:
            raise MissingPackageError(recommendation)
        return advisor.hints(project.includes)

    def build(self, project_dir: Path, project: Optional[Project] = None) -> BuildResult:
        """
        Execute complete build process.

        Args:
            project_dir: Project root directory
            project: Already scanned project (scanned when omitted)

        Returns:
            BuildResult with build status and captured tool output
        """
        start_time = time.time()
        project_dir = Path(project_dir)
        result = BuildResult(success=False)

        try:
            if project is None:
                project = self.scan(project_dir)

            if not project.main_source:
                # Library or test-only trees are not an error, empty trees are
                if project.all_sources():
                    result.success = True
                    result.nothing_to_build = True
                    result.message = "No main source file found, nothing to build"
                    return result
                raise NoMainSourceError("no source files found")

            exe = executable_name(project_dir, self.is_win64(project))
            flags = self.assemble(project_dir, project)

            planner = BuildPlanner(
                project_dir,
                executor=CompilationExecutor(project_dir, echo=self.echo),
                linker=Linker(project_dir, echo=self.echo),
                jobs=self.options.jobs,
            )
            planned = planner.build(flags, project.build_sources(), exe)

            result.commands_run = planned.commands_run
            result.output = planned.output
            result.up_to_date = planned.up_to_date
            result.message = planned.message
            result.success = planned.success
            if planned.success:
                result.executable = project_dir / exe
            elif planned.link is None:
                result.hints = self.advise(project)
            return result

        except (BuildOrchestratorError, SourceScannerError, ToolchainError, FlagBuilderError) as e:
            result.success = False
            result.message = str(e)
            return result
        finally:
            result.build_time = time.time() - start_time

    def clean(self, project_dir: Path) -> List[Path]:
        """
        Remove the objects, dependency files and executable of a project.

        Returns:
            Paths that were removed
        """
        project_dir = Path(project_dir)
        project = SourceScanner(project_dir).scan(resolve_includes=False)

        candidates = []
        for source in project.build_sources() or project.dep_sources:
            obj = object_path_for(source)
            candidates.extend([obj, depfile_path_for(obj)])
        candidates.append(executable_name(project_dir, self.is_win64(project)))

        removed = []
        for rel_path in candidates:
            path = project_dir / rel_path
            if path.is_file():
                path.unlink()
                removed.append(path)
                logger.debug(f"Removed {path}")
        return removed
