"""Incremental build planning and execution.

This module decides which translation units are stale and whether the
executable must be relinked, then drives the compiler and linker.

Design:
    - A source is stale when its object is missing, when the source is newer
      than the object, or when any header listed in the object's .d file is
      newer than the object
    - All compiles finish (or fail) before the link decision is made
    - A failed compile stops the build: no further compiles are started
    - The link uses every object, not just the recompiled ones
    - Nothing is persisted between runs except the files themselves
"""

import logging
import os
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import psutil

from ..config.conventions import DEPFILE_SUFFIX, OBJECT_SUFFIX
from .compilation_executor import CompilationExecutor, CompileResult, format_command
from .flag_builder import BuildFlags
from .linker import Linker, LinkResult

logger = logging.getLogger(__name__)


def object_path_for(source: str) -> str:
    """src/game.cpp -> src/game.o"""
    return os.path.splitext(source)[0] + OBJECT_SUFFIX


def depfile_path_for(object_path: str) -> str:
    """src/game.o -> src/game.d"""
    return os.path.splitext(object_path)[0] + DEPFILE_SUFFIX


def parse_depfile(text: str) -> List[str]:
    """Parse make-syntax dependency output from -MMD.

    Backslash-newline continuations are joined, and for each rule the text
    after the first ':' is split on whitespace.

    Example:
        "main.o: main.cpp game.h" -> ['main.cpp', 'game.h']
    """
    joined = text.replace("\\\r\n", " ").replace("\\\n", " ")
    deps: List[str] = []
    for line in joined.splitlines():
        if ":" not in line:
            continue
        deps.extend(line.split(":", 1)[1].split())
    return deps


def default_jobs() -> int:
    """Number of concurrent compiles when the user asks for automatic sizing."""
    return psutil.cpu_count(logical=True) or 1


@dataclass
class PlannerResult:
    """Outcome of planning and executing one build."""

    success: bool
    up_to_date: bool = False
    compiled: List[CompileResult] = field(default_factory=list)
    link: Optional[LinkResult] = None
    failed_source: Optional[str] = None
    message: str = ""

    @property
    def commands_run(self) -> List[str]:
        commands = [format_command(result.command) for result in self.compiled]
        if self.link is not None:
            commands.append(format_command(self.link.command))
        return commands

    @property
    def output(self) -> str:
        text = "".join(result.output for result in self.compiled)
        if self.link is not None:
            text += self.link.output
        return text


class BuildPlanner:
    """Plans and runs incremental builds.

    Paths are relative to project_dir, which is also where every tool runs.
    """

    def __init__(
        self,
        project_dir: Path,
        executor: Optional[CompilationExecutor] = None,
        linker: Optional[Linker] = None,
        jobs: int = 1,
    ):
        """Initialize build planner.

        Args:
            project_dir: Project root directory
            executor: Compilation executor
            linker: Linker
            jobs: Concurrent compiles; 1 is sequential, 0 sizes from the CPU count
        """
        self.project_dir = Path(project_dir)
        self.executor = executor or CompilationExecutor(self.project_dir)
        self.linker = linker or Linker(self.project_dir)
        self.jobs = jobs if jobs > 0 else default_jobs()

    def _mtime(self, rel_path: str) -> Optional[float]:
        try:
            return (self.project_dir / rel_path).stat().st_mtime
        except OSError:
            return None

    def needs_recompile(self, source: str, object_path: str) -> bool:
        """Check whether an object is stale.

        Args:
            source: Source path
            object_path: Object path

        Returns:
            True if the source must be compiled
        """
        src_mtime = self._mtime(source)
        obj_mtime = self._mtime(object_path)
        if src_mtime is None or obj_mtime is None:
            return True
        if src_mtime > obj_mtime:
            return True

        depfile = self.project_dir / depfile_path_for(object_path)
        try:
            text = depfile.read_text(encoding="utf-8", errors="replace")
        except OSError:
            # No .d file: the source check is all there is
            return False

        for dep in parse_depfile(text):
            dep_mtime = self._mtime(dep)
            if dep_mtime is not None and dep_mtime > obj_mtime:
                logger.debug(f"{object_path} is older than {dep}")
                return True
        return False

    def stale_sources(self, sources: List[str]) -> List[str]:
        """Sources whose objects need rebuilding, in source order."""
        return [src for src in sources if self.needs_recompile(src, object_path_for(src))]

    def _compile_sequential(self, flags: BuildFlags, stale: List[str]) -> List[CompileResult]:
        results = []
        for source in stale:
            result = self.executor.compile_object(flags, source, object_path_for(source))
            results.append(result)
            if not result.success:
                break
        return results

    def _compile_parallel(self, flags: BuildFlags, stale: List[str]) -> List[CompileResult]:
        results: Dict[str, CompileResult] = {}
        pending = list(stale)
        running: Dict[Future, str] = {}
        failed = False

        with ThreadPoolExecutor(max_workers=self.jobs, thread_name_prefix="compile") as pool:
            while pending or running:
                while pending and not failed and len(running) < self.jobs:
                    source = pending.pop(0)
                    future = pool.submit(self.executor.compile_object, flags, source, object_path_for(source))
                    running[future] = source
                if not running:
                    break
                done, _ = wait(running, return_when=FIRST_COMPLETED)
                for future in done:
                    source = running.pop(future)
                    result = future.result()
                    results[source] = result
                    if not result.success:
                        failed = True

        return [results[src] for src in stale if src in results]

    def compile_stale(self, flags: BuildFlags, stale: List[str]) -> List[CompileResult]:
        """Compile stale sources, stopping at the first failure."""
        if self.jobs > 1 and len(stale) > 1:
            return self._compile_parallel(flags, stale)
        return self._compile_sequential(flags, stale)

    def build(self, flags: BuildFlags, sources: List[str], output: str) -> PlannerResult:
        """Build an executable from sources.

        Args:
            flags: Assembled build flags
            sources: Main source first, then dependency sources
            output: Executable name

        Returns:
            PlannerResult
        """
        if len(sources) == 1:
            result = self.executor.compile_and_link(flags, sources, output)
            return PlannerResult(
                success=result.success,
                compiled=[result],
                failed_source=None if result.success else sources[0],
                message="" if result.success else "compilation failed",
            )

        objects = [object_path_for(src) for src in sources]
        stale = self.stale_sources(sources)
        compiled = self.compile_stale(flags, stale)

        failures = [result for result in compiled if not result.success]
        if failures:
            return PlannerResult(
                success=False,
                compiled=compiled,
                failed_source=failures[0].source,
                message=f"compiling {failures[0].source} failed",
            )

        if not stale and (self.project_dir / output).exists():
            return PlannerResult(success=True, up_to_date=True, message="up to date")

        link = self.linker.link(flags, objects, output)
        return PlannerResult(
            success=link.success,
            compiled=compiled,
            link=link,
            message="" if link.success else "linking failed",
        )
