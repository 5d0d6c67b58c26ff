"""Compilation Executor.

This module runs single compiler invocations and reports their outcome as
CompileResult values.

Design:
    - Object compiles get -MMD so the compiler writes a .d file next to the
      object for the next staleness check
    - Single-source projects are compiled and linked in one invocation
    - Every command is echoed as "[project] compiler args" with long argument
      lists compacted
    - Failures are returned, not raised; compile_source() is the raising form
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..subprocess_utils import compact_args, run_command
from .flag_builder import BuildFlags


class CompilationError(Exception):
    """Raised when compilation operations fail."""
    pass


@dataclass
class CompileResult:
    """Outcome of one compiler invocation."""

    source: str
    output_path: str
    command: List[str] = field(default_factory=list)
    returncode: int = 0
    output: str = ""

    @property
    def success(self) -> bool:
        return self.returncode == 0


def format_command(command: List[str]) -> str:
    """Shell-style display string for a command."""
    return " ".join(command)


class CompilationExecutor:
    """Executes compiler commands inside the project directory.

    This class handles:
    - Building object-compile and one-shot compile+link argument lists
    - Echoing commands before running them
    - Capturing compiler output
    """

    def __init__(self, project_dir: Path, label: Optional[str] = None, echo: bool = True):
        """Initialize compilation executor.

        Args:
            project_dir: Directory the compiler runs in (paths are relative to it)
            label: Prefix for echoed commands (defaults to the directory name)
            echo: Whether to print commands before running them
        """
        self.project_dir = Path(project_dir)
        self.label = label or self.project_dir.resolve().name
        self.echo = echo

    def announce(self, compiler: str, args: List[str]) -> None:
        if self.echo:
            print(f"[{self.label}] {compiler} {' '.join(compact_args(args))}")

    def run(self, compiler: str, args: List[str], source: str, output_path: str) -> CompileResult:
        self.announce(compiler, args)
        command = [compiler] + args
        result = run_command(command, cwd=str(self.project_dir))
        return CompileResult(
            source=source,
            output_path=output_path,
            command=command,
            returncode=result.returncode,
            output=result.output,
        )

    @staticmethod
    def object_args(flags: BuildFlags, source: str, object_path: str) -> List[str]:
        """Arguments compiling one source to an object, with dependency output."""
        return (
            [flags.std_flag(), "-MMD"]
            + flags.compile_flags
            + flags.defines
            + flags.include_flags()
            + ["-c", "-o", object_path, source]
        )

    @staticmethod
    def one_shot_args(flags: BuildFlags, sources: List[str], output: str) -> List[str]:
        """Arguments compiling and linking sources in a single invocation."""
        return flags.compile_prefix() + ["-o", output] + list(sources) + flags.link_flags

    def compile_object(self, flags: BuildFlags, source: str, object_path: str) -> CompileResult:
        """Compile one source to an object file."""
        return self.run(flags.compiler, self.object_args(flags, source, object_path), source, object_path)

    def compile_and_link(self, flags: BuildFlags, sources: List[str], output: str) -> CompileResult:
        """Compile and link sources directly into an executable."""
        return self.run(flags.compiler, self.one_shot_args(flags, sources, output), sources[0], output)

    def compile_source(self, flags: BuildFlags, source: str, object_path: str) -> Path:
        """Compile one source to an object file.

        Args:
            flags: Assembled build flags
            source: Source path relative to the project directory
            object_path: Object path relative to the project directory

        Returns:
            Absolute path to the object file

        Raises:
            CompilationError: If the source is missing or compilation fails
        """
        if not (self.project_dir / source).exists():
            raise CompilationError(f"Source file not found: {source}")

        result = self.compile_object(flags, source, object_path)
        if not result.success:
            error_msg = f"Compilation failed for {source} (exit {result.returncode})\n"
            error_msg += result.output
            raise CompilationError(error_msg)
        return self.project_dir / object_path
