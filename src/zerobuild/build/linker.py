"""
Linker wrapper for producing the project executable.

The compiler driver links: every object file of the project, followed by
the assembled link flags, in that order.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..subprocess_utils import compact_args, run_command
from .flag_builder import BuildFlags


@dataclass
class LinkResult:
    """Result of linking operation."""

    success: bool
    executable: Optional[Path]
    command: List[str] = field(default_factory=list)
    stdout: str = ""
    stderr: str = ""

    @property
    def output(self) -> str:
        return self.stdout + self.stderr


class Linker:
    """
    Links object files into the project executable.
    """

    def __init__(self, project_dir: Path, label: Optional[str] = None, echo: bool = True):
        """
        Initialize linker.

        Args:
            project_dir: Directory the linker runs in
            label: Prefix for echoed commands (defaults to the directory name)
            echo: Whether to print the link command before running it
        """
        self.project_dir = Path(project_dir)
        self.label = label or self.project_dir.resolve().name
        self.echo = echo

    @staticmethod
    def link_args(flags: BuildFlags, objects: List[str], output: str) -> List[str]:
        return ["-o", output] + list(objects) + flags.link_flags

    def link(self, flags: BuildFlags, objects: List[str], output: str) -> LinkResult:
        """
        Link object files into an executable.

        Args:
            flags: Assembled build flags (compiler and link flags)
            objects: Object files relative to the project directory
            output: Executable name relative to the project directory

        Returns:
            LinkResult with the captured linker output
        """
        args = self.link_args(flags, objects, output)
        if self.echo:
            print(f"[{self.label}] {flags.compiler} {' '.join(compact_args(args))}")

        command = [flags.compiler] + args
        result = run_command(command, cwd=str(self.project_dir))
        return LinkResult(
            success=result.ok,
            executable=self.project_dir / output if result.ok else None,
            command=command,
            stdout=result.stdout,
            stderr=result.stderr,
        )

    def link_executable(self, flags: BuildFlags, objects: List[str], output: str) -> Path:
        """
        Link object files, raising on failure.

        Raises:
            LinkerError: If an object file is missing or the link fails
        """
        missing = [obj for obj in objects if not (self.project_dir / obj).exists()]
        if missing:
            raise LinkerError(f"Object files not found: {', '.join(missing)}")

        result = self.link(flags, objects, output)
        if not result.success or result.executable is None:
            raise LinkerError(f"Linking {output} failed\n{result.output}")
        return result.executable


class LinkerError(Exception):
    """Raised when linking fails."""
    pass
