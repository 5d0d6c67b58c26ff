"""Subprocess utilities for running external tools.

Every compiler, pkg-config and package-manager invocation goes through
run_command(), which never raises for a failing or missing tool. Callers get a
CommandResult back and decide for themselves whether a non-zero exit is an
error or just a signal to try the next strategy.
"""

import _thread
import os
import subprocess
import sys
from dataclasses import dataclass
from typing import List, Mapping, Optional

# Conventional shell status for "command not found"
COMMAND_NOT_FOUND = 127


@dataclass
class CommandResult:
    """Exit status and captured output of one child process."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Combined stdout and stderr, in that order."""
        return self.stdout + self.stderr


def get_subprocess_creation_flags() -> int:
    """Get platform-specific subprocess creation flags.

    Returns:
        subprocess.CREATE_NO_WINDOW on Windows, 0 elsewhere
    """
    if sys.platform == "win32":
        return subprocess.CREATE_NO_WINDOW
    return 0


def run_command(
    cmd: List[str],
    env: Optional[Mapping[str, str]] = None,
    input_text: Optional[str] = None,
    cwd: Optional[str] = None,
) -> CommandResult:
    """Run a command to completion and capture its output.

    Args:
        cmd: Command and arguments
        env: Extra environment variables, layered over os.environ
        input_text: Text fed to the child's stdin (stdin is /dev/null otherwise)
        cwd: Working directory for the child

    Returns:
        CommandResult. A missing executable yields returncode 127,
        any other OS-level failure yields returncode -1.
    """
    kwargs = {}
    flags = get_subprocess_creation_flags()
    if flags:
        kwargs["creationflags"] = flags

    child_env = None
    if env:
        child_env = dict(os.environ)
        child_env.update(env)

    try:
        completed = subprocess.run(
            cmd,
            input=input_text,
            stdin=None if input_text is not None else subprocess.DEVNULL,
            capture_output=True,
            encoding="utf-8",
            errors="replace",
            env=child_env,
            cwd=cwd,
            check=False,
            **kwargs,
        )
    except KeyboardInterrupt:
        _thread.interrupt_main()
        raise
    except FileNotFoundError as e:
        return CommandResult(returncode=COMMAND_NOT_FOUND, stdout="", stderr=str(e))
    except OSError as e:
        return CommandResult(returncode=-1, stdout="", stderr=str(e))

    return CommandResult(
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )


def compact_args(args: List[str]) -> List[str]:
    """Shorten a long argument list for display.

    Lists of more than 20 arguments are reduced to the first 10, an ellipsis
    and the last 5.
    """
    if len(args) <= 20:
        return list(args)
    return list(args[:10]) + ["..."] + list(args[-5:])
