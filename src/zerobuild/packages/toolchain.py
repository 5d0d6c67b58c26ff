"""Compiler discovery and capability probing.

This module locates a usable C/C++ compiler on the host and asks it a few
questions: which language standards it accepts, which target triplet it
builds for, and which system include directories it searches.

Compiler Selection Order:
    1. zapcc++ (when requested and installed)
    2. MinGW-w64 cross compiler (when targeting win64)
    3. Native compiler: clang first when requested, then CC/CXX from the
       environment, then the usual gcc-first list
"""

import logging
import os
import shutil
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..config.environment import EnvironmentOverrides
from ..subprocess_utils import run_command

logger = logging.getLogger(__name__)


class ToolchainError(Exception):
    """Raised when toolchain operations fail."""

    pass


class NoCompilerFoundError(ToolchainError):
    """Raised when no usable C/C++ compiler can be found."""

    pass


# C++ standards, newest first
CXX_STANDARDS = ["c++23", "c++2b", "c++20", "c++2a", "c++17", "c++14", "c++11"]
DEFAULT_CXX_STANDARD = "c++17"

NATIVE_C_COMPILERS = ["gcc", "cc", "clang"]
NATIVE_CXX_COMPILERS = ["g++", "clang++", "c++"]
WIN64_C_COMPILERS = ["x86_64-w64-mingw32-gcc", "i686-w64-mingw32-gcc"]
WIN64_CXX_COMPILERS = ["x86_64-w64-mingw32-g++", "i686-w64-mingw32-g++"]
ZAPCC = "zapcc++"


def is_compiler_gcc(compiler: str) -> bool:
    """Check if a compiler path looks like gcc/g++.

    A match must not be preceded by a letter, so "x86_64-w64-mingw32-g++"
    counts as gcc while a hypothetical "fooggcc" does not.
    """
    base = os.path.basename(compiler)
    for needle in ("g++", "gcc"):
        idx = base.find(needle)
        if idx < 0:
            continue
        if idx == 0 or not base[idx - 1].isalpha():
            return True
    return False


def is_compiler_clang(compiler: str) -> bool:
    """Check if a compiler path looks like clang/clang++."""
    return "clang" in os.path.basename(compiler)


class CompilerLocator:
    """Finds compilers on PATH and probes their capabilities.

    Probe results are memoized per instance, so asking for the target
    triplet or the best standard repeatedly costs one child process.
    """

    def __init__(
        self,
        env: Optional[EnvironmentOverrides] = None,
        which: Optional[Callable[[str], Optional[str]]] = None,
    ):
        """Initialize compiler locator.

        Args:
            env: Environment overrides (CC/CXX)
            which: PATH lookup function (defaults to shutil.which)
        """
        self.env = env or EnvironmentOverrides()
        self._which = which or shutil.which
        self._std_cache: Dict[str, str] = {}
        self._machine_cache: Dict[str, str] = {}

    def which(self, name: str) -> Optional[str]:
        """Look up an executable on PATH."""
        return self._which(name)

    def _first_found(self, names: List[str]) -> Optional[str]:
        for name in names:
            path = self.which(name)
            if path:
                return path
        return None

    def find_native(self, use_clang: bool, is_c: bool) -> Optional[str]:
        """Find a native compiler.

        Args:
            use_clang: Try clang/clang++ before anything else
            is_c: Look for a C compiler instead of a C++ compiler

        Returns:
            Path to the compiler, or None
        """
        if use_clang:
            path = self.which("clang" if is_c else "clang++")
            if path:
                return path

        override = self.env.compiler_override(is_c)
        if override:
            path = self.which(override)
            if path:
                return path
            logger.warning(f"{'CC' if is_c else 'CXX'}={override} not found on PATH, ignoring")

        return self._first_found(NATIVE_C_COMPILERS if is_c else NATIVE_CXX_COMPILERS)

    def find_win64(self, is_c: bool) -> Optional[str]:
        """Find a MinGW-w64 cross compiler."""
        return self._first_found(WIN64_C_COMPILERS if is_c else WIN64_CXX_COMPILERS)

    def select(self, is_c: bool, win64: bool, use_clang: bool = False, zap: bool = False) -> str:
        """Select the compiler for a build.

        Args:
            is_c: The project is a C project
            win64: Targeting 64-bit Windows
            use_clang: Prefer clang
            zap: Prefer zapcc++

        Returns:
            Path to the selected compiler

        Raises:
            NoCompilerFoundError: If no compiler is available
        """
        compiler = None
        if zap:
            compiler = self.which(ZAPCC)
            if not compiler:
                logger.info("zapcc++ requested but not found, falling back")
        if not compiler and win64:
            compiler = self.find_win64(is_c)
        if not compiler:
            compiler = self.find_native(use_clang, is_c)
        if not compiler:
            raise NoCompilerFoundError("no C/C++ compiler found")
        return compiler

    def supports_std(self, compiler: str, std: str) -> bool:
        """Check if the compiler accepts -std=<std> with a syntax-only trial compile."""
        result = run_command(
            [compiler, f"-std={std}", "-x", "c++", "-fsyntax-only", "-"],
            input_text="int main(){}\n",
        )
        return result.ok

    def best_cxx_standard(self, compiler: str) -> str:
        """Return the newest C++ standard the compiler accepts.

        Falls back to c++17 when no probe succeeds.
        """
        if compiler in self._std_cache:
            return self._std_cache[compiler]

        best = DEFAULT_CXX_STANDARD
        for std in CXX_STANDARDS:
            if self.supports_std(compiler, std):
                best = std
                break
        else:
            logger.debug(f"No -std probe succeeded for {compiler}, using {best}")

        self._std_cache[compiler] = best
        return best

    def dumpmachine(self, compiler: Optional[str]) -> str:
        """Return the compiler's target triplet (e.g. x86_64-linux-gnu), or ''."""
        if not compiler:
            return ""
        if compiler not in self._machine_cache:
            result = run_command([compiler, "-dumpmachine"])
            self._machine_cache[compiler] = result.stdout.strip() if result.ok else ""
        return self._machine_cache[compiler]

    def compiler_includes(self, compiler: Optional[str]) -> List[Path]:
        """Return the system include directories the compiler searches.

        Parses the verbose search list printed by ``<compiler> -E -Wp,-v -``.
        """
        if not compiler:
            return []
        result = run_command([compiler, "-E", "-Wp,-v", "-"], input_text="")
        dirs = []
        for line in result.output.splitlines():
            if not line.startswith(" /"):
                continue
            candidate = Path(line.strip())
            if candidate.exists():
                dirs.append(candidate)
        return dirs
