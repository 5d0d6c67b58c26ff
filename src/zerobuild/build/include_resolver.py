"""
External header discovery.

This module finds the headers a project needs from outside itself:
- Runs each source through the C preprocessor with its #include lines
  disguised, so only includes that survive #if/#ifdef for this platform remain
- Falls back to a plain text scan of <...> includes when cpp is unavailable
- Drops standard library headers, Windows SDK headers (when targeting
  win64) and headers that exist in the project's local include paths
"""

import logging
import re
import shutil
from pathlib import Path
from typing import Callable, FrozenSet, List, Optional

from ..config.conventions import LOCAL_INCLUDE_PATHS
from ..subprocess_utils import run_command

logger = logging.getLogger(__name__)

# Headers provided by the C/C++ standard library or the C runtime
STD_HEADERS: FrozenSet[str] = frozenset({
    # C
    "assert.h", "complex.h", "ctype.h", "errno.h", "fenv.h", "float.h",
    "inttypes.h", "iso646.h", "limits.h", "locale.h", "math.h", "setjmp.h",
    "signal.h", "stdalign.h", "stdarg.h", "stdatomic.h", "stdbool.h",
    "stddef.h", "stdint.h", "stdio.h", "stdlib.h", "stdnoreturn.h",
    "string.h", "tgmath.h", "threads.h", "time.h", "uchar.h", "wchar.h",
    "wctype.h",
    # C++ wrappers of C headers
    "cassert", "cctype", "cerrno", "cfenv", "cfloat", "cinttypes", "climits",
    "clocale", "cmath", "csetjmp", "csignal", "cstdarg", "cstddef", "cstdint",
    "cstdio", "cstdlib", "cstring", "ctime",
    # C++ utilities and language support
    "any", "bit", "bitset", "charconv", "chrono", "compare", "concepts",
    "coroutine", "exception", "format", "functional", "initializer_list",
    "limits", "memory", "memory_resource", "new", "numbers", "optional",
    "ratio", "scoped_allocator", "source_location", "stacktrace",
    "stdexcept", "system_error", "tuple", "type_traits", "typeindex",
    "typeinfo", "utility", "variant", "version",
    # Containers, iterators, algorithms
    "algorithm", "array", "deque", "execution", "forward_list", "iterator",
    "list", "map", "numeric", "queue", "ranges", "set", "span", "stack",
    "unordered_map", "unordered_set", "vector",
    # Numerics
    "complex", "random", "valarray",
    # Strings and I/O
    "codecvt", "fstream", "iomanip", "ios", "iosfwd", "iostream", "istream",
    "locale", "ostream", "regex", "sstream", "streambuf", "string",
    "strstream", "syncstream",
    # Concurrency and filesystem
    "atomic", "barrier", "condition_variable", "filesystem", "future",
    "latch", "mutex", "semaphore", "shared_mutex", "stop_token", "thread",
    # Always-present platform headers
    "windows.h", "dlfcn.h", "pthread.h", "glibc",
})

# Windows SDK headers shipped with the mingw-w64 cross compiler
WIN64_SKIP_HEADERS: FrozenSet[str] = frozenset({
    "windows.h", "windowsx.h", "winsock.h", "winsock2.h", "ws2tcpip.h",
    "mmsystem.h", "shlobj.h", "shellapi.h", "commctrl.h", "commdlg.h",
    "objbase.h", "ole2.h", "direct.h", "io.h", "process.h", "conio.h",
    "tchar.h", "winbase.h", "winuser.h", "wingdi.h", "winreg.h", "d3d9.h",
    "d3d11.h", "dxgi.h", "xinput.h", "dsound.h", "psapi.h", "tlhelp32.h",
})

# Stand-in for "#include" while the preprocessor runs
INCLUDE_MARKER = "@@@@@include"

_INCLUDE_DIRECTIVE = re.compile(r"^#include", re.MULTILINE)
_MARKER_DIRECTIVE = re.compile(r"^" + re.escape(INCLUDE_MARKER), re.MULTILINE)


def parse_include_line(line: str, allow_quoted: bool = True) -> Optional[str]:
    """Extract the header name from an #include line.

    Args:
        line: Source line (leading/trailing whitespace ignored)
        allow_quoted: Also accept the "..." form

    Returns:
        Header name, or None if the line is not an include of that form

    Example:
        >>> parse_include_line('#include <SDL2/SDL.h>')
        'SDL2/SDL.h'
        >>> parse_include_line('#include "game.h"', allow_quoted=False) is None
        True
    """
    line = line.strip()
    if not line.startswith("#include"):
        return None
    start = line.find("<")
    if start >= 0:
        end = line.find(">", start)
        if end >= 0:
            return line[start + 1:end] or None
        return None
    if allow_quoted and line.count('"') >= 2:
        return line.split('"', 2)[1] or None
    return None


def read_source(path: Path) -> Optional[str]:
    """Read a source file as text, or None if it cannot be read."""
    try:
        return Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.debug(f"Cannot read {path}: {e}")
        return None


def scan_text_includes(path: Path) -> List[str]:
    """Collect <...> includes from a file without preprocessing."""
    text = read_source(path)
    if text is None:
        return []
    includes = []
    for line in text.splitlines():
        inc = parse_include_line(line, allow_quoted=False)
        if inc:
            includes.append(inc)
    return includes


class Preprocessor:
    """The external C preprocessor, used to evaluate conditional includes.

    Each #include at the start of a line is replaced by a marker so cpp
    leaves it alone while still expanding #if/#ifdef blocks. Markers that
    survive are turned back into #include lines and parsed.
    """

    def __init__(
        self,
        executable: str = "cpp",
        which: Optional[Callable[[str], Optional[str]]] = None,
    ):
        self.executable = executable
        self._which = which or shutil.which

    def available(self) -> bool:
        return self._which(self.executable) is not None

    def extract_includes(self, path: Path, cwd: Optional[Path] = None) -> Optional[List[str]]:
        """Preprocess a file and list the includes that survive.

        Args:
            path: Source file
            cwd: Directory to run the preprocessor in

        Returns:
            Header names in order, or None when preprocessing is not possible
        """
        text = read_source(path)
        if text is None or not self.available():
            return None

        disguised = _INCLUDE_DIRECTIVE.sub(INCLUDE_MARKER, text)
        result = run_command(
            [self.executable, "-E", "-P", "-w", "-pipe", "-"],
            env={"LC_CTYPE": "C", "LANG": "C"},
            input_text=disguised,
            cwd=str(cwd) if cwd else None,
        )
        if not result.ok:
            logger.debug(f"cpp failed on {path} (exit {result.returncode}), using text scan")
            return None

        restored = _MARKER_DIRECTIVE.sub("#include", result.stdout)
        includes = []
        for line in restored.splitlines():
            inc = parse_include_line(line)
            if inc:
                includes.append(inc)
        return includes


class IncludeResolver:
    """Finds the external headers referenced by a set of source files."""

    def __init__(self, project_dir: Path, preprocessor: Optional[Preprocessor] = None):
        """
        Initialize include resolver.

        Args:
            project_dir: Project root (local include paths are relative to it)
            preprocessor: Preprocessor to use (defaults to cpp on PATH)
        """
        self.project_dir = Path(project_dir)
        self.preprocessor = preprocessor or Preprocessor()

    def is_local(self, include: str) -> bool:
        """Check if a header exists under one of the local include paths."""
        return any((self.project_dir / lp / include).exists() for lp in LOCAL_INCLUDE_PATHS)

    def includes_for(self, source: str) -> List[str]:
        """All includes of one file: preprocessed when possible, scanned otherwise."""
        path = self.project_dir / source
        includes = self.preprocessor.extract_includes(path, cwd=self.project_dir)
        if includes is None:
            includes = scan_text_includes(path)
        return includes

    def is_external(self, include: str, win64: bool = False) -> bool:
        if include in STD_HEADERS:
            return False
        if win64 and include in WIN64_SKIP_HEADERS:
            return False
        return not self.is_local(include)

    def resolve(self, sources: List[str], win64: bool = False) -> List[str]:
        """
        Collect external headers from all sources.

        Args:
            sources: Source paths relative to the project directory
            win64: Targeting 64-bit Windows

        Returns:
            Header names, de-duplicated in first-seen order across all files
        """
        external: List[str] = []
        seen = set()
        for source in sources:
            if not source:
                continue
            for include in self.includes_for(source):
                if include in seen:
                    continue
                seen.add(include)
                if self.is_external(include, win64):
                    external.append(include)
        return external
