"""pkg-config wrapper and flag merging.

Design:
    - PkgConfig runs ``pkg-config --cflags --libs <name>`` and returns the raw
      flag string ('' when the tool or the package is missing)
    - FlagSet splits flag strings into compile and link flags using one rule
      everywhere: tokens starting with -l, -L or -Wl, are link flags
    - FlagSet insertion is idempotent and keeps first-seen order
    - ``-framework <Name>`` is one unit: deduplicated as a pair and always
      routed to the link flags
"""

import logging
import shutil
from typing import Callable, Iterable, List, Optional, Sequence

from ..subprocess_utils import run_command

logger = logging.getLogger(__name__)

LINK_FLAG_PREFIXES = ("-l", "-L", "-Wl,")

# Flags whose value is the following token
PAIRED_FLAGS = ("-framework",)


def is_link_flag(token: str) -> bool:
    """Check if a flag token belongs on the link line."""
    return token.startswith(LINK_FLAG_PREFIXES) or token in PAIRED_FLAGS


def _has_pair(flags: Sequence[str], first: str, second: str) -> bool:
    return any(flags[i] == first and flags[i + 1] == second for i in range(len(flags) - 1))


def append_unique(flags: List[str], *tokens: str) -> List[str]:
    """Append tokens that are not already present, preserving order.

    Example:
        >>> append_unique(["-lGL"], "-lGL", "-framework", "OpenGL")
        ['-lGL', '-framework', 'OpenGL']
    """
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token in PAIRED_FLAGS and i + 1 < len(tokens):
            value = tokens[i + 1]
            if not _has_pair(flags, token, value):
                flags.extend([token, value])
            i += 2
            continue
        if token not in flags:
            flags.append(token)
        i += 1
    return flags


class FlagSet:
    """Ordered, duplicate-free compile and link flags."""

    def __init__(self):
        self.compile_flags: List[str] = []
        self.link_flags: List[str] = []

    def __bool__(self) -> bool:
        return bool(self.compile_flags or self.link_flags)

    def __repr__(self) -> str:
        return f"FlagSet(compile_flags={self.compile_flags!r}, link_flags={self.link_flags!r})"

    def add_compile(self, *tokens: str) -> None:
        append_unique(self.compile_flags, *tokens)

    def add_link(self, *tokens: str) -> None:
        append_unique(self.link_flags, *tokens)

    def add_framework(self, name: str, search_dir: str = "/Library/Frameworks") -> None:
        """Link a macOS framework."""
        self.add_link(f"-F{search_dir}", "-framework", name)

    def merge(self, flags: str) -> None:
        """Split a flag string and route each token by the link-flag rule."""
        self.merge_tokens(flags.split())

    def merge_tokens(self, tokens: Iterable[str]) -> None:
        tokens = list(tokens)
        i = 0
        while i < len(tokens):
            token = tokens[i]
            if token in PAIRED_FLAGS and i + 1 < len(tokens):
                self.add_link(token, tokens[i + 1])
                i += 2
                continue
            if is_link_flag(token):
                self.add_link(token)
            else:
                self.add_compile(token)
            i += 1

    def update(self, other: "FlagSet") -> None:
        """Merge another FlagSet into this one."""
        self.add_compile(*other.compile_flags)
        self.add_link(*other.link_flags)

    def as_string(self) -> str:
        return " ".join(self.compile_flags + self.link_flags)


class PkgConfig:
    """Runs pkg-config queries.

    Availability is checked once per instance. When pkg-config is not
    installed every query returns an empty string.
    """

    def __init__(self, which: Optional[Callable[[str], Optional[str]]] = None):
        self._which = which or shutil.which
        self._available: Optional[bool] = None

    def available(self) -> bool:
        """Check if pkg-config is on PATH."""
        if self._available is None:
            self._available = self._which("pkg-config") is not None
            if not self._available:
                logger.debug("pkg-config not found, pkg-config tiers disabled")
        return self._available

    def flags(self, package: str, pkg_config_path: Optional[str] = None) -> str:
        """Get compile and link flags for a package.

        Args:
            package: pkg-config package name
            pkg_config_path: Value for PKG_CONFIG_PATH during this query

        Returns:
            Flag string, or '' if pkg-config is missing or the query fails
        """
        if not package or not self.available():
            return ""
        env = {"PKG_CONFIG_PATH": pkg_config_path} if pkg_config_path else None
        result = run_command(["pkg-config", "--cflags", "--libs", package], env=env)
        if not result.ok:
            logger.debug(f"pkg-config has no package '{package}'")
            return ""
        return result.stdout.strip()

    def flag_set(self, package: str, pkg_config_path: Optional[str] = None) -> FlagSet:
        """Like flags(), split into a FlagSet."""
        flag_set = FlagSet()
        flag_set.merge(self.flags(package, pkg_config_path))
        return flag_set
