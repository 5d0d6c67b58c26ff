"""
Environment variable overrides.

Zerobuild honours the usual compiler environment variables. They are read
through EnvironmentOverrides rather than os.environ directly so that tests
and embedding callers can supply their own mapping.
"""

import os
import shlex
from typing import List, Mapping, Optional


class EnvironmentOverrides:
    """Typed access to the environment variables Zerobuild honours.

    Variables:
        CC / CXX: Preferred C / C++ compiler (looked up on PATH)
        CFLAGS / CXXFLAGS: Appended to compile flags (by language)
        LDFLAGS: Appended to link flags
        VCPKG_ROOT / VCPKG_DEFAULT_TRIPLET: vcpkg installation
        MSYSTEM / MSYSTEM_PREFIX: MSYS2 shell environment
    """

    DEFAULT_VCPKG_TRIPLET = "x64-windows"

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self._environ = os.environ if environ is None else environ

    def get(self, name: str) -> str:
        """Return a variable's value, or an empty string when unset."""
        return self._environ.get(name, "").strip()

    @staticmethod
    def split_flags(value: str) -> List[str]:
        """Split a flag string into individual flags.

        Example:
            >>> EnvironmentOverrides.split_flags('-DTEST_FLAG -march=native')
            ['-DTEST_FLAG', '-march=native']
        """
        if not value:
            return []
        try:
            return shlex.split(value)
        except ValueError:
            return value.split()

    @property
    def cc(self) -> str:
        return self.get("CC")

    @property
    def cxx(self) -> str:
        return self.get("CXX")

    def compiler_override(self, is_c: bool) -> str:
        """CC for C projects, CXX for C++ projects."""
        return self.cc if is_c else self.cxx

    def compile_flags(self, is_c: bool) -> List[str]:
        """User compile flags: CFLAGS for C projects, CXXFLAGS otherwise."""
        return self.split_flags(self.get("CFLAGS" if is_c else "CXXFLAGS"))

    def link_flags(self) -> List[str]:
        return self.split_flags(self.get("LDFLAGS"))

    @property
    def vcpkg_root(self) -> str:
        return self.get("VCPKG_ROOT")

    @property
    def vcpkg_triplet(self) -> str:
        return self.get("VCPKG_DEFAULT_TRIPLET") or self.DEFAULT_VCPKG_TRIPLET

    @property
    def msystem(self) -> str:
        return self.get("MSYSTEM")

    @property
    def msystem_prefix(self) -> str:
        return self.get("MSYSTEM_PREFIX")
