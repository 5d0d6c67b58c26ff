"""Platform Detection Utilities.

This module detects the host operating system and answers the small set of
OS-specific questions the flag builder needs (hardening support, linker
"as-needed" spelling, C feature-test macro, extra library search paths).

Supported Platforms:
    - Linux
    - macOS (darwin)
    - FreeBSD, OpenBSD, NetBSD
    - Solaris / illumos
    - Windows (MSYS2 / vcpkg)
"""

import platform
import sys
from dataclasses import dataclass
from typing import List, Literal

OSName = Literal[
    "linux",
    "darwin",
    "freebsd",
    "openbsd",
    "netbsd",
    "solaris",
    "windows",
    "other",
]


@dataclass(frozen=True)
class HostPlatform:
    """The operating system Zerobuild is running on."""

    os_name: OSName

    @property
    def is_linux(self) -> bool:
        return self.os_name == "linux"

    @property
    def is_darwin(self) -> bool:
        return self.os_name == "darwin"

    @property
    def is_windows(self) -> bool:
        return self.os_name == "windows"

    @property
    def is_solaris(self) -> bool:
        return self.os_name == "solaris"

    @property
    def is_bsd(self) -> bool:
        return self.os_name in ("freebsd", "openbsd", "netbsd")

    @property
    def c_define(self) -> str:
        """Feature-test macro added to C projects."""
        if self.is_linux:
            return "-D_GNU_SOURCE"
        if self.is_bsd:
            return "-D_BSD_SOURCE"
        if self.is_windows:
            return "-D_WIN32_WINNT=0x0601"
        return "-D_XOPEN_SOURCE=700"

    def extra_lib_paths(self) -> List[str]:
        """Library search flags the OS needs beyond the linker defaults."""
        if self.os_name == "netbsd":
            return ["-L/usr/pkg/lib"]
        if self.os_name == "openbsd":
            return ["-L/usr/local/lib"]
        return []

    def as_needed_flag(self) -> str:
        """Linker flag that drops unused shared libraries, or '' if unsupported."""
        if self.is_solaris:
            return "-Wl,-zignore"
        if self.is_darwin:
            return ""
        return "-Wl,--as-needed"


class PlatformDetector:
    """Detects the current host platform."""

    @staticmethod
    def detect_os() -> OSName:
        """Detect the host operating system.

        Returns:
            Normalized OS name
        """
        system = platform.system().lower()

        if system == "linux":
            return "linux"
        elif system == "darwin":
            return "darwin"
        elif system == "windows" or sys.platform in ("win32", "cygwin", "msys"):
            return "windows"
        elif system.startswith("freebsd"):
            return "freebsd"
        elif system.startswith("openbsd"):
            return "openbsd"
        elif system.startswith("netbsd"):
            return "netbsd"
        elif system in ("sunos", "solaris", "illumos"):
            return "solaris"
        return "other"

    @staticmethod
    def detect() -> HostPlatform:
        """Detect the host platform."""
        return HostPlatform(PlatformDetector.detect_os())
