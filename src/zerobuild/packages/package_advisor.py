"""Install recommendations for missing headers.

When a build fails, headers that are not present in any system include
directory are probably not installed at all. On Arch (pkgfile) and Debian
(apt-file) the package that would provide the header can be looked up, and
the user gets the exact install command instead of a compiler error.
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from ..subprocess_utils import run_command
from .platform_probe import SKIP_PACKAGES, ArchProbe, DebianProbe, PlatformProbe, split_lines
from .platform_utils import HostPlatform

logger = logging.getLogger(__name__)

MACOS_HEADER_HINTS = {
    "GL/glut.h": """NOTE: On macOS, include GLUT/glut.h instead of GL/glut.h.

Suggested code:

    #ifdef __APPLE__
    #include <GLUT/glut.h>
    #else
    #include <GL/glut.h>
    #endif""",
    "GL/gl.h": """NOTE: On macOS, include OpenGL/gl.h instead of GL/gl.h.

Suggested code:

    #ifdef __APPLE__
    #include <OpenGL/gl.h>
    #else
    #include <GL/gl.h>
    #endif""",
}


@dataclass
class PackageRecommendation:
    """An installable package that provides a missing header."""

    include: str
    package: str
    install_command: str

    def __str__(self) -> str:
        return f'Could not find "{self.include}", install with: {self.install_command}'


class PackageAdvisor:
    """Looks up installable packages for headers missing from the system."""

    def __init__(
        self,
        host: HostPlatform,
        probe: PlatformProbe,
        which: Optional[Callable[[str], Optional[str]]] = None,
    ):
        self.host = host
        self.probe = probe
        self._which = which or shutil.which

    def missing_headers(self, includes: List[str]) -> List[str]:
        """Headers that exist in none of the system include directories."""
        system_dirs = self.probe.system_include_dirs()
        return [
            inc for inc in includes
            if not any((Path(sys_dir) / inc).exists() for sys_dir in system_dirs)
        ]

    def _arch_package(self, include: str) -> str:
        result = run_command(["pkgfile", include], env={"LC_ALL": "C"})
        if not result.ok:
            return ""
        for line in split_lines(result.stdout):
            # "extra/sdl2" -> "sdl2"
            package = line.split("/", 1)[1] if "/" in line else line
            if package and package not in SKIP_PACKAGES:
                return package
        return ""

    def _debian_package(self, include: str) -> str:
        result = run_command(["apt-file", "find", "-Fl", include], env={"LC_ALL": "C"})
        if not result.ok:
            return ""
        lines = split_lines(result.stdout)
        if not lines or lines[0] in SKIP_PACKAGES:
            return ""
        return lines[0]

    def recommend(self, include: str) -> Optional[PackageRecommendation]:
        """Recommend a package for one missing header.

        Returns:
            PackageRecommendation, or None when no file-search tool is
            installed or it names no package
        """
        if isinstance(self.probe, ArchProbe) and self._which("pkgfile"):
            package = self._arch_package(include)
            if package:
                return PackageRecommendation(include, package, f"pacman -S {package}")
        elif isinstance(self.probe, DebianProbe) and self._which("apt-file"):
            package = self._debian_package(include)
            if package:
                return PackageRecommendation(include, package, f"apt install {package}")
        return None

    def advise(self, includes: List[str]) -> Optional[PackageRecommendation]:
        """Return the first install recommendation for the given headers.

        Headers that exist on disk are skipped: they are installed, just not
        mapped to flags.
        """
        for include in self.missing_headers(includes):
            recommendation = self.recommend(include)
            if recommendation is not None:
                logger.debug(f"Recommending {recommendation.package} for {include}")
                return recommendation
        return None

    def hints(self, includes: List[str]) -> List[str]:
        """Platform-specific portability hints for the given headers."""
        if not self.host.is_darwin:
            return []
        return [MACOS_HEADER_HINTS[inc] for inc in includes if inc in MACOS_HEADER_HINTS]
