"""Header to compiler/linker flag resolution.

PackageMapper turns external header names (``SDL2/SDL.h``, ``GL/glew.h``,
``boost/asio.hpp``) into the flags needed to compile and link against them.
Resolution is tiered, and an earlier tier's result for a header makes the
later tiers skip that header:

    1. Static table: well-known header -> pkg-config package name
    2. pkg-config query for that name
    3. Special-case rules (frameworks, win64 import libraries, threads, Qt,
       GLM, GTK, Vulkan, direct library probing)
    4. Platform package manager (owner lookup -> .pc files -> pkg-config),
       through the injected PlatformProbe

Tier 3 runs for every header regardless of tier 2, since its rules add flags
pkg-config does not know about (frameworks, import libraries).
"""

import logging
import os
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set

from ..config.environment import EnvironmentOverrides
from .pc_file_cache import PcFileCache
from .pkg_config import FlagSet, PkgConfig
from .platform_probe import PlatformProbe, detect_platform_probe
from .platform_utils import HostPlatform

logger = logging.getLogger(__name__)

# Exact (lower-cased) header -> pkg-config package
STATIC_PACKAGES: Dict[str, str] = {
    "sdl2/sdl.h": "sdl2",
    "sdl2/sdl_image.h": "SDL2_image",
    "sdl2/sdl_mixer.h": "SDL2_mixer",
    "sdl2/sdl_ttf.h": "SDL2_ttf",
    "sdl2/sdl_net.h": "SDL2_net",
    "gtk/gtk.h": "gtk4",
    "gl/gl.h": "gl",
    "gl/glew.h": "glew",
    "gl/glut.h": "glu",
    "gl/freeglut.h": "freeglut",
    "glfw/glfw3.h": "glfw3",
    "al/al.h": "openal",
    "al/alc.h": "openal",
    "vulkan/vulkan.h": "vulkan",
    "x11/xlib.h": "x11",
    "x11/xutil.h": "x11",
    "libconfig.h++": "libconfig++",
    "libconfig.h": "libconfig",
    "fcgiapp.h": "fcgi",
    "pipewire/pipewire.h": "libpipewire-0.3",
    "rtaudio/rtaudio.h": "rtaudio",
    "raylib.h": "raylib",
}

# Headers that pull in pthreads/libdl
THREAD_HEADERS = {"thread", "mutex", "future", "condition_variable", "pthread.h", "new", "dlfcn.h"}

# Library directories probed when neither frameworks nor pkg-config apply
LIB_PROBE_DIRS = ["/usr/lib", "/usr/lib/x86_64-linux-gnu", "/usr/local/lib", "/usr/pkg/lib"]

FRAMEWORKS_DIR = "/Library/Frameworks"
SYSTEM_FRAMEWORKS_DIR = "/System/Library/Frameworks"


def package_name_for_include(include: str) -> str:
    """Guess the pkg-config package name for a header.

    Args:
        include: Header name as written in the #include directive

    Returns:
        Package name, or '' when the header should not be looked up by name

    Example:
        >>> package_name_for_include("SFML/Graphics.hpp")
        'sfml-graphics'
        >>> package_name_for_include("QApplication")
        ''
    """
    lower = include.lower()

    if lower in STATIC_PACKAGES:
        return STATIC_PACKAGES[lower]

    if lower.startswith("sfml/"):
        return "sfml-" + os.path.splitext(os.path.basename(include))[0].lower()

    if lower.startswith("sdl2/sdl_"):
        return sdl2_sublibrary(include)

    if lower.startswith("glm/"):
        return "glm"

    # Qt and Boost have dedicated flags
    if include.startswith("Q") or lower.startswith("boost/"):
        return ""

    if "/" in include:
        return include.split("/")[0]

    return ""


def sdl2_sublibrary(include: str) -> str:
    """SDL2/SDL_image.h -> SDL2_image"""
    return os.path.splitext("SDL2_" + include[len("sdl2/sdl_"):])[0]


class PackageMapper:
    """Resolves external headers to flags through the resolution tiers.

    The mapper owns no global state: the .pc file cache lives in the
    injected probe, and everything else is recomputed per call.
    """

    def __init__(
        self,
        host: HostPlatform,
        pkg_config: PkgConfig,
        probe: PlatformProbe,
        exists: Optional[Callable[[str], bool]] = None,
    ):
        """Initialize package mapper.

        Args:
            host: Host platform
            pkg_config: pkg-config wrapper
            probe: Package-manager probe for the host
            exists: Filesystem existence check (defaults to os.path.exists)
        """
        self.host = host
        self.pkg_config = pkg_config
        self.probe = probe
        self._exists = exists or os.path.exists

    # -- tiers 1 and 2 ----------------------------------------------------

    def resolve_static(self, include: str) -> str:
        """Static table lookup followed by a pkg-config query."""
        package = package_name_for_include(include)
        if not package:
            return ""
        return self.pkg_config.flags(package)

    # -- tier 3 -------------------------------------------------------------

    def _probe_lib(self, lib_file: str) -> bool:
        return any(self._exists(os.path.join(d, lib_file)) for d in LIB_PROBE_DIRS)

    def _merge_pkg(self, flags: FlagSet, package: str) -> bool:
        result = self.pkg_config.flags(package)
        if result:
            flags.merge(result)
        return bool(result)

    def _add_opengl(self, flags: FlagSet, win64: bool, has_frameworks: bool) -> None:
        if has_frameworks and not win64:
            flags.add_compile("-I/usr/local/include")
            flags.add_framework("OpenGL")
        elif win64:
            flags.add_link("-lopengl32")
        elif self.pkg_config.available():
            self._merge_pkg(flags, "gl")
        elif self._probe_lib("libGL.so"):
            flags.add_link("-lGL")

    def special_flags(self, include: str, win64: bool) -> FlagSet:
        """Flags from the special-case rules for one header.

        Args:
            include: Header name
            win64: Targeting 64-bit Windows

        Returns:
            FlagSet, empty when no rule applies
        """
        flags = FlagSet()
        lower = include.lower()
        has_pkg = self.pkg_config.available()
        has_frameworks = self._exists(FRAMEWORKS_DIR)

        if include in THREAD_HEADERS:
            flags.add_link("-ldl", "-pthread", "-lpthread")

        if lower.startswith("sfml/"):
            if has_frameworks and not win64:
                flags.add_compile("-I/usr/local/include")
                flags.add_framework("OpenGL")
            elif win64:
                flags.add_link("-lopengl32")
            if has_pkg:
                self._merge_pkg(flags, "gl")

        if lower.startswith(("gl/", "opengl/", "glut/", "glfw/")) or "opengl" in lower:
            self._add_opengl(flags, win64, has_frameworks)

        if lower.endswith(("/glut.h", "/freeglut.h")) or lower.startswith("glut/"):
            if has_frameworks and not win64:
                flags.add_link("-framework", "GLUT")
            elif win64:
                flags.add_link("-lglu32")
            elif has_pkg:
                if not self._merge_pkg(flags, "glu"):
                    self._merge_pkg(flags, "freeglut")
            elif self._probe_lib("libglut.so"):
                flags.add_link("-lglut")

        if lower.endswith("/glew.h"):
            if win64:
                flags.add_link("-lglew32")
            if has_pkg:
                self._merge_pkg(flags, "glew")

        if lower.startswith(("al/", "openal")) or "/al.h" in lower:
            if self._exists(SYSTEM_FRAMEWORKS_DIR) and not win64:
                flags.add_compile(f"-I{SYSTEM_FRAMEWORKS_DIR}/OpenAL.framework/Headers")
                flags.add_framework("OpenAL", SYSTEM_FRAMEWORKS_DIR)
            elif win64:
                flags.add_link("-lopenal32")
            elif has_pkg:
                self._merge_pkg(flags, "openal")
            elif self._probe_lib("libopenal.so"):
                flags.add_link("-lopenal")

        if lower == "gtk/gtk.h":
            flags.add_link("-Wl,-export-dynamic")

        if lower.startswith("sdl2/sdl_") and has_pkg:
            self._merge_pkg(flags, sdl2_sublibrary(include))

        if lower.startswith("vulkan/"):
            if has_pkg:
                self._merge_pkg(flags, "vulkan")
            else:
                flags.add_link("-lvulkan")

        if include.startswith("Q"):
            flags.add_compile("-Wno-class-memaccess", "-Wno-pedantic")
            for sys_dir in self.probe.system_include_dirs():
                qt_dir = Path(sys_dir) / "qt"
                if self._exists(str(qt_dir)):
                    flags.add_compile(f"-I{qt_dir}")

        if lower.startswith("glm/"):
            flags.add_compile("-Wno-shadow")

        # Any header named after an installed framework
        if self.host.is_darwin and has_frameworks and not win64:
            first_word = lower.split("/")[0]
            if self._exists(f"{FRAMEWORKS_DIR}/{first_word}.framework"):
                flags.add_compile("-I/usr/local/include")
                flags.add_framework(first_word)

        return flags

    # -- tier 4 -------------------------------------------------------------

    def resolve_with_probe(self, include: str, system_dirs: Optional[List[Path]] = None) -> str:
        """Resolve a header through the platform package manager.

        Tries a direct join with each system include directory first, then a
        bounded recursive search.

        Args:
            include: Header name
            system_dirs: System include directories (defaults to the probe's)

        Returns:
            Flag string, or ''
        """
        if system_dirs is None:
            system_dirs = self.probe.system_include_dirs()

        for sys_dir in system_dirs:
            flags = self.probe.include_path_to_flags(Path(sys_dir) / include)
            if flags:
                return flags

        for sys_dir in system_dirs:
            found = self.probe.find_include_file(Path(sys_dir), include)
            if found is None:
                continue
            flags = self.probe.include_path_to_flags(found)
            if flags:
                return flags
        return ""

    # -- cascade --------------------------------------------------------------

    def resolve(self, include: str, win64: bool = False) -> FlagSet:
        """Resolve a single header through every tier."""
        return self.resolve_all([include], win64=win64)

    def resolve_all(self, includes: List[str], win64: bool = False) -> FlagSet:
        """Resolve a list of headers, merging everything into one FlagSet.

        Each package name is queried once in the pkg-config pass, even when
        several headers map to it. Headers resolved by tiers 1-3 never reach
        the package manager.

        Args:
            includes: External header names, in first-seen order
            win64: Targeting 64-bit Windows

        Returns:
            Merged FlagSet
        """
        result = FlagSet()
        resolved: Set[str] = set()

        if self.pkg_config.available():
            # package -> whether pkg-config produced flags for it
            queried: Dict[str, bool] = {}
            for include in includes:
                package = package_name_for_include(include)
                if not package:
                    continue
                if package not in queried:
                    flags = self.pkg_config.flags(package)
                    queried[package] = bool(flags)
                    if flags:
                        logger.debug(f"{include}: pkg-config {package}")
                        result.merge(flags)
                if queried[package]:
                    resolved.add(include)

        for include in includes:
            special = self.special_flags(include, win64)
            if special:
                logger.debug(f"{include}: special-case rule")
                result.update(special)
                resolved.add(include)

        # The package manager tier reports through pkg-config
        unresolved = [inc for inc in includes if inc not in resolved]
        if unresolved and self.pkg_config.available():
            system_dirs = self.probe.system_include_dirs()
            for include in unresolved:
                flags = self.resolve_with_probe(include, system_dirs)
                if flags:
                    logger.debug(f"{include}: {self.probe.name} package manager")
                    result.merge(flags)
                else:
                    logger.debug(f"{include}: no flags found")

        return result


def create_package_mapper(
    host: HostPlatform,
    machine: str = "",
    env: Optional[EnvironmentOverrides] = None,
    compiler_include_dirs: Optional[List[Path]] = None,
) -> PackageMapper:
    """Wire up a PackageMapper with the probe for this host.

    Args:
        host: Host platform
        machine: Compiler target triplet, for triplet include/lib dirs
        env: Environment overrides
        compiler_include_dirs: Directories the native compiler searches

    Returns:
        PackageMapper with a fresh .pc file cache
    """
    pkg_config = PkgConfig()
    probe = detect_platform_probe(
        host,
        pkg_config,
        PcFileCache(),
        machine=machine,
        env=env,
        compiler_include_dirs=compiler_include_dirs,
    )
    logger.debug(f"Package manager probe: {probe.name}")
    return PackageMapper(host, pkg_config, probe)
