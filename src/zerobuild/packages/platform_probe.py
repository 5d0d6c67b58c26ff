"""Platform package-manager probes.

When a header is not covered by the static table or a special-case rule, the
only reliable way to find its flags is to ask the system who installed it.
Each supported package manager is one PlatformProbe variant:

    Arch      pacman -Qo / pacman -Ql
    Debian    dpkg-query -S / dpkg-query -L
    FreeBSD   pkg which / pkg list
    OpenBSD   pkg_info -E / pkg_info -L
    Homebrew  Cellar path inference / brew ls --verbose
    MSYS2     pacman -Qo / pacman -Ql (with Windows <-> MSYS2 path mapping)
    VCPKG     installed-tree relative path inference
    Generic   library probing by path-derived name guesses

A probe is selected once per run by detect_platform_probe() and injected into
the PackageMapper. All probes degrade to '' when their tools are missing.
"""

import logging
import os
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, List, Optional

from ..config.environment import EnvironmentOverrides
from ..subprocess_utils import run_command
from .pc_file_cache import PcFileCache
from .pkg_config import PkgConfig
from .platform_utils import HostPlatform

logger = logging.getLogger(__name__)

# Packages never used as the owner of a header
SKIP_PACKAGES = {"glibc", "gcc", "wine"}

# .pc files that describe header-only packages: never fall back to -l<name>
HEADER_ONLY_PC_NAMES = {"glm", "libglvnd", "RapidJSON"}

# Packages known to ship no .pc files, not worth a warning
QUIET_PACKAGES = {"boost", "qt5-base", "qt6-base"}

# Bounded depth for the recursive header search
FIND_MAX_DEPTH = 3

C_LOCALE = {"LC_ALL": "C", "LANG": "C"}


def split_lines(text: str) -> List[str]:
    return [line.strip() for line in text.strip().splitlines() if line.strip()]


def library_name_guesses(include_path: str, package: str) -> List[str]:
    """Candidate library names for a header whose package ships no .pc files.

    Example:
        /usr/include/boost/filesystem.hpp owned by "boost" yields
        ['boost', 'boost_filesystem', 'BOOST', 'filesystem']
    """
    parts = include_path.replace("\\", "/").split("/")
    base_name = os.path.splitext(parts[-1])[0]
    boost_style = ""
    if len(parts) >= 2:
        boost_style = f"{parts[-2]}_{base_name}"
    candidates = [package, boost_style, package.upper(), base_name]
    return [name for i, name in enumerate(candidates) if name and name not in candidates[:i]]


class PlatformProbe(ABC):
    """Resolves a header's real path to flags through a package manager."""

    name = "generic"

    def __init__(
        self,
        pkg_config: PkgConfig,
        cache: PcFileCache,
        machine: str = "",
        which: Optional[Callable[[str], Optional[str]]] = None,
        compiler_include_dirs: Optional[List[Path]] = None,
    ):
        """Initialize platform probe.

        Args:
            pkg_config: pkg-config wrapper
            cache: Per-run package -> .pc files cache
            machine: Compiler target triplet (e.g. x86_64-linux-gnu)
            which: PATH lookup function (defaults to shutil.which)
            compiler_include_dirs: Directories the native compiler searches
        """
        self.pkg_config = pkg_config
        self.cache = cache
        self.machine = machine
        self._which = which or shutil.which
        self.compiler_include_dirs = compiler_include_dirs or []

    # -- directory conventions -------------------------------------------

    def system_include_dirs(self) -> List[Path]:
        """System include directories that exist on this host."""
        candidates = [Path("/usr/include")]
        if self.machine:
            candidates.append(Path("/usr/include") / self.machine)
        candidates.extend([Path("/usr/local/include"), Path("/usr/pkg/include")])
        for compiler_dir in self.compiler_include_dirs:
            if compiler_dir not in candidates:
                candidates.append(compiler_dir)
        return [d for d in candidates if d.exists()]

    def lib_dirs(self) -> List[str]:
        """Directories probed for libraries when a package has no .pc files."""
        return ["/usr/lib", "/usr/lib/x86_64-linux-gnu", "/usr/local/lib", "/usr/pkg/lib"]

    # -- header lookup ------------------------------------------------------

    def find_include_file(self, sys_dir: Path, include: str) -> Optional[Path]:
        """Search a system include directory for a header, a few levels deep.

        Uses find(1) when available and a bounded directory walk otherwise.
        The last match wins, matching find's traversal order.
        """
        if self._which("find"):
            result = run_command([
                "find", str(sys_dir), "-maxdepth", str(FIND_MAX_DEPTH), "-type", "f",
                "-wholename", f"*/{include}",
            ])
            if result.ok:
                lines = split_lines(result.stdout)
                return Path(lines[-1]) if lines else None
            return None

        match = None
        suffix = "/" + include.replace("\\", "/")
        base_depth = len(sys_dir.parts)
        for dirpath, dirnames, filenames in os.walk(sys_dir):
            depth = len(Path(dirpath).parts) - base_depth
            if depth >= FIND_MAX_DEPTH - 1:
                dirnames[:] = []
            for filename in filenames:
                candidate = Path(dirpath) / filename
                if candidate.as_posix().endswith(suffix):
                    match = candidate
        return match

    # -- package manager queries -------------------------------------------

    @abstractmethod
    def lookup_owner(self, include_path: Path) -> str:
        """Return the name of the package owning a file, or ''."""

    def query_pc_files(self, package: str) -> List[str]:
        """List the .pc files a package installed (uncached)."""
        return []

    def list_pc_files(self, package: str) -> List[str]:
        """List the .pc files a package installed, cached for the run."""
        return self.cache.get_or_load(package, self.query_pc_files)

    def pc_file_flags(self, pc_file: str) -> str:
        """pkg-config flags for one .pc file, queried by its base name."""
        return self.pkg_config.flags(Path(pc_file).stem)

    def pc_files_to_flags(self, pc_files: List[str]) -> str:
        """Combine pkg-config flags for every .pc file a package owns."""
        all_flags: List[str] = []
        for pc_file in pc_files:
            pc_name = Path(pc_file.replace("\\", "/")).stem
            flags = self.pc_file_flags(pc_file)
            if not flags and pc_name not in HEADER_ONLY_PC_NAMES:
                flags = f"-l{pc_name}"
            for flag in flags.split():
                if flag not in all_flags:
                    all_flags.append(flag)
        return " ".join(all_flags)

    def lib_fallback(self, include_path: Path, package: str) -> str:
        """Probe library directories for a library matching the header.

        Tries each name guess in each library directory. A hit yields
        -l<name>, the header's directory as an include path, and -l<name>++
        when a C++ companion library sits next to it.
        """
        for name in library_name_guesses(str(include_path), package):
            for lib_dir in self.lib_dirs():
                for ext in (".so", ".a"):
                    if not Path(lib_dir, f"lib{name}{ext}").exists():
                        continue
                    result = f"-l{name}"
                    inc_dir = include_path.parent
                    if inc_dir.exists():
                        result += f" -I{inc_dir}"
                    if Path(lib_dir, f"lib{name}++{ext}").exists():
                        result += f" -l{name}++"
                    return result
        return ""

    def include_path_to_flags(self, include_path: Path) -> str:
        """Resolve a header's real path to flags.

        Args:
            include_path: Absolute path of the header on disk

        Returns:
            Flag string, or '' when the header cannot be mapped
        """
        if not include_path or not include_path.exists():
            return ""
        package = self.lookup_owner(include_path)
        if not package or package in SKIP_PACKAGES:
            return ""

        pc_files = self.list_pc_files(package)
        if pc_files:
            return self.pc_files_to_flags(pc_files)

        result = self.lib_fallback(include_path, package)
        if not result and package not in QUIET_PACKAGES:
            logger.warning(f"No pkg-config files for: {package}")
        return result


class ArchProbe(PlatformProbe):
    """Arch Linux: pacman."""

    name = "arch"

    def lib_dirs(self) -> List[str]:
        return ["/usr/lib"]

    def lookup_owner(self, include_path: Path) -> str:
        # "/usr/include/SDL2/SDL.h is owned by sdl2 2.30.0-1"
        result = run_command(["/usr/bin/pacman", "-Qo", "--", str(include_path)], env=C_LOCALE)
        if not result.ok:
            return ""
        fields = result.stdout.split()
        return fields[4] if len(fields) > 4 else ""

    def query_pc_files(self, package: str) -> List[str]:
        result = run_command(["/usr/bin/pacman", "-Ql", "--", package], env=C_LOCALE)
        if not result.ok:
            return []
        pc_files = []
        for line in split_lines(result.stdout):
            _, _, path = line.partition(" ")
            if path.endswith(".pc"):
                pc_files.append(path)
        return pc_files


class DebianProbe(PlatformProbe):
    """Debian, Ubuntu and derivatives: dpkg-query."""

    name = "deb"

    def lib_dirs(self) -> List[str]:
        dirs = ["/usr/lib", "/usr/lib/x86_64-linux-gnu", "/usr/local/lib"]
        if self.machine:
            dirs.append(f"/usr/lib/{self.machine}")
        return dirs

    def lookup_owner(self, include_path: Path) -> str:
        # "libsdl2-dev:amd64: /usr/include/SDL2/SDL.h"
        result = run_command(["/usr/bin/dpkg-query", "-S", str(include_path)], env=C_LOCALE)
        if not result.ok:
            return ""
        lines = split_lines(result.stdout)
        if not lines:
            return ""
        owner = lines[0].split(":", 1)[0]
        return owner.split(",")[0].strip()

    def query_pc_files(self, package: str) -> List[str]:
        result = run_command(["/usr/bin/dpkg-query", "-L", package], env=C_LOCALE)
        if not result.ok:
            return []
        return [line for line in split_lines(result.stdout) if line.endswith(".pc")]


class FreeBSDProbe(PlatformProbe):
    """FreeBSD: pkg(8)."""

    name = "freebsd"

    def lib_dirs(self) -> List[str]:
        return ["/usr/local/lib"]

    def lookup_owner(self, include_path: Path) -> str:
        result = run_command(["/usr/sbin/pkg", "which", "-q", str(include_path)])
        if not result.ok:
            return ""
        lines = split_lines(result.stdout)
        return lines[0] if lines else ""

    def query_pc_files(self, package: str) -> List[str]:
        result = run_command(["/usr/sbin/pkg", "list", package])
        if not result.ok:
            return []
        return [line for line in split_lines(result.stdout) if line.endswith(".pc")]


class OpenBSDProbe(PlatformProbe):
    """OpenBSD: pkg_info(1)."""

    name = "openbsd"

    def lib_dirs(self) -> List[str]:
        return ["/usr/local/lib"]

    def lookup_owner(self, include_path: Path) -> str:
        # "/usr/local/include/SDL2/SDL.h: sdl2-2.0.20p0"
        result = run_command(["/usr/sbin/pkg_info", "-E", str(include_path)])
        if not result.ok:
            return ""
        lines = split_lines(result.stdout)
        if not lines:
            return ""
        fields = lines[0].split()
        if len(fields) < 2:
            return ""
        return fields[1].split("-")[0]

    def query_pc_files(self, package: str) -> List[str]:
        result = run_command(["/usr/sbin/pkg_info", "-L", package])
        if not result.ok:
            return []
        return [line for line in split_lines(result.stdout) if line.endswith(".pc")]


class HomebrewProbe(PlatformProbe):
    """macOS with Homebrew: Cellar path inference and brew ls."""

    name = "brew"

    CELLARS = ("/usr/local/Cellar/", "/opt/homebrew/Cellar/")
    INCLUDE_PREFIXES = ("/usr/local/include/", "/opt/homebrew/include/")

    def system_include_dirs(self) -> List[Path]:
        dirs = super().system_include_dirs()
        brew_include = Path("/opt/homebrew/include")
        if brew_include.exists() and brew_include not in dirs:
            dirs.append(brew_include)
        return dirs

    def lib_dirs(self) -> List[str]:
        return ["/usr/local/lib", "/opt/homebrew/lib", "/usr/lib"]

    def lookup_owner(self, include_path: Path) -> str:
        """Infer the formula from the header's real path.

        Headers under /usr/local/include are symlinks into the Cellar, so the
        formula name is the first component after Cellar/. Headers that are
        not symlinked fall back to their first path component below the
        include prefix.
        """
        try:
            real_path = os.path.realpath(include_path)
        except OSError:
            real_path = str(include_path)

        for cellar in self.CELLARS:
            if real_path.startswith(cellar) and real_path.count("/") > 4:
                return real_path[len(cellar):].split("/")[0]

        path = str(include_path)
        for prefix in self.INCLUDE_PREFIXES:
            if path.startswith(prefix):
                return path[len(prefix):].split("/")[0]
        return ""

    def query_pc_files(self, package: str) -> List[str]:
        result = run_command(["brew", "ls", "--verbose", package], env=C_LOCALE)
        if not result.ok:
            return []
        return [line for line in split_lines(result.stdout) if line.endswith(".pc")]

    def pc_file_flags(self, pc_file: str) -> str:
        """Query pkg-config with the .pc file's own directory on PKG_CONFIG_PATH."""
        return self.pkg_config.flags(Path(pc_file).stem, pkg_config_path=str(Path(pc_file).parent))


class MSYS2Probe(PlatformProbe):
    """Windows with MSYS2: pacman, with path translation."""

    name = "msys2"

    MSYS2_ROOTS = ["C:/msys64", "C:/msys2", "D:/msys64"]
    DEFAULT_PREFIX = "C:/msys64/mingw64"

    def __init__(self, *args, env: Optional[EnvironmentOverrides] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.env = env or EnvironmentOverrides()

    @property
    def prefix(self) -> Path:
        """The active MSYS2 environment prefix (e.g. C:/msys64/mingw64)."""
        return Path(self.env.msystem_prefix or self.DEFAULT_PREFIX)

    def system_include_dirs(self) -> List[Path]:
        dirs = []
        prefix_include = self.prefix / "include"
        if prefix_include.exists():
            dirs.append(prefix_include)
        return dirs + super().system_include_dirs()

    def lib_dirs(self) -> List[str]:
        return [str(self.prefix / "lib")]

    def windows_to_msys2_path(self, win_path: str) -> str:
        """C:\\msys64\\mingw64\\include\\SDL2 -> /mingw64/include/SDL2"""
        path = win_path.replace("\\", "/")
        for root in self.MSYS2_ROOTS:
            if path.lower().startswith(root.lower()):
                return path[len(root):]
        return path

    def msys2_to_windows_path(self, msys_path: str) -> str:
        """/mingw64/lib/pkgconfig/sdl2.pc -> C:/msys64/mingw64/lib/pkgconfig/sdl2.pc, or ''."""
        if not msys_path.startswith("/"):
            return msys_path
        for root in self.MSYS2_ROOTS:
            candidate = Path(root + msys_path)
            if candidate.exists():
                return str(candidate)
        if self.env.msystem_prefix:
            candidate = Path(self.env.msystem_prefix).parent.parent / msys_path.lstrip("/")
            if candidate.exists():
                return str(candidate)
        return ""

    def lookup_owner(self, include_path: Path) -> str:
        for path in (self.windows_to_msys2_path(str(include_path)), str(include_path)):
            result = run_command(["pacman", "-Qo", "--quiet", path])
            if result.ok and result.stdout.strip():
                return result.stdout.strip()
        return ""

    def query_pc_files(self, package: str) -> List[str]:
        result = run_command(["pacman", "-Ql", package])
        if not result.ok:
            return []
        pc_files = []
        for line in split_lines(result.stdout):
            _, _, path = line.partition(" ")
            if path.endswith(".pc"):
                pc_files.append(self.msys2_to_windows_path(path) or path)
        return pc_files

    def lib_fallback(self, include_path: Path, package: str) -> str:
        """Like the Unix fallback, but for .a, .dll.a and .lib libraries."""
        base_name = include_path.stem
        for name in (package, base_name):
            if not name:
                continue
            for lib_dir in self.lib_dirs():
                for filename in (f"lib{name}.a", f"lib{name}.dll.a", f"{name}.lib"):
                    if not Path(lib_dir, filename).exists():
                        continue
                    result = f"-l{name}"
                    inc_dir = include_path.parent
                    if inc_dir.exists():
                        result = f"-I{inc_dir} {result}"
                    return f"{result} -L{lib_dir}"
        return ""


class VcpkgProbe(PlatformProbe):
    """Windows with vcpkg: the installed tree is the package database."""

    name = "vcpkg"

    def __init__(self, *args, env: Optional[EnvironmentOverrides] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.env = env or EnvironmentOverrides()

    @property
    def installed_dir(self) -> Optional[Path]:
        """<VCPKG_ROOT>/installed/<triplet>, when it exists."""
        if not self.env.vcpkg_root:
            return None
        installed = Path(self.env.vcpkg_root) / "installed" / self.env.vcpkg_triplet
        return installed if installed.exists() else None

    @property
    def pkgconfig_dir(self) -> Optional[Path]:
        installed = self.installed_dir
        if installed is None:
            return None
        pkgconfig = installed / "lib" / "pkgconfig"
        return pkgconfig if pkgconfig.exists() else None

    def system_include_dirs(self) -> List[Path]:
        dirs = []
        installed = self.installed_dir
        if installed is not None and (installed / "include").exists():
            dirs.append(installed / "include")
        return dirs + super().system_include_dirs()

    def lib_dirs(self) -> List[str]:
        installed = self.installed_dir
        return [str(installed / "lib")] if installed is not None else []

    def lookup_owner(self, include_path: Path) -> str:
        """Guess the port name: the first path component below include/."""
        installed = self.installed_dir
        if installed is None:
            return ""
        try:
            rel = Path(include_path).relative_to(installed / "include")
        except ValueError:
            return ""
        parts = rel.parts
        if not parts or parts[0] in (".", ".."):
            return ""
        return parts[0].lower()

    def query_pc_files(self, package: str) -> List[str]:
        pkgconfig = self.pkgconfig_dir
        if pkgconfig is None:
            return []
        exact = pkgconfig / f"{package}.pc"
        if exact.exists():
            return [str(exact)]
        for pc_file in sorted(pkgconfig.glob("*.pc")):
            if pc_file.stem.lower() == package.lower():
                return [str(pc_file)]
        return []

    def pc_file_flags(self, pc_file: str) -> str:
        return self.pkg_config.flags(Path(pc_file).stem, pkg_config_path=str(self.pkgconfig_dir))

    def lib_fallback(self, include_path: Path, package: str) -> str:
        installed = self.installed_dir
        if installed is None:
            return ""
        lib_dir = installed / "lib"
        inc_dir = installed / "include"
        for ext in (".lib", ".a"):
            for candidate in (lib_dir / f"{package}{ext}", lib_dir / f"lib{package}{ext}"):
                if candidate.exists():
                    flags = f"-l{package}"
                    if inc_dir.exists():
                        flags = f"-I{inc_dir} {flags}"
                    return f"{flags} -L{lib_dir}"
        return ""

    def include_path_to_flags(self, include_path: Path) -> str:
        # vcpkg ports that ship no .pc files are common; no warning
        if self.pkgconfig_dir is None:
            return ""
        return super().include_path_to_flags(include_path) if include_path.exists() else ""


class GenericProbe(PlatformProbe):
    """Unknown distribution: guess a library name from the header path."""

    name = "generic"

    def lookup_owner(self, include_path: Path) -> str:
        # /usr/include/<guess>/...
        parts = str(include_path).split(os.sep)
        return parts[3] if len(parts) > 3 else ""

    def include_path_to_flags(self, include_path: Path) -> str:
        if not include_path or not include_path.exists():
            return ""
        guess = self.lookup_owner(include_path)
        if not guess:
            return ""

        parts = str(include_path).replace("\\", "/").split("/")
        boost_style = f"{parts[-2]}_{Path(parts[-1]).stem}" if len(parts) >= 2 else ""
        candidates = [guess, boost_style, guess.lower()]
        if any(name in SKIP_PACKAGES for name in candidates):
            return ""

        for name in candidates:
            if not name:
                continue
            for so_name in (f"lib{name}.so", f"lib{name.upper()}.so"):
                for lib_dir in self.lib_dirs():
                    if not Path(lib_dir, so_name).exists():
                        continue
                    lib_name = so_name[3:-3]
                    if Path(lib_dir, f"lib{lib_name}++.so").exists():
                        return f"-l{lib_name} -l{lib_name}++"
                    return f"-l{lib_name}"
        return ""


def detect_platform_probe(
    host: HostPlatform,
    pkg_config: PkgConfig,
    cache: PcFileCache,
    machine: str = "",
    env: Optional[EnvironmentOverrides] = None,
    which: Optional[Callable[[str], Optional[str]]] = None,
    exists: Callable[[str], bool] = os.path.exists,
    compiler_include_dirs: Optional[List[Path]] = None,
) -> PlatformProbe:
    """Select the package-manager probe for this host.

    Args:
        host: Host platform
        pkg_config: pkg-config wrapper shared with the mapper
        cache: Per-run .pc file cache
        machine: Compiler target triplet
        env: Environment overrides (MSYSTEM, VCPKG_ROOT)
        which: PATH lookup function
        exists: Filesystem existence check
        compiler_include_dirs: Directories the native compiler searches

    Returns:
        The matching PlatformProbe, or a GenericProbe
    """
    env = env or EnvironmentOverrides()
    which = which or shutil.which
    common = dict(
        pkg_config=pkg_config,
        cache=cache,
        machine=machine,
        which=which,
        compiler_include_dirs=compiler_include_dirs,
    )

    if host.is_linux:
        # pacman is checked first: some Arch boxes carry dpkg for packaging work
        if exists("/usr/bin/pacman"):
            return ArchProbe(**common)
        if exists("/usr/bin/dpkg-query"):
            return DebianProbe(**common)
    elif host.is_darwin:
        if which("brew"):
            return HomebrewProbe(**common)
    elif host.os_name == "freebsd":
        if exists("/usr/sbin/pkg"):
            return FreeBSDProbe(**common)
    elif host.os_name == "openbsd":
        if exists("/usr/sbin/pkg_info"):
            return OpenBSDProbe(**common)
    elif host.is_windows:
        if env.msystem:
            return MSYS2Probe(env=env, **common)
        if env.vcpkg_root:
            return VcpkgProbe(env=env, **common)

    return GenericProbe(**common)
