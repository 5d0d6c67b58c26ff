"""Compilation Flag Builder.

This module assembles the compiler, language standard and flag lists for a
detected Project under a set of BuildOptions.

Design:
    - Steps run in a fixed order and only ever append, so position-sensitive
      flags (library order) come out the same on every run
    - Optimization tiers are mutually exclusive: debug, small, opt, OpenMP
      default, plain default
    - External headers are turned into flags by the PackageMapper
    - CFLAGS/CXXFLAGS and LDFLAGS from the environment are appended last and
      never filtered
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..config.build_options import BuildOptions
from ..config.conventions import DATA_DIR_DEFINES, LOCAL_INCLUDE_PATHS, LOCAL_LIB_DIR
from ..config.environment import EnvironmentOverrides
from ..packages.package_mapper import PackageMapper, create_package_mapper
from ..packages.pkg_config import append_unique
from ..packages.platform_utils import HostPlatform, PlatformDetector
from ..packages.toolchain import CompilerLocator, is_compiler_clang, is_compiler_gcc
from ..subprocess_utils import run_command
from .source_scanner import Project

logger = logging.getLogger(__name__)

DEBUG_FLAGS = ["-O0", "-g", "-fno-omit-frame-pointer"]
SMALL_FLAGS = ["-Os", "-ffunction-sections", "-fdata-sections"]
SMALL_LINK_FLAGS = ["-ffunction-sections", "-fdata-sections", "-Wl,-s", "-Wl,-gc-sections"]
TINY_FLAGS = ["-s", "-nostdlib", "-fno-rtti", "-fno-ident", "-fomit-frame-pointer"]
TINY_LINK_FLAGS = ["-Wl,-z,norelro"]
OPT_FLAGS = ["-Ofast", "-flto"]
OPT_LINK_FLAGS = ["-Wl,-flto"]

HARDENING_FLAGS = ["-fno-plt", "-fstack-protector-strong"]
SLOPPY_FLAGS = ["-fpermissive", "-fms-extensions", "-w"]
WARNING_FLAGS = [
    "-Wall",
    "-Wshadow",
    "-Wpedantic",
    "-Wno-parentheses",
    "-Wfatal-errors",
    "-Wvla",
    "-Wignored-qualifiers",
]
STRICT_FLAGS = ["-Wextra", "-Wconversion", "-Wparentheses", "-Weffc++", "-Wunused-function"]

GCC_PROFILE_GENERATE = ["-coverage", "-fprofile-generate", "-fprofile-correction"]
GCC_PROFILE_USE = ["-fprofile-use", "-fprofile-correction"]
CLANG_PROFILE_GENERATE = ["-fprofile-generate"]
CLANG_PROFILE_USE = ["-fprofile-use"]

MINGW_INCLUDE_DIR = "/usr/x86_64-w64-mingw32/include"
BOOST_SYSTEM_LIB = "/usr/lib/libboost_system.so"

QT6_INCLUDE_ROOT = "/usr/include/qt6"
QT6_MODULES = [
    "Qt3DAnimation", "Qt3DCore", "Qt3DExtras", "Qt3DInput", "Qt3DLogic",
    "Qt3DQuick", "Qt3DQuickAnimation", "Qt3DQuickExtras", "Qt3DQuickInput",
    "Qt3DQuickRender", "Qt3DQuickScene2D", "Qt3DRender", "QtConcurrent",
    "QtCore", "QtCore5Compat", "QtDBus", "QtDesigner", "QtDesignerComponents",
    "QtDeviceDiscoverySupport", "QtEglFSDeviceIntegration",
    "QtEglFsKmsGbmSupport", "QtEglFsKmsSupport", "QtFbSupport", "QtGui",
    "QtHelp", "QtInputSupport", "QtKmsSupport", "QtLabsAnimation",
    "QtLabsFolderListModel", "QtLabsQmlModels", "QtLabsSettings",
    "QtLabsSharedImage", "QtLabsWavefrontMesh", "QtNetwork", "QtNetworkAuth",
    "QtOpenGL", "QtOpenGLWidgets", "QtPacketProtocol", "QtPrintSupport",
    "QtQml", "QtQmlCompiler", "QtQmlDebug", "QtQmlDom", "QtQmlLocalStorage",
    "QtQmlModels", "QtQmlWorkerScript", "QtQuick", "QtQuick3D",
    "QtQuick3DAssetImport", "QtQuick3DIblBaker", "QtQuick3DParticles",
    "QtQuick3DRuntimeRender", "QtQuick3DUtils", "QtQuickControls2",
    "QtQuickControls2Impl", "QtQuickLayouts", "QtQuickParticles",
    "QtQuickShapes", "QtQuickTemplates2", "QtQuickTest", "QtQuickWidgets",
    "QtShaderTools", "QtSql", "QtSvg", "QtSvgWidgets", "QtTest", "QtTools",
    "QtUiPlugin", "QtUiTools", "QtWaylandClient", "QtWaylandCompositor",
    "QtWidgets", "QtXml",
]
QT6_COMPILE_FLAGS = [f"-I{QT6_INCLUDE_ROOT}"] + [f"-I{QT6_INCLUDE_ROOT}/{m}" for m in QT6_MODULES]
QT6_LINK_FLAGS = [
    "-lQt6Concurrent", "-lQt6Core", "-lQt6DBus", "-lQt6EglFSDeviceIntegration",
    "-lQt6EglFsKmsGbmSupport", "-lQt6EglFsKmsSupport", "-lQt6Gui",
    "-lQt6Network", "-lQt6OpenGL", "-lQt6OpenGLWidgets", "-lQt6PrintSupport",
    "-lQt6Sql", "-lQt6Test", "-lQt6Widgets", "-lQt6XcbQpa", "-lQt6Xml",
]


class FlagBuilderError(Exception):
    """Raised when flag building operations fail."""
    pass


@dataclass
class BuildFlags:
    """The assembled compiler contract.

    Attributes:
        compiler: Path to the compiler driver
        std: Language standard (without -std=)
        compile_flags: Flags for every compile
        link_flags: Flags for the link step, in link order
        defines: Preprocessor defines (-D...)
        include_paths: Include directories (without -I)
    """

    compiler: str = ""
    std: str = ""
    compile_flags: List[str] = field(default_factory=list)
    link_flags: List[str] = field(default_factory=list)
    defines: List[str] = field(default_factory=list)
    include_paths: List[str] = field(default_factory=list)

    def std_flag(self) -> str:
        return f"-std={self.std}"

    def include_flags(self) -> List[str]:
        return [f"-I{path}" for path in self.include_paths]

    def compile_prefix(self) -> List[str]:
        """-std, compile flags, defines and includes, in that order."""
        return [self.std_flag()] + self.compile_flags + self.defines + self.include_flags()


class FlagBuilder:
    """Builds compiler and linker flags for a project.

    This class handles:
    - Compiler and language standard selection
    - Optimization, warning and hardening tiers
    - Include paths and directory defines
    - Feature flags detected by the SourceScanner
    - External header resolution through the PackageMapper
    - Environment overrides
    """

    def __init__(
        self,
        project_dir: Path,
        options: BuildOptions,
        host: Optional[HostPlatform] = None,
        locator: Optional[CompilerLocator] = None,
        mapper: Optional[PackageMapper] = None,
        env: Optional[EnvironmentOverrides] = None,
    ):
        """Initialize flag builder.

        Args:
            project_dir: Project root directory
            options: Build options
            host: Host platform (detected when omitted)
            locator: Compiler locator
            mapper: Package mapper (created for the host when omitted)
            env: Environment overrides
        """
        self.project_dir = Path(project_dir)
        self.options = options
        self.host = host or PlatformDetector.detect()
        self.env = env or EnvironmentOverrides()
        self.locator = locator or CompilerLocator(env=self.env)
        self._mapper = mapper

    @property
    def mapper(self) -> PackageMapper:
        if self._mapper is None:
            native = self.locator.find_native(use_clang=False, is_c=False)
            self._mapper = create_package_mapper(
                self.host,
                machine=self.locator.dumpmachine(native),
                env=self.env,
                compiler_include_dirs=self.locator.compiler_includes(native),
            )
        return self._mapper

    def exists(self, rel_path: str) -> bool:
        return (self.project_dir / rel_path).exists()

    # -- compiler ---------------------------------------------------------

    def select_compiler(self, project: Project, win64: bool) -> str:
        """Select the compiler (raises NoCompilerFoundError)."""
        return self.locator.select(
            is_c=project.is_c, win64=win64, use_clang=self.options.clang, zap=self.options.zap
        )

    def select_std(self, project: Project, compiler: str, win64: bool) -> str:
        if project.is_c:
            return "c11" if win64 else "c18"
        if self.options.zap:
            return "c++14"
        return self.locator.best_cxx_standard(compiler)

    # -- directory defines ------------------------------------------------

    def dir_defines(self) -> List[str]:
        """-D<NAME>DIR="<dir>/" for data directories in the project or its parent."""
        defines = []
        for directory, name in DATA_DIR_DEFINES.items():
            if self.exists(directory):
                path = directory + "/"
            elif self.exists(os.path.join("..", directory)):
                path = os.path.join("..", directory) + "/"
            else:
                continue
            defines.append(f'-D{name}="{path}"')
        return defines

    def install_dir_defines(self, prefix: str) -> List[str]:
        """Directory defines pointing at <prefix>/<dir>/ instead of the source tree."""
        defines = []
        for directory, name in DATA_DIR_DEFINES.items():
            if self.exists(directory) or self.exists(os.path.join("..", directory)):
                defines.append(f'-D{name}="{os.path.join(prefix, directory)}/"')
        return defines

    # -- steps ------------------------------------------------------------

    def _add_optimization(self, flags: BuildFlags, project: Project) -> None:
        opts = self.options
        if opts.debug:
            flags.compile_flags.extend(DEBUG_FLAGS)
            if not opts.no_sanitizers:
                flags.link_flags.append("-fsanitize=address")
                if not self.host.is_darwin:
                    if is_compiler_clang(flags.compiler):
                        flags.compile_flags.append("-static-libsan")
                    elif is_compiler_gcc(flags.compiler):
                        flags.compile_flags.append("-static-libasan")
        elif opts.small:
            flags.compile_flags.extend(SMALL_FLAGS)
            flags.link_flags.extend(SMALL_LINK_FLAGS)
            if opts.tiny:
                flags.compile_flags.extend(TINY_FLAGS)
                flags.link_flags.extend(TINY_LINK_FLAGS)
        elif opts.opt:
            flags.compile_flags.extend(OPT_FLAGS)
            flags.link_flags.extend(OPT_LINK_FLAGS)
        elif project.has_openmp:
            flags.compile_flags.append("-O3")
        else:
            flags.compile_flags.append("-O2")

    def _add_common(self, flags: BuildFlags, win64: bool) -> None:
        opts = self.options
        flags.compile_flags.append("-pipe")
        if not opts.small:
            flags.compile_flags.append("-fPIC")

        if self.host.is_linux and not (win64 or opts.sloppy or opts.zap or opts.small or opts.debug):
            flags.compile_flags.extend(HARDENING_FLAGS)

        if opts.sloppy:
            flags.compile_flags.extend(SLOPPY_FLAGS)
        else:
            flags.compile_flags.extend(WARNING_FLAGS)
            if opts.strict:
                flags.compile_flags.extend(STRICT_FLAGS)

    def _add_features(self, flags: BuildFlags, project: Project) -> None:
        if project.is_c:
            flags.defines.append(self.host.c_define)

        if project.has_openmp:
            flags.compile_flags.append("-fopenmp")
            flags.link_flags.extend(["-fopenmp", "-pthread", "-lpthread"])

        if project.has_boost:
            flags.compile_flags.append("-Wno-unknown-pragmas")
            flags.link_flags.extend(["-pthread", "-lpthread"])
            for lib in project.boost_libs:
                append_unique(flags.link_flags, f"-l{lib}")
            # boost_system goes last
            if any(lib.startswith("boost_") for lib in project.boost_libs) and self.has_boost_system():
                append_unique(flags.link_flags, "-lboost_system")

        if project.has_threads:
            append_unique(flags.link_flags, "-lpthread")
        if project.has_dlopen:
            append_unique(flags.link_flags, "-ldl")
        if project.has_math_lib:
            append_unique(flags.link_flags, "-lm")
        if project.has_fs and self.host.is_linux:
            append_unique(flags.link_flags, "-lstdc++fs")

        if project.has_qt6:
            append_unique(flags.compile_flags, *QT6_COMPILE_FLAGS)
            append_unique(flags.link_flags, *QT6_LINK_FLAGS)

        if project.has_glfw_vulkan:
            append_unique(flags.link_flags, "-lvulkan")

    def has_boost_system(self) -> bool:
        """Check the dynamic linker cache, then a known path, for libboost_system."""
        result = run_command(["ldconfig", "-p"])
        if result.ok and "boost_system" in result.stdout:
            return True
        return os.path.exists(BOOST_SYSTEM_LIB)

    def _add_profile_flags(self, flags: BuildFlags) -> None:
        opts = self.options
        gcc = is_compiler_gcc(flags.compiler)
        clang = is_compiler_clang(flags.compiler)

        if opts.profile_generate:
            pgo = GCC_PROFILE_GENERATE if gcc else CLANG_PROFILE_GENERATE if clang else []
        elif opts.profile_use or any(self.project_dir.glob("*.gcda")):
            pgo = GCC_PROFILE_USE if gcc else CLANG_PROFILE_USE if clang else []
        else:
            pgo = []

        flags.compile_flags.extend(pgo)
        flags.link_flags.extend(pgo)

    def _add_win64(self, flags: BuildFlags, project: Project) -> None:
        flags.compile_flags.append("-Wno-unused-variable")
        if not project.is_c:
            flags.compile_flags.extend(["-mwindows", "-fms-extensions"])
            flags.link_flags.extend(["-mwindows", "-fms-extensions"])
        append_unique(flags.link_flags, "-lm")
        if os.path.exists(MINGW_INCLUDE_DIR):
            append_unique(flags.include_paths, MINGW_INCLUDE_DIR)

    def _add_external(self, flags: BuildFlags, project: Project, win64: bool) -> None:
        if not project.includes:
            return
        resolved = self.mapper.resolve_all(project.includes, win64=win64)
        flags.compile_flags.extend(resolved.compile_flags)
        flags.link_flags.extend(resolved.link_flags)

    def _add_local_libs(self, flags: BuildFlags) -> None:
        lib_dir = self.project_dir / LOCAL_LIB_DIR
        if not lib_dir.exists():
            return
        flags.link_flags.extend([f"-L{LOCAL_LIB_DIR}", f"-Wl,-rpath,./{LOCAL_LIB_DIR}"])
        for so_file in sorted(lib_dir.glob("lib*.so")):
            flags.link_flags.append(f"-l{so_file.name[3:-3]}")

    def _finalize_link(self, flags: BuildFlags) -> None:
        flags.link_flags.extend(self.host.extra_lib_paths())
        if flags.link_flags:
            as_needed = self.host.as_needed_flag()
            if as_needed:
                append_unique(flags.link_flags, as_needed)

    # -- entry point ------------------------------------------------------

    def build(self, project: Project) -> BuildFlags:
        """Assemble BuildFlags for a project.

        Args:
            project: Scanned project

        Returns:
            BuildFlags

        Raises:
            NoCompilerFoundError: If no compiler is available
        """
        win64 = self.options.win64 or project.has_win64

        flags = BuildFlags()
        flags.compiler = self.select_compiler(project, win64)
        flags.std = self.select_std(project, flags.compiler, win64)

        self._add_optimization(flags, project)
        self._add_common(flags, win64)

        for include_path in LOCAL_INCLUDE_PATHS:
            if self.exists(include_path):
                append_unique(flags.include_paths, include_path)

        if self.options.install_prefix:
            flags.defines = self.install_dir_defines(self.options.install_prefix)
        else:
            flags.defines = self.dir_defines()

        self._add_features(flags, project)
        self._add_profile_flags(flags)
        if win64:
            self._add_win64(flags, project)

        self._add_external(flags, project, win64)
        self._add_local_libs(flags)
        self._finalize_link(flags)

        flags.compile_flags.extend(self.env.compile_flags(project.is_c))
        flags.link_flags.extend(self.env.link_flags())

        logger.debug(f"Assembled flags: {flags}")
        return flags
