"""Compiler and external package resolution for Zerobuild.

This module locates compilers and maps external headers to compiler and
linker flags through pkg-config and the host's package manager.
"""

from .package_advisor import PackageAdvisor, PackageRecommendation
from .package_mapper import PackageMapper, create_package_mapper, package_name_for_include
from .pc_file_cache import PcFileCache
from .pkg_config import FlagSet, PkgConfig
from .platform_probe import (
    ArchProbe,
    DebianProbe,
    FreeBSDProbe,
    GenericProbe,
    HomebrewProbe,
    MSYS2Probe,
    OpenBSDProbe,
    PlatformProbe,
    VcpkgProbe,
    detect_platform_probe,
)
from .platform_utils import HostPlatform, PlatformDetector
from .toolchain import CompilerLocator, NoCompilerFoundError, ToolchainError

__all__ = [
    "CompilerLocator",
    "ToolchainError",
    "NoCompilerFoundError",
    "PkgConfig",
    "FlagSet",
    "PcFileCache",
    "PlatformProbe",
    "ArchProbe",
    "DebianProbe",
    "FreeBSDProbe",
    "OpenBSDProbe",
    "HomebrewProbe",
    "MSYS2Probe",
    "VcpkgProbe",
    "GenericProbe",
    "detect_platform_probe",
    "PackageMapper",
    "package_name_for_include",
    "create_package_mapper",
    "PackageAdvisor",
    "PackageRecommendation",
    "HostPlatform",
    "PlatformDetector",
]
