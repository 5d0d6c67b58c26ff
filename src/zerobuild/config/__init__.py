"""Configuration modules for Zerobuild."""

from .build_options import BUILD_MODES, BuildOptions
from .conventions import (
    DATA_DIR_DEFINES,
    LOCAL_COMMON_PATHS,
    LOCAL_INCLUDE_PATHS,
    SOURCE_EXTENSIONS,
)
from .environment import EnvironmentOverrides

__all__ = [
    "BuildOptions",
    "BUILD_MODES",
    "EnvironmentOverrides",
    "SOURCE_EXTENSIONS",
    "LOCAL_INCLUDE_PATHS",
    "LOCAL_COMMON_PATHS",
    "DATA_DIR_DEFINES",
]
