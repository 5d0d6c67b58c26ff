"""
Directory conventions for zero-configuration projects.

A project has no project file, so its shape is inferred from where files
live. These constants describe the fixed layout that the scanner, include
resolver and flag builder all agree on. Order matters: it is the priority
order for include paths and the probe order for main sources.
"""

from typing import Dict, List

# Recognized C/C++ source extensions, in probe order
SOURCE_EXTENSIONS: List[str] = [".cpp", ".cc", ".cxx", ".c"]

# Extensions that make a project a C project
C_EXTENSIONS: List[str] = [".c"]

# Relative paths searched for project headers
LOCAL_INCLUDE_PATHS: List[str] = [
    ".",
    "include",
    "Include",
    "..",
    "../include",
    "../Include",
    "common",
    "Common",
    "../common",
    "../Common",
]

# Relative paths searched for shared implementation files
LOCAL_COMMON_PATHS: List[str] = ["common", "Common", "../common", "../Common"]

# Fallback directory for the main source
SRC_DIR = "src"

# Local shared-object directory linked automatically
LOCAL_LIB_DIR = "lib"

# Logical data directories and the define each one produces.
# Singular aliases map to the same define as their plural form.
DATA_DIR_DEFINES: Dict[str, str] = {
    "data": "DATADIR",
    "img": "IMGDIR",
    "shaders": "SHADERDIR",
    "shader": "SHADERDIR",
    "share": "SHAREDIR",
    "resources": "RESOURCEDIR",
    "resource": "RESOURCEDIR",
    "res": "RESDIR",
    "scripts": "SCRIPTDIR",
}

# Artifact suffixes produced by incremental builds
OBJECT_SUFFIX = ".o"
DEPFILE_SUFFIX = ".d"
