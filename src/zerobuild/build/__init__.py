"""
Build system components for Zerobuild.

This module provides the build system implementation including:
- Source discovery (main, dependency and test sources, feature flags)
- External include resolution
- Flag assembly
- Incremental compilation and linking
- Build orchestration
"""

from .build_planner import BuildPlanner, PlannerResult
from .compilation_executor import CompilationError, CompilationExecutor, CompileResult
from .flag_builder import BuildFlags, FlagBuilder, FlagBuilderError
from .include_resolver import IncludeResolver, Preprocessor
from .linker import Linker, LinkerError, LinkResult
from .orchestrator import (
    BuildOrchestrator,
    BuildOrchestratorError,
    BuildResult,
    MissingPackageError,
)
from .source_scanner import NoMainSourceError, Project, SourceScanner, SourceScannerError

__all__ = [
    "SourceScanner",
    "SourceScannerError",
    "NoMainSourceError",
    "Project",
    "IncludeResolver",
    "Preprocessor",
    "FlagBuilder",
    "FlagBuilderError",
    "BuildFlags",
    "CompilationExecutor",
    "CompilationError",
    "CompileResult",
    "Linker",
    "LinkerError",
    "LinkResult",
    "BuildPlanner",
    "PlannerResult",
    "BuildOrchestrator",
    "BuildOrchestratorError",
    "BuildResult",
    "MissingPackageError",
]
