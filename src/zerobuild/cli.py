"""
Command-line interface for Zerobuild.

This module provides the `zb` CLI tool for building C/C++ projects that have
no project file.
"""

import argparse
import json
import sys
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional

from zerobuild import __version__
from zerobuild.build import BuildOrchestrator, SourceScannerError
from zerobuild.cli_utils import ErrorFormatter, PathValidator, configure_logging
from zerobuild.config import BUILD_MODES, BuildOptions
from zerobuild.packages import ToolchainError


@dataclass
class BuildArgs:
    """Arguments for the build, rebuild and flags commands."""

    project_dir: Path
    mode: str = "default"
    jobs: int = 1
    install_prefix: Optional[str] = None
    verbose: bool = False


@dataclass
class CleanArgs:
    """Arguments for the clean command."""

    project_dir: Path
    verbose: bool = False


def make_options(args: BuildArgs) -> BuildOptions:
    """BuildOptions for the requested mode (raises ValueError)."""
    return BuildOptions.from_mode(
        args.mode,
        jobs=args.jobs,
        install_prefix=args.install_prefix,
        verbose=args.verbose,
    )


def build_command(args: BuildArgs) -> None:
    """Build the project in a directory.

    Examples:
        zb build                  # Build with default flags
        zb build debug            # Debug build with sanitizers
        zb build -C ~/src/game    # Build another directory
        zb build opt -j 0         # Optimized build, one compile per CPU
    """
    try:
        orchestrator = BuildOrchestrator(make_options(args))
        result = orchestrator.build(args.project_dir)

        if result.output:
            print(result.output, end="" if result.output.endswith("\n") else "\n")

        if result.success:
            if result.nothing_to_build:
                ErrorFormatter.print_warning(result.message)
            elif result.up_to_date:
                print(f"{result.executable.name} is up to date")
            else:
                ErrorFormatter.print_success(f"Built {result.executable}")
                if args.verbose:
                    print(f"Build time: {result.build_time:.2f}s")
            sys.exit(0)
        else:
            ErrorFormatter.print_error("Build failed!", result.message)
            ErrorFormatter.print_hints(result.hints)
            sys.exit(1)

    except ValueError as e:
        ErrorFormatter.print_error("Error: Invalid build mode", str(e))
        sys.exit(1)
    except PermissionError as e:
        ErrorFormatter.handle_permission_error(e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def clean_command(args: CleanArgs) -> None:
    """Remove object files, dependency files and the executable.

    Examples:
        zb clean
        zb clean -C ~/src/game
    """
    try:
        removed = BuildOrchestrator(BuildOptions(verbose=args.verbose)).clean(args.project_dir)
        for path in removed:
            print(f"removed {path}")
        if not removed:
            print("Nothing to clean")

    except SourceScannerError as e:
        ErrorFormatter.print_error("Clean failed!", str(e))
        sys.exit(1)
    except PermissionError as e:
        ErrorFormatter.handle_permission_error(e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()


def rebuild_command(args: BuildArgs) -> None:
    """Clean, then build."""
    clean_command(CleanArgs(project_dir=args.project_dir, verbose=args.verbose))
    build_command(args)


def flags_command(args: BuildArgs) -> None:
    """Print the detected project and the assembled flags as JSON.

    Examples:
        zb flags
        zb flags debug | jq .flags.link_flags
    """
    try:
        orchestrator = BuildOrchestrator(make_options(args), echo=False)
        project = orchestrator.scan(args.project_dir)
        report = {"project": asdict(project)}
        if project.main_source:
            report["flags"] = asdict(orchestrator.assemble(args.project_dir, project))
        print(json.dumps(report, indent=2))

    except ValueError as e:
        ErrorFormatter.print_error("Error: Invalid build mode", str(e))
        sys.exit(1)
    except (SourceScannerError, ToolchainError) as e:
        ErrorFormatter.print_error("Error", str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-C",
        "--directory",
        dest="project_dir",
        type=Path,
        default=Path.cwd(),
        help="Project directory (default: current directory)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show debug logging",
    )


def add_build_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "mode",
        nargs="?",
        default="default",
        choices=sorted(BUILD_MODES),
        metavar="mode",
        help=f"Build mode (default: default). One of: {', '.join(sorted(BUILD_MODES))}",
    )
    parser.add_argument(
        "-j",
        "--jobs",
        type=int,
        default=1,
        help="Concurrent compiles, 0 for one per CPU (default: 1)",
    )
    parser.add_argument(
        "--install-prefix",
        default=None,
        help="Point data directory defines at PREFIX/<dir>/",
    )
    add_common_arguments(parser)


def main() -> None:
    """Zerobuild - build C/C++ projects without a project file."""
    parser = argparse.ArgumentParser(
        prog="zb",
        description="Zerobuild - build C/C++ projects without a project file",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"zb {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    build_parser = subparsers.add_parser("build", help="Build the project")
    add_build_arguments(build_parser)

    rebuild_parser = subparsers.add_parser("rebuild", help="Clean and build the project")
    add_build_arguments(rebuild_parser)

    flags_parser = subparsers.add_parser("flags", help="Print the detected project and flags as JSON")
    add_build_arguments(flags_parser)

    clean_parser = subparsers.add_parser("clean", help="Remove build artifacts")
    add_common_arguments(clean_parser)

    subparsers.add_parser("version", help="Print the version")

    parsed_args = parser.parse_args()

    if not parsed_args.command:
        parser.print_help()
        sys.exit(0)

    if parsed_args.command == "version":
        print(f"zb {__version__}")
        sys.exit(0)

    configure_logging(parsed_args.verbose)
    PathValidator.validate_project_dir(parsed_args.project_dir)

    if parsed_args.command == "clean":
        clean_command(CleanArgs(project_dir=parsed_args.project_dir, verbose=parsed_args.verbose))
        return

    build_args = BuildArgs(
        project_dir=parsed_args.project_dir,
        mode=parsed_args.mode,
        jobs=parsed_args.jobs,
        install_prefix=parsed_args.install_prefix,
        verbose=parsed_args.verbose,
    )
    if parsed_args.command == "build":
        build_command(build_args)
    elif parsed_args.command == "rebuild":
        rebuild_command(build_args)
    elif parsed_args.command == "flags":
        flags_command(build_args)


if __name__ == "__main__":
    main()
