"""
Build options.

BuildOptions captures every user-selectable knob that changes the assembled
flag set. The CLI exposes them as named build modes (``zb build debug``,
``zb build smallwin64``, ...), which are just preset combinations.
"""

from dataclasses import dataclass, replace
from typing import Dict, Optional


@dataclass
class BuildOptions:
    """User build options.

    Attributes:
        debug: -O0 -g, plus address sanitizer unless no_sanitizers
        opt: -Ofast -flto
        strict: Extra warnings on top of the default set
        sloppy: Permissive, silent compilation
        small: Optimize for size, no -fPIC
        tiny: With small: strip, no stdlib, no RTTI
        clang: Prefer clang over gcc
        win64: Cross-compile for 64-bit Windows
        zap: Use zapcc++ when available
        profile_generate: Instrument for profile-guided optimization
        profile_use: Consume collected profile data
        no_sanitizers: Skip sanitizers in debug builds
        install_prefix: Point directory defines at an install prefix
        jobs: Number of concurrent compiles (1 = strictly sequential)
        verbose: Enable verbose output
    """

    debug: bool = False
    opt: bool = False
    strict: bool = False
    sloppy: bool = False
    small: bool = False
    tiny: bool = False
    clang: bool = False
    win64: bool = False
    zap: bool = False
    profile_generate: bool = False
    profile_use: bool = False
    no_sanitizers: bool = False
    install_prefix: Optional[str] = None
    jobs: int = 1
    verbose: bool = False

    @classmethod
    def from_mode(cls, mode: str, **overrides) -> "BuildOptions":
        """Create options for a named build mode.

        Args:
            mode: Build mode name (see BUILD_MODES)
            **overrides: Extra field values applied on top of the preset

        Returns:
            BuildOptions for the mode

        Raises:
            ValueError: If the mode is unknown
        """
        try:
            preset = BUILD_MODES[mode]
        except KeyError:
            known = ", ".join(sorted(BUILD_MODES))
            raise ValueError(f"Unknown build mode '{mode}'. Known modes: {known}")
        return replace(cls(**preset), **overrides)

    def with_win64(self) -> "BuildOptions":
        """Copy of these options with win64 enabled."""
        return replace(self, win64=True)


BUILD_MODES: Dict[str, Dict[str, bool]] = {
    "default": {},
    "debug": {"debug": True},
    "debugnosan": {"debug": True, "no_sanitizers": True},
    "opt": {"opt": True},
    "strict": {"strict": True},
    "sloppy": {"sloppy": True},
    "small": {"small": True},
    "tiny": {"small": True, "tiny": True},
    "clang": {"clang": True},
    "clangdebug": {"clang": True, "debug": True},
    "clangstrict": {"clang": True, "strict": True},
    "clangsloppy": {"clang": True, "sloppy": True},
    "win64": {"win64": True},
    "smallwin64": {"win64": True, "small": True},
    "tinywin64": {"win64": True, "small": True, "tiny": True},
    "zap": {"zap": True},
    "profilegen": {"opt": True, "profile_generate": True},
    "profileuse": {"opt": True, "profile_use": True},
}
