"""
Zerobuild - zero-configuration build driver for C/C++ projects.

Point it at a directory with a main.cpp (or any single source containing
main()) and it works out the rest: dependency sources, test sources,
external libraries, compiler flags and an incremental build.
"""

__version__ = "0.1.0"
