"""
Setup file.
"""

import os

from setuptools import find_packages, setup

NAME = "zerobuild"
URL = "https://github.com/zackees/zerobuild"
KEYWORDS = "c c++ compiler build pkg-config zero-configuration incremental"
HERE = os.path.dirname(os.path.abspath(__file__))


def read_version() -> str:
    with open(os.path.join(HERE, "src", NAME, "__init__.py"), encoding="utf-8") as f:
        for line in f:
            if line.startswith("__version__"):
                return line.split("=", 1)[1].strip().strip('"')
    raise RuntimeError("Unable to find __version__")


if __name__ == "__main__":
    setup(
        name=NAME,
        version=read_version(),
        description="Zero-configuration build driver for C/C++ projects",
        maintainer="Zachary Vorhies",
        keywords=KEYWORDS,
        url=URL,
        python_requires=">=3.8",
        package_dir={"": "src"},
        packages=find_packages(where="src"),
        install_requires=["psutil"],
        extras_require={"test": ["pytest"]},
        entry_points={"console_scripts": ["zb = zerobuild.cli:main"]},
        include_package_data=True)
