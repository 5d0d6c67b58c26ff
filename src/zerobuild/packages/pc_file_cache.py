"""Per-run cache of package-manager .pc file listings.

Listing the files a package owns is the slowest package-manager query, and
several headers usually map to the same package. Results are memoized by
package name for the lifetime of one PcFileCache; files on disk are assumed
not to change during a build, so entries are never invalidated.
"""

import threading
from typing import Callable, Dict, List, Optional


class PcFileCache:
    """Package name -> owned .pc files, guarded by a lock."""

    def __init__(self):
        self._entries: Dict[str, List[str]] = {}
        self._lock = threading.Lock()

    def __contains__(self, package: str) -> bool:
        with self._lock:
            return package in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, package: str) -> Optional[List[str]]:
        with self._lock:
            entry = self._entries.get(package)
            return list(entry) if entry is not None else None

    def put(self, package: str, pc_files: List[str]) -> None:
        with self._lock:
            self._entries[package] = list(pc_files)

    def get_or_load(self, package: str, loader: Callable[[str], List[str]]) -> List[str]:
        """Return the cached listing, running loader(package) on a miss.

        The loader runs outside the lock. Two threads missing on the same
        package at once may both query; the first stored result wins.
        """
        cached = self.get(package)
        if cached is not None:
            return cached
        loaded = loader(package)
        with self._lock:
            stored = self._entries.setdefault(package, list(loaded))
            return list(stored)
