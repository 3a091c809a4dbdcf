"""
Tracks the template fragments a render pulled in.
"""

from __future__ import annotations

from pathlib import Path
from typing import FrozenSet, Iterator, Set


class DependencyRecorder:
    """
    Grow-only set of fragment paths for one render.

    ``record`` is the ``on_include`` callback handed to the renderer; the
    watcher reads ``paths`` after rendering to decide what to poll.
    """

    def __init__(self) -> None:
        self._paths: Set[Path] = set()

    def record(self, path: Path | str) -> None:
        self._paths.add(Path(path).expanduser().resolve())

    __call__ = record

    def reset(self) -> None:
        """Discard the previous render's dependencies."""
        self._paths = set()

    @property
    def paths(self) -> FrozenSet[Path]:
        return frozenset(self._paths)

    def __contains__(self, path: object) -> bool:
        if isinstance(path, (str, Path)):
            return Path(path).expanduser().resolve() in self._paths
        return False

    def __len__(self) -> int:
        return len(self._paths)

    def __iter__(self) -> Iterator[Path]:
        return iter(sorted(self._paths))
