"""
Polling rebuild loop.

After each build the loop watches the build file, every entry source and
every fragment the templates included, and rebuilds when any of them changes.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional, Set

from ..config import BuildConfig, ConfigError, load_config
from ..emit import BuildMode, EmissionError
from ..manifest import ManifestError
from .compilers import BuildError
from .executor import BuildReport, execute_build

logger = logging.getLogger(__name__)

Snapshot = Dict[Path, Optional[int]]


def snapshot(paths: Iterable[Path]) -> Snapshot:
    """Modification times keyed by path; missing files map to None."""
    state: Snapshot = {}
    for path in paths:
        try:
            state[path] = path.stat().st_mtime_ns
        except OSError:
            state[path] = None
    return state


def watched_paths(config: BuildConfig, config_path: Path, report: Optional[BuildReport]) -> Set[Path]:
    paths = {config_path}
    paths.update(config.source_path(entry) for entry in config.entries)
    if report is not None:
        paths.update(report.watched_fragments)
    return paths


def watch_build(
    config_path: Path,
    mode: BuildMode = BuildMode.DEVELOPMENT,
    *,
    use_manifest: bool = True,
    interval: float = 1.0,
    max_builds: Optional[int] = None,
    on_build: Optional[Callable[[BuildReport], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """
    Build, then rebuild whenever a watched file changes.

    Failed builds are logged and the loop keeps watching.

    Returns:
        Number of builds run (only reached when max_builds is set).
    """
    config_path = config_path.expanduser().resolve()
    config = load_config(config_path)
    report: Optional[BuildReport] = None
    builds = 0
    while True:
        # taken before building so edits made during the build still count
        baseline = snapshot(watched_paths(config, config_path, report))
        try:
            report = execute_build(config, mode, use_manifest=use_manifest)
        except (BuildError, ManifestError, EmissionError) as exc:
            logger.error("Build failed: %s", exc)
        else:
            if on_build is not None:
                on_build(report)
        builds += 1
        if max_builds is not None and builds >= max_builds:
            return builds

        paths = watched_paths(config, config_path, report)
        before = snapshot(paths - baseline.keys())
        before.update((path, baseline[path]) for path in paths if path in baseline)
        logger.info("Watching %d file(s) for changes", len(paths))
        while True:
            sleep(interval)
            after = snapshot(paths)
            if after != before:
                break
        changed = sorted(str(path) for path in paths if before.get(path) != after.get(path))
        logger.info("Change detected in %s; rebuilding", ", ".join(changed))

        if before.get(config_path) != after.get(config_path):
            try:
                config = load_config(config_path)
            except ConfigError as exc:
                logger.error("Keeping previous configuration: %s", exc)
