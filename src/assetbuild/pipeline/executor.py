"""
Pipeline executor ties together manifest loading, compilation, emission and cleaning.
"""

from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional

from ..config import BuildConfig
from ..emit import BuildMode, CleanReport, EmittedAsset, clean_stale_outputs, emit, fingerprint_pattern
from ..manifest import ManifestStore, load_manifest, write_manifest
from ..render import TemplateRenderError
from ..util import ensure_directory
from .compilers import BuildError, CompiledEntry, compile_entry

logger = logging.getLogger(__name__)

MAX_DEFAULT_WORKERS = 4


@dataclass
class BuildReport:
    """
    Summary of one build invocation.

    Attributes:
        mode: Mode the build ran in.
        output_dir: Directory outputs were written to.
        manifest_path: Location of the freshly written manifest.
        previous_manifest_entries: Size of the manifest used for resolution.
        assets: Emitted-asset records, in entry order.
        template_errors: Entry name -> localized template error.
        dependencies: Entry name -> fragments its template included.
        cleaned: Cleaner report, when the cleaner ran.
    """
    mode: BuildMode
    output_dir: Path
    manifest_path: Path
    previous_manifest_entries: int = 0
    assets: List[EmittedAsset] = field(default_factory=list)
    template_errors: Dict[str, TemplateRenderError] = field(default_factory=dict)
    dependencies: Dict[str, FrozenSet[Path]] = field(default_factory=dict)
    cleaned: Optional[CleanReport] = None

    @property
    def manifest(self) -> Dict[str, str]:
        return {asset.logical_name: asset.resolved_path for asset in self.assets}

    @property
    def watched_fragments(self) -> FrozenSet[Path]:
        paths: set[Path] = set()
        for fragments in self.dependencies.values():
            paths.update(fragments)
        return frozenset(paths)

    def summary_rows(self) -> Iterable[tuple[str, str]]:
        yield ("Mode", self.mode.value)
        yield ("Output directory", str(self.output_dir))
        yield ("Manifest entries used", str(self.previous_manifest_entries))
        yield ("Assets emitted", str(len(self.assets)))
        yield ("Template errors", str(len(self.template_errors)))
        yield ("Fragments tracked", str(len(self.watched_fragments)))
        if self.cleaned is not None:
            yield ("Stale files removed", str(len(self.cleaned.removed)))


def clean_pattern(config: BuildConfig) -> re.Pattern[str]:
    """Filenames the cleaner may delete: fingerprinted outputs of configured entries."""
    return fingerprint_pattern(
        (entry.name for entry in config.entries),
        (entry.extension for entry in config.entries),
        config.hash_length,
    )


def _resolution_manifest(config: BuildConfig, mode: BuildMode, use_manifest: bool) -> ManifestStore:
    """
    Manifest consulted by templates: the previous production build's output.

    Development builds never fingerprint, so names resolve to themselves.
    """
    if mode is not BuildMode.PRODUCTION or not use_manifest:
        return ManifestStore.empty()
    return load_manifest(config.manifest_path)


def _compile_all(config: BuildConfig, manifest: ManifestStore, max_workers: Optional[int]) -> List[CompiledEntry]:
    workers = max_workers or min(MAX_DEFAULT_WORKERS, len(config.entries))
    if workers <= 1:
        return [compile_entry(entry, config, manifest) for entry in config.entries]
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="assetbuild") as pool:
        futures = [pool.submit(compile_entry, entry, config, manifest) for entry in config.entries]
        # result() re-raises the first fatal compile error in entry order
        return [future.result() for future in futures]


def execute_build(
    config: BuildConfig,
    mode: BuildMode = BuildMode.DEVELOPMENT,
    *,
    use_manifest: bool = True,
    clean: Optional[bool] = None,
    max_workers: Optional[int] = None,
) -> BuildReport:
    """
    Run one build: resolve, compile, emit, write the manifest and clean.

    Args:
        config: Validated build configuration.
        mode: Development (stable names) or production (fingerprinted names).
        use_manifest: Resolve template asset names through the previous manifest.
        clean: Override ``config.clean``; cleaning only ever runs in production.
        max_workers: Thread count for entry compilation.

    Returns:
        A BuildReport. Template errors are reported, not raised.

    Raises:
        ManifestError: The previous manifest is malformed.
        BuildError: An entry could not be compiled.
        EmissionError: An output could not be written.
    """
    output_dir = ensure_directory(config.output_root)
    manifest = _resolution_manifest(config, mode, use_manifest)
    report = BuildReport(
        mode=mode,
        output_dir=output_dir,
        manifest_path=config.manifest_path,
        previous_manifest_entries=len(manifest),
    )

    logger.info("Compiling %d entries in %s mode", len(config.entries), mode.value)
    compiled = _compile_all(config, manifest, max_workers)

    for item in compiled:
        entry = item.entry
        if item.render is not None:
            report.dependencies[entry.name] = item.dependencies
            if item.render.error is not None:
                report.template_errors[entry.name] = item.render.error
        record = emit(
            entry.name,
            item.content,
            mode,
            extension=entry.extension or "",
            output_dir=output_dir,
            fingerprint=entry.fingerprint,
            hash_length=config.hash_length,
            public_path=config.public_path,
            manifest_base_path=config.manifest_base_path,
        )
        report.assets.append(record)

    write_manifest(config.manifest_path, report.manifest)
    logger.info("Wrote manifest with %d entries to %s", len(report.assets), config.manifest_path)

    should_clean = config.clean if clean is None else clean
    if mode is BuildMode.PRODUCTION and should_clean:
        report.cleaned = clean_stale_outputs(
            output_dir, report.manifest.values(), pattern=clean_pattern(config)
        )

    if report.template_errors:
        logger.warning("Build finished with %d template error(s)", len(report.template_errors))
    return report


__all__ = ["BuildError", "BuildReport", "execute_build"]
