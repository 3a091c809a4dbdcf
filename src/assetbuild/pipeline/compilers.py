"""
Per-kind compilers turning an entry's source into output text.

Scripts and stylesheets are handed to an external command when the entry
configures one and are copied verbatim otherwise; templates are rendered
against the manifest.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, FrozenSet, Optional

from ..config import BuildConfig, EntryConfig
from ..manifest import ManifestStore
from ..render import DependencyRecorder, RenderResult, render_file

logger = logging.getLogger(__name__)


class BuildError(RuntimeError):
    """Raised when a build cannot continue (missing sources, failing commands)."""


@dataclass
class CompiledEntry:
    """
    Output of one entry compilation, waiting to be emitted.

    Attributes:
        entry: The configured entry.
        content: Text to emit.
        render: Render outcome for template entries.
        dependencies: Fragments the template included.
    """
    entry: EntryConfig
    content: str
    render: Optional[RenderResult] = None
    dependencies: FrozenSet[Path] = field(default_factory=frozenset)


Compiler = Callable[[EntryConfig, BuildConfig, ManifestStore], CompiledEntry]


def _require_source(entry: EntryConfig, config: BuildConfig) -> Path:
    source = config.source_path(entry)
    if not source.is_file():
        raise BuildError(f"Source for entry '{entry.name}' not found: {source}")
    return source


def compile_template(entry: EntryConfig, config: BuildConfig, manifest: ManifestStore) -> CompiledEntry:
    source = _require_source(entry, config)
    recorder = DependencyRecorder()
    try:
        result = render_file(source, manifest, recorder)
    except (OSError, UnicodeDecodeError) as exc:
        raise BuildError(f"Unable to read template {source}: {exc}") from exc
    logger.debug("Rendered %s with %d fragment(s)", source, len(recorder))
    return CompiledEntry(
        entry=entry,
        content=result.output,
        render=result,
        dependencies=recorder.paths,
    )


def _run_command(entry: EntryConfig, source: Path, cwd: Path) -> str:
    argv = [part.replace("{source}", str(source)) for part in shlex.split(entry.command or "")]
    logger.info("Running %s for entry '%s'", argv[0] if argv else "<empty>", entry.name)
    try:
        completed = subprocess.run(argv, cwd=cwd, capture_output=True, text=True, check=False)
    except OSError as exc:
        raise BuildError(f"Command for entry '{entry.name}' could not start: {exc}") from exc
    if completed.returncode != 0:
        detail = completed.stderr.strip() or f"exit status {completed.returncode}"
        raise BuildError(f"Command for entry '{entry.name}' failed on {source}: {detail}")
    return completed.stdout


def compile_passthrough(entry: EntryConfig, config: BuildConfig, manifest: ManifestStore) -> CompiledEntry:
    source = _require_source(entry, config)
    if entry.command:
        return CompiledEntry(entry=entry, content=_run_command(entry, source, config.root))
    try:
        content = source.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise BuildError(f"Unable to read {source}: {exc}") from exc
    return CompiledEntry(entry=entry, content=content)


COMPILERS: Dict[str, Compiler] = {
    "template": compile_template,
    "script": compile_passthrough,
    "style": compile_passthrough,
}


def compile_entry(entry: EntryConfig, config: BuildConfig, manifest: ManifestStore) -> CompiledEntry:
    compiler = COMPILERS[entry.kind]
    return compiler(entry, config, manifest)
