"""
Removal of fingerprinted outputs left behind by earlier production builds.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Iterable, List

from ..util import safe_unlink

logger = logging.getLogger(__name__)

# Only names shaped like "<name>.<hex digest>.<ext>" are ever candidates.
FINGERPRINT_PATTERN = re.compile(r"^(?P<name>[^.]+)\.(?P<digest>[0-9a-f]+)\.(?P<ext>[A-Za-z0-9]+)$")


def fingerprint_pattern(names: Iterable[str], extensions: Iterable[str], hash_length: int) -> re.Pattern[str]:
    """
    Narrow the cleaner to outputs this build could have produced.

    Only "<name>.<digest>.<ext>" files whose name and extension belong to a
    configured entry and whose digest has exactly hash_length hex characters
    match, so vendor files such as "vue.3.js" are left alone.
    """
    name_group = "|".join(sorted(re.escape(name) for name in set(names)))
    ext_group = "|".join(sorted(re.escape(ext) for ext in set(extensions)))
    if not name_group or not ext_group:
        # matches nothing
        return re.compile(r"(?!)")
    return re.compile(
        rf"^(?P<name>{name_group})\.(?P<digest>[0-9a-f]{{{hash_length}}})\.(?P<ext>{ext_group})$"
    )


@dataclass
class CleanReport:
    """
    Stores what the cleaner did.

    Attributes:
        root: The output directory that was reconciled.
        removed: Stale fingerprinted files deleted (or that would be, on dry runs).
        kept: Fingerprinted files referenced by the current manifest.
        ignored: Files that do not look fingerprinted and were left alone.
    """
    root: Path
    removed: List[Path] = field(default_factory=list)
    kept: List[Path] = field(default_factory=list)
    ignored: List[Path] = field(default_factory=list)

    def summary_rows(self) -> Iterable[tuple[str, str]]:
        yield ("Output directory", str(self.root))
        yield ("Stale files removed", str(len(self.removed)))
        yield ("Current files kept", str(len(self.kept)))
        yield ("Other files ignored", str(len(self.ignored)))


def _basename(resolved_path: str) -> str:
    # manifest values may carry a public path prefix such as "/static/"
    return PurePosixPath(resolved_path).name


def clean_stale_outputs(
    output_dir: Path | str,
    current_paths: Iterable[str],
    *,
    dry_run: bool = False,
    pattern: re.Pattern[str] = FINGERPRINT_PATTERN,
) -> CleanReport:
    """
    Delete fingerprinted files in output_dir that the current manifest no longer references.

    Args:
        output_dir: Flat output directory.
        current_paths: Resolved paths (manifest values) of the current build.
        dry_run: Report what would be removed without deleting anything.
        pattern: Filenames not matching this are never deleted.

    Returns:
        A CleanReport describing removed, kept and ignored files.
    """
    root = Path(output_dir).expanduser().resolve()
    report = CleanReport(root=root)
    if not root.is_dir():
        logger.info("Output directory %s does not exist; nothing to clean", root)
        return report

    keep = {_basename(path) for path in current_paths}
    for candidate in sorted(root.iterdir()):
        if not candidate.is_file() or not pattern.match(candidate.name):
            report.ignored.append(candidate)
            continue
        if candidate.name in keep:
            report.kept.append(candidate)
            continue
        if safe_unlink(candidate, base_dir=root, dry_run=dry_run):
            logger.info("Removed stale output %s", candidate.name)
            report.removed.append(candidate)
    return report
