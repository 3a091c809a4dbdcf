"""
Read-only mapping from logical asset names to emitted paths.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Iterator, Mapping, Optional

from ..util import write_text_file

logger = logging.getLogger(__name__)


class ManifestError(RuntimeError):
    """Raised when a manifest file exists but cannot be used."""


@dataclass(frozen=True)
class ManifestStore:
    """
    Immutable manifest snapshot.

    Unknown names resolve to themselves so that first builds (no manifest yet)
    and unmanaged assets keep working.
    """
    entries: Mapping[str, str] = field(default_factory=dict)
    origin: Optional[Path] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "entries", MappingProxyType(dict(self.entries)))

    def resolve(self, logical_name: str) -> str:
        return self.entries.get(logical_name, logical_name)

    def __contains__(self, logical_name: object) -> bool:
        return logical_name in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.entries)

    @classmethod
    def empty(cls) -> "ManifestStore":
        return cls()


def parse_manifest(text: str, origin: Optional[Path] = None) -> ManifestStore:
    """
    Parse manifest JSON text.

    Raises:
        ManifestError: If the text is not a JSON object of string to string.
    """
    label = str(origin) if origin else "<manifest>"
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ManifestError(f"Malformed manifest {label}: {exc}") from exc
    if not isinstance(data, dict):
        raise ManifestError(f"Malformed manifest {label}: expected a JSON object, got {type(data).__name__}")
    for key, value in data.items():
        if not isinstance(value, str):
            raise ManifestError(f"Malformed manifest {label}: value for '{key}' must be a string")
    return ManifestStore(entries=data, origin=origin)


def load_manifest(path: Optional[Path | str]) -> ManifestStore:
    """
    Load the manifest written by a previous build.

    A missing file yields an empty store; a present but malformed one raises.
    """
    if path is None:
        return ManifestStore.empty()
    manifest_path = Path(path).expanduser().resolve()
    if not manifest_path.exists():
        logger.info("No manifest at %s; asset names resolve to themselves", manifest_path)
        return ManifestStore.empty()
    try:
        text = manifest_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestError(f"Unable to read manifest {manifest_path}: {exc}") from exc
    store = parse_manifest(text, origin=manifest_path)
    logger.info("Loaded %d manifest entries from %s", len(store), manifest_path)
    return store


def write_manifest(path: Path | str, entries: Mapping[str, str]) -> Path:
    """
    Persist the manifest for the next build invocation.
    """
    payload = json.dumps(dict(entries), indent=2, sort_keys=True) + "\n"
    target = write_text_file(path, payload)
    logger.debug("Wrote %d manifest entries to %s", len(entries), target)
    return target
