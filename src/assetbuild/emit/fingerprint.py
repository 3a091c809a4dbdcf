"""
Content fingerprinting and output emission.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Union

from ..util import write_bytes_file

logger = logging.getLogger(__name__)

DEFAULT_HASH_LENGTH = 20


class BuildMode(str, Enum):
    DEVELOPMENT = "development"
    PRODUCTION = "production"


class EmissionError(RuntimeError):
    """Raised when an output file cannot be written."""


@dataclass(frozen=True)
class EmittedAsset:
    """
    Record of one emitted output.

    Attributes:
        logical_name: Manifest key, e.g. "app.js".
        resolved_path: Manifest value, e.g. "app.3f2a....js".
        digest: Content digest of the written bytes.
        output_path: Absolute path of the written file.
    """
    logical_name: str
    resolved_path: str
    digest: str
    output_path: Path

    @property
    def filename(self) -> str:
        return self.output_path.name


def content_digest(content: bytes, length: int = DEFAULT_HASH_LENGTH) -> str:
    """Deterministic hex digest of the content, truncated to ``length``."""
    return hashlib.sha256(content).hexdigest()[:length]


def output_filename(
    name: str,
    extension: str,
    content: bytes,
    mode: BuildMode,
    *,
    fingerprint: bool = True,
    hash_length: int = DEFAULT_HASH_LENGTH,
) -> str:
    """
    ``{name}.{digest}.{ext}`` in production, ``{name}.{ext}`` otherwise.
    """
    if mode is BuildMode.PRODUCTION and fingerprint:
        return f"{name}.{content_digest(content, hash_length)}.{extension}"
    return f"{name}.{extension}"


def emit(
    name: str,
    content: Union[str, bytes],
    mode: BuildMode,
    *,
    extension: str,
    output_dir: Path,
    fingerprint: bool = True,
    hash_length: int = DEFAULT_HASH_LENGTH,
    public_path: str = "",
    manifest_base_path: str = "",
) -> EmittedAsset:
    """
    Write one build output and describe it for the manifest.

    Raises:
        EmissionError: If the file cannot be written.
    """
    payload = content.encode("utf-8") if isinstance(content, str) else content
    filename = output_filename(
        name,
        extension,
        payload,
        mode,
        fingerprint=fingerprint,
        hash_length=hash_length,
    )
    target = Path(output_dir) / filename
    try:
        written = write_bytes_file(target, payload, lock=False)
    except OSError as exc:
        raise EmissionError(f"Unable to write {target}: {exc}") from exc
    logger.info("Emitted %s (%d bytes)", written.name, len(payload))
    return EmittedAsset(
        logical_name=f"{manifest_base_path}{name}.{extension}",
        resolved_path=f"{public_path}{filename}",
        digest=content_digest(payload, hash_length),
        output_path=written,
    )
