"""
Output emission, fingerprinting and stale-output cleaning.
"""

from .cleaner import FINGERPRINT_PATTERN, CleanReport, clean_stale_outputs, fingerprint_pattern
from .fingerprint import (
    DEFAULT_HASH_LENGTH,
    BuildMode,
    EmissionError,
    EmittedAsset,
    content_digest,
    emit,
    output_filename,
)

__all__ = [
    "FINGERPRINT_PATTERN",
    "CleanReport",
    "clean_stale_outputs",
    "fingerprint_pattern",
    "DEFAULT_HASH_LENGTH",
    "BuildMode",
    "EmissionError",
    "EmittedAsset",
    "content_digest",
    "emit",
    "output_filename",
]
