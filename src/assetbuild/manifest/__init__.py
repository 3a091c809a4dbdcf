"""
Asset manifest loading and persistence.
"""

from .store import ManifestError, ManifestStore, load_manifest, parse_manifest, write_manifest

__all__ = ["ManifestError", "ManifestStore", "load_manifest", "parse_manifest", "write_manifest"]
