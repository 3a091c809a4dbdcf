"""
Shared utility helpers for filesystem access.
"""

from .filesystem import ensure_directory, safe_unlink, write_bytes_file, write_text_file

__all__ = [
    "ensure_directory",
    "safe_unlink",
    "write_bytes_file",
    "write_text_file",
]
