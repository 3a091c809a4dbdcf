"""
Build orchestration: compile entries, emit outputs, reconcile the output directory.
"""

from .compilers import BuildError, CompiledEntry, compile_entry
from .executor import BuildReport, clean_pattern, execute_build
from .watch import watch_build

__all__ = ["BuildError", "CompiledEntry", "compile_entry", "BuildReport", "clean_pattern", "execute_build", "watch_build"]
