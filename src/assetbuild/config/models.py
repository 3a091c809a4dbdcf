"""
Pydantic models for validating and hashing build configuration files.
"""

from __future__ import annotations

import hashlib
import json
import re
import tomllib
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

DEFAULT_CONFIG_NAME = "assetbuild.toml"

EntryKind = Literal["template", "script", "style"]

_ENTRY_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

# source suffix -> (kind, output extension)
_SUFFIX_KINDS: Dict[str, tuple[str, str]] = {
    ".html": ("template", "html"),
    ".htm": ("template", "html"),
    ".j2": ("template", "html"),
    ".jinja": ("template", "html"),
    ".ejs": ("template", "html"),
    ".js": ("script", "js"),
    ".mjs": ("script", "js"),
    ".css": ("style", "css"),
    ".scss": ("style", "css"),
    ".sass": ("style", "css"),
}

_DEFAULT_EXTENSIONS = {"template": "html", "script": "js", "style": "css"}


class ConfigError(RuntimeError):
    """Raised when configuration files cannot be loaded or validated."""


class EntryConfig(BaseModel):
    """
    One build entry point.

    Attributes:
        name: Output base name (e.g. "app" emits app.js / app.<digest>.js).
        source: Source file, relative to the source directory.
        kind: "template", "script" or "style"; inferred from the source suffix.
        extension: Output extension; inferred from the kind.
        fingerprint: Embed a content digest in production filenames.
        command: External command producing the output on stdout. ``{source}``
            is replaced with the absolute source path.
    """
    name: str
    source: Path
    kind: Optional[EntryKind] = None
    extension: Optional[str] = None
    fingerprint: bool = True
    command: Optional[str] = None

    model_config = {"extra": "forbid"}

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        if not _ENTRY_NAME_PATTERN.match(value):
            raise ValueError(f"entry name '{value}' may only contain letters, digits, '-' and '_'")
        return value

    @field_validator("extension")
    @classmethod
    def _strip_extension(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.lstrip(".")
        if not value or "." in value:
            raise ValueError("extension must be a single suffix such as 'js'")
        return value

    @model_validator(mode="after")
    def _infer_kind(self) -> "EntryConfig":
        inferred = _SUFFIX_KINDS.get(self.source.suffix.lower())
        if self.kind is None:
            if inferred is None:
                raise ValueError(
                    f"cannot infer kind for '{self.source}'; set kind to template, script or style"
                )
            self.kind = inferred[0]
        if self.extension is None:
            self.extension = _DEFAULT_EXTENSIONS[self.kind]
        if self.kind == "style" and self.command is None and self.source.suffix.lower() != ".css":
            raise ValueError(f"stylesheet '{self.source}' needs a command to compile it to CSS")
        if self.kind == "template" and self.command is not None:
            raise ValueError("template entries are rendered internally and cannot set a command")
        return self

    @property
    def logical_name(self) -> str:
        return f"{self.name}.{self.extension}"


class BuildConfig(BaseModel):
    """
    Top-level configuration for a build.

    Attributes:
        root: Directory that relative paths are resolved against.
        source_dir: Directory containing entry sources and template fragments.
        output_dir: Flat directory receiving emitted files and the manifest.
        manifest_name: Filename of the manifest inside output_dir.
        public_path: Prefix added to every manifest value.
        manifest_base_path: Prefix added to every manifest key.
        hash_length: Number of hex digits of the content digest kept in filenames.
        clean: Remove stale fingerprinted files after production builds.
        entries: Entry points to compile.
    """
    root: Path = Field(default_factory=Path.cwd)
    source_dir: Path = Path("src")
    output_dir: Path = Path("dist")
    manifest_name: str = "manifest.json"
    public_path: str = ""
    manifest_base_path: str = ""
    hash_length: int = Field(default=20, ge=4, le=64)
    clean: bool = True
    entries: List[EntryConfig] = Field(default_factory=list)

    model_config = {
        "extra": "forbid",
        "arbitrary_types_allowed": True,
    }

    @field_validator("manifest_name")
    @classmethod
    def _check_manifest_name(cls, value: str) -> str:
        if not value or Path(value).name != value:
            raise ValueError("manifest_name must be a plain filename")
        return value

    @model_validator(mode="after")
    def _check_entries(self) -> "BuildConfig":
        if not self.entries:
            raise ValueError("at least one [[entry]] is required")
        seen: Dict[str, str] = {}
        for entry in self.entries:
            if entry.name in seen:
                raise ValueError(f"duplicate entry name '{entry.name}'")
            seen[entry.name] = entry.logical_name
        logical = list(seen.values())
        duplicates = sorted({name for name in logical if logical.count(name) > 1})
        if duplicates:
            raise ValueError(f"entries produce the same output name: {', '.join(duplicates)}")
        return self

    @property
    def source_root(self) -> Path:
        return (self.root / self.source_dir).resolve()

    @property
    def output_root(self) -> Path:
        return (self.root / self.output_dir).resolve()

    @property
    def manifest_path(self) -> Path:
        return self.output_root / self.manifest_name

    def source_path(self, entry: EntryConfig) -> Path:
        return (self.source_root / entry.source).resolve()

    @property
    def hash(self) -> str:
        """
        Deterministic hash of the normalized config, used to detect changes.
        """
        payload = self.model_dump(mode="json", round_trip=True, exclude={"root"})
        blob = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
        return hashlib.sha256(blob).hexdigest()


def load_config(path: Path | str) -> BuildConfig:
    """
    Load and validate a TOML build file into a BuildConfig instance.

    Args:
        path: Path to the TOML build file.

    Returns:
        A validated BuildConfig whose relative paths resolve against the file's directory.

    Raises:
        ConfigError: If the file is missing, unreadable, or invalid.
    """
    config_path = Path(path).expanduser().resolve()
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with config_path.open("rb") as handle:
            raw_data: Dict[str, Any] = tomllib.load(handle)
    except OSError as exc:
        raise ConfigError(f"Unable to read configuration file: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in configuration file: {exc}") from exc

    raw_data = _normalize_toml_schema(raw_data)
    raw_data["root"] = config_path.parent

    try:
        return BuildConfig.model_validate(raw_data)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc


def _normalize_toml_schema(data: Any) -> Dict[str, Any]:
    """
    Map singular [[entry]] table arrays onto the internal ``entries`` list.
    """
    if not isinstance(data, dict):
        raise ConfigError("Configuration root must be a TOML table/object.")
    if "entries" in data:
        raise ConfigError("Use [[entry]] blocks (singular) instead of [[entries]].")
    if "root" in data:
        raise ConfigError("'root' is derived from the configuration file location and cannot be set.")

    normalized = dict(data)
    normalized["entries"] = _coerce_table_array(normalized.pop("entry", None), "entry")
    return normalized


def _coerce_table_array(value: Any, label: str) -> list[dict]:
    if value is None:
        return []
    if isinstance(value, dict):
        return [value]
    if isinstance(value, list):
        if not all(isinstance(item, dict) for item in value):
            raise ConfigError(f"Each [[{label}]] entry must be a table/object.")
        return value
    raise ConfigError(f"Invalid [{label}] block; expected a table or array of tables.")
