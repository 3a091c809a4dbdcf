"""
Template rendering with asset-name resolution and fragment tracking.

Templates are Jinja2 sources limited to two features:

* ``{{ asset("app.js") }}`` embeds whatever the resolver returns for a
  logical asset name.
* ``{% include "partials/head.html" %}`` splices in another template, with the
  path taken relative to the including file.

A template that fails to render never aborts the build: the caller gets the
original text back together with the error, and the emitted file carries a
visible marker.
"""

from __future__ import annotations

import logging
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Set, Tuple

from jinja2 import BaseLoader, Environment, StrictUndefined, TemplateError, TemplateNotFound, TemplateSyntaxError, meta

from ..manifest import ManifestStore
from .dependencies import DependencyRecorder

logger = logging.getLogger(__name__)

ASSET_FUNCTION = "asset"
ERROR_MARKER = "<!-- assetbuild: template error: {error} -->\n"

Resolver = Callable[[str], str]
IncludeCallback = Callable[[Path], None]


def _read_source(path: Path) -> str:
    # newline="" keeps "\r\n" line endings intact
    with path.open(encoding="utf-8", newline="") as handle:
        return handle.read()


@dataclass(frozen=True)
class TemplateSource:
    path: Path
    text: str

    @classmethod
    def from_file(cls, path: Path | str) -> "TemplateSource":
        resolved = Path(path).expanduser().resolve()
        return cls(path=resolved, text=_read_source(resolved))


class TemplateRenderError(RuntimeError):
    """A template could not be rendered; carries the originating file."""

    def __init__(self, message: str, *, path: Path, lineno: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = path
        self.lineno = lineno

    def __str__(self) -> str:
        location = f"{self.path}:{self.lineno}" if self.lineno else str(self.path)
        return f"{location}: {self.message}"


@dataclass(frozen=True)
class RenderResult:
    """
    Outcome of one render: rendered text, or the original text plus an error.
    """
    source: TemplateSource
    text: str
    error: Optional[TemplateRenderError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def output(self) -> str:
        """Text to emit; failed renders get an inline error marker."""
        if self.error is None:
            return self.text
        # "--" would terminate the HTML comment early
        detail = str(self.error).replace("--", "- -")
        return ERROR_MARKER.format(error=detail) + self.text


class _IncludeCycle(Exception):
    def __init__(self, chain: List[Path]) -> None:
        super().__init__(" -> ".join(str(path) for path in chain))
        self.chain = chain


class _FragmentLoader(BaseLoader):
    """Serves the entry template from memory and fragments from disk."""

    def __init__(self, entry: TemplateSource, on_include: IncludeCallback) -> None:
        self._entry = entry
        self._on_include = on_include
        self.loaded: Set[str] = {str(entry.path)}

    def get_source(self, environment: Environment, template: str) -> Tuple[str, str, Callable[[], bool]]:
        path = Path(template)
        if path == self._entry.path:
            return self._entry.text, str(path), lambda: True
        self._on_include(path)
        if not path.is_file():
            raise TemplateNotFound(template)
        text = _read_source(path)
        self.loaded.add(str(path))
        return text, str(path), lambda: True


class _RelativeEnvironment(Environment):
    """Resolves include names against the including template's directory."""

    def join_path(self, template: str, parent: str) -> str:
        return str((Path(parent).parent / template).resolve())


def _make_environment(entry: TemplateSource, resolve: Resolver, on_include: IncludeCallback) -> _RelativeEnvironment:
    environment = _RelativeEnvironment(
        loader=_FragmentLoader(entry, on_include),
        autoescape=False,
        keep_trailing_newline=True,
        newline_sequence="\r\n" if "\r\n" in entry.text else "\n",
        undefined=StrictUndefined,
        auto_reload=False,
    )
    environment.globals[ASSET_FUNCTION] = resolve
    return environment


def _referenced_fragments(environment: Environment, text: str, path: Path) -> Iterator[Path]:
    ast = environment.parse(text, name=str(path), filename=str(path))
    for name in meta.find_referenced_templates(ast):
        # dynamic names are only known while rendering; the loader records them
        if name is None:
            continue
        yield Path(environment.join_path(name, str(path)))


def _walk_includes(environment: _RelativeEnvironment, entry: TemplateSource) -> None:
    """
    Visit the static include graph depth-first with an explicit stack.

    Raises _IncludeCycle when a fragment is reached again while still open.
    Missing fragments are skipped here; rendering reports them.
    """
    loader = environment.loader
    stack: List[Tuple[Path, Iterator[Path]]] = [
        (entry.path, _referenced_fragments(environment, entry.text, entry.path))
    ]
    finished: Set[Path] = set()
    while stack:
        current, pending = stack[-1]
        child = next(pending, None)
        if child is None:
            stack.pop()
            finished.add(current)
            continue
        open_paths = [path for path, _ in stack]
        if child in open_paths:
            raise _IncludeCycle(open_paths[open_paths.index(child):] + [child])
        if child in finished:
            continue
        try:
            text, _, _ = loader.get_source(environment, str(child))
        except TemplateNotFound:
            continue
        stack.append((child, _referenced_fragments(environment, text, child)))


def _locate(exc: BaseException, loaded: Set[str], fallback: Path) -> Tuple[Path, Optional[int]]:
    """Find the innermost template frame in a rewritten Jinja traceback."""
    location: Tuple[Path, Optional[int]] = (fallback, None)
    for frame in traceback.extract_tb(exc.__traceback__):
        if frame.filename in loaded:
            location = (Path(frame.filename), frame.lineno)
    return location


def _to_render_error(exc: BaseException, entry: TemplateSource, loaded: Set[str]) -> TemplateRenderError:
    if isinstance(exc, TemplateSyntaxError):
        path = Path(exc.filename) if exc.filename else entry.path
        return TemplateRenderError(exc.message or str(exc), path=path, lineno=exc.lineno)
    if isinstance(exc, _IncludeCycle):
        return TemplateRenderError(f"include cycle: {exc}", path=exc.chain[-2])
    if isinstance(exc, TemplateNotFound):
        path, lineno = _locate(exc, loaded, entry.path)
        return TemplateRenderError(f"included fragment not found: {exc.name}", path=path, lineno=lineno)
    path, lineno = _locate(exc, loaded, entry.path)
    if isinstance(exc, TemplateError):
        message = str(exc) or type(exc).__name__
    else:
        message = f"{type(exc).__name__}: {exc}"
    return TemplateRenderError(message, path=path, lineno=lineno)


def render(source: TemplateSource, resolve: Resolver, on_include: IncludeCallback) -> RenderResult:
    """
    Render a template source.

    Args:
        source: Template text and the file it came from.
        resolve: Maps a logical asset name to the path embedded in the output.
        on_include: Called with the absolute path of every fragment reached.

    Returns:
        A RenderResult; on failure it holds the original text and the error.
    """
    environment = _make_environment(source, resolve, on_include)
    loaded = environment.loader.loaded
    try:
        _walk_includes(environment, source)
        template = environment.get_template(str(source.path))
        rendered = template.render()
    except Exception as exc:
        error = _to_render_error(exc, source, loaded)
        logger.warning("Template error, emitting unrendered source: %s", error)
        return RenderResult(source=source, text=source.text, error=error)
    return RenderResult(source=source, text=rendered)


def render_file(path: Path | str, manifest: ManifestStore, recorder: DependencyRecorder) -> RenderResult:
    """
    Read a template from disk and render it against a manifest.

    The recorder is reset first so it holds only this render's fragments.
    """
    source = TemplateSource.from_file(path)
    recorder.reset()
    return render(source, manifest.resolve, recorder.record)
