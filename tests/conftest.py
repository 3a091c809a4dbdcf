from pathlib import Path
import textwrap

import pytest
from typer.testing import CliRunner

from assetbuild.config import settings


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def _fresh_environment(monkeypatch: pytest.MonkeyPatch):
    """
    Keep ASSETBUILD_* variables from the developer's shell out of tests.
    """
    for name in ("ASSETBUILD_MODE", "ASSETBUILD_LOG_LEVEL", "ASSETBUILD_CONFIG"):
        monkeypatch.delenv(name, raising=False)
    settings.get_environment.cache_clear()
    yield
    settings.get_environment.cache_clear()


@pytest.fixture
def sample_project(tmp_path: Path) -> dict:
    """
    Write a small project (template with fragments, script, stylesheet) and its build file.
    """
    src = tmp_path / "src"
    partials = src / "partials"
    partials.mkdir(parents=True)

    (src / "index.html").write_text(
        textwrap.dedent(
            """\
            <!DOCTYPE html>
            <html>
            {% include "partials/head.html" %}
            <body>
            <script src="{{ asset("app.js") }}"></script>
            </body>
            </html>
            """
        ),
        encoding="utf-8",
    )
    (partials / "head.html").write_text(
        textwrap.dedent(
            """\
            <head>
            <link rel="stylesheet" href="{{ asset("style.css") }}">
            {% include "meta.html" %}
            </head>
            """
        ),
        encoding="utf-8",
    )
    (partials / "meta.html").write_text('<meta charset="utf-8">\n', encoding="utf-8")
    (src / "app.js").write_text('console.log("hello");\n', encoding="utf-8")
    (src / "style.css").write_text("body { margin: 0; }\n", encoding="utf-8")

    config_text = textwrap.dedent(
        """
        source_dir = "src"
        output_dir = "dist"

        [[entry]]
        name = "index"
        source = "index.html"
        fingerprint = false

        [[entry]]
        name = "app"
        source = "app.js"

        [[entry]]
        name = "style"
        source = "style.css"
        """
    ).strip()
    path = tmp_path / "assetbuild.toml"
    path.write_text(config_text + "\n", encoding="utf-8")
    return {
        "path": path,
        "root": tmp_path,
        "src": src,
        "dist": tmp_path / "dist",
        "head": partials / "head.html",
        "meta": partials / "meta.html",
    }
