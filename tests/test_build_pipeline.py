import json
import sys
from pathlib import Path

import pytest

from assetbuild.config import load_config
from assetbuild.emit import BuildMode, content_digest
from assetbuild.manifest import ManifestError
from assetbuild.pipeline import BuildError, execute_build


def _manifest(dist: Path) -> dict:
    return json.loads((dist / "manifest.json").read_text(encoding="utf-8"))


def test_development_build_uses_stable_names(sample_project: dict) -> None:
    config = load_config(sample_project["path"])

    report = execute_build(config, BuildMode.DEVELOPMENT)

    dist = sample_project["dist"]
    assert sorted(p.name for p in dist.iterdir() if not p.name.startswith(".")) == [
        "app.js",
        "index.html",
        "manifest.json",
        "style.css",
    ]
    assert _manifest(dist) == {"app.js": "app.js", "index.html": "index.html", "style.css": "style.css"}
    html = (dist / "index.html").read_text(encoding="utf-8")
    assert '<script src="app.js"></script>' in html
    assert report.cleaned is None
    assert report.dependencies["index"] == frozenset(
        {sample_project["head"].resolve(), sample_project["meta"].resolve()}
    )


def test_production_build_fingerprints_and_uses_previous_manifest(sample_project: dict) -> None:
    config = load_config(sample_project["path"])
    dist = sample_project["dist"]

    first = execute_build(config, BuildMode.PRODUCTION)
    digest = content_digest('console.log("hello");\n'.encode("utf-8"))
    app_name = f"app.{digest}.js"
    assert first.manifest["app.js"] == app_name
    assert first.manifest["index.html"] == "index.html"
    # cold start: no previous manifest, so the template keeps the logical name
    assert '<script src="app.js"></script>' in (dist / "index.html").read_text(encoding="utf-8")

    second = execute_build(config, BuildMode.PRODUCTION)
    html = (dist / "index.html").read_text(encoding="utf-8")
    assert second.previous_manifest_entries == 3
    assert f'<script src="{app_name}"></script>' in html
    assert f'href="{second.manifest["style.css"]}"' in html


def test_production_build_cleans_stale_outputs(sample_project: dict) -> None:
    config = load_config(sample_project["path"])
    dist = sample_project["dist"]
    dist.mkdir()
    (dist / "robots.txt").write_text("User-agent: *\n", encoding="utf-8")

    first = execute_build(config, BuildMode.PRODUCTION)
    old_app = first.manifest["app.js"]
    (sample_project["src"] / "app.js").write_text('console.log("changed");\n', encoding="utf-8")

    second = execute_build(config, BuildMode.PRODUCTION)

    assert second.manifest["app.js"] != old_app
    assert not (dist / old_app).exists()
    assert (dist / second.manifest["app.js"]).exists()
    assert (dist / "robots.txt").exists()
    assert [path.name for path in second.cleaned.removed] == [old_app]


def test_production_clean_keeps_unrelated_fingerprint_lookalikes(sample_project: dict) -> None:
    config = load_config(sample_project["path"])
    dist = sample_project["dist"]
    dist.mkdir()
    for name in ("vue.3.js", "font.cafe.css", "app.deadbeef.js"):
        (dist / name).write_text(name, encoding="utf-8")

    first = execute_build(config, BuildMode.PRODUCTION)
    (sample_project["src"] / "app.js").write_text('console.log("changed");\n', encoding="utf-8")
    second = execute_build(config, BuildMode.PRODUCTION)

    assert [path.name for path in second.cleaned.removed] == [first.manifest["app.js"]]
    for name in ("vue.3.js", "font.cafe.css", "app.deadbeef.js"):
        assert (dist / name).exists()


def test_clean_can_be_disabled(sample_project: dict) -> None:
    config = load_config(sample_project["path"])
    dist = sample_project["dist"]
    first = execute_build(config, BuildMode.PRODUCTION)
    (sample_project["src"] / "app.js").write_text("changed();\n", encoding="utf-8")

    report = execute_build(config, BuildMode.PRODUCTION, clean=False)

    assert report.cleaned is None
    assert (dist / first.manifest["app.js"]).exists()


def test_no_manifest_flag_skips_previous_manifest(sample_project: dict) -> None:
    config = load_config(sample_project["path"])
    execute_build(config, BuildMode.PRODUCTION)

    report = execute_build(config, BuildMode.PRODUCTION, use_manifest=False)

    assert report.previous_manifest_entries == 0
    html = (sample_project["dist"] / "index.html").read_text(encoding="utf-8")
    assert '<script src="app.js"></script>' in html


def test_broken_template_does_not_block_other_entries(sample_project: dict) -> None:
    src = sample_project["src"]
    (src / "broken.html").write_text('<p>{% include "partials/nope.html" %}</p>\n', encoding="utf-8")
    config_path = sample_project["path"]
    config_path.write_text(
        config_path.read_text(encoding="utf-8")
        + '\n[[entry]]\nname = "broken"\nsource = "broken.html"\nfingerprint = false\n',
        encoding="utf-8",
    )
    config = load_config(config_path)

    report = execute_build(config, BuildMode.DEVELOPMENT, max_workers=2)

    dist = sample_project["dist"]
    assert set(report.template_errors) == {"broken"}
    broken = (dist / "broken.html").read_text(encoding="utf-8")
    assert "assetbuild: template error" in broken
    assert broken.endswith('<p>{% include "partials/nope.html" %}</p>\n')
    assert "<!DOCTYPE html>" in (dist / "index.html").read_text(encoding="utf-8")
    assert (dist / "app.js").exists()
    assert "broken.html" in _manifest(dist)


def test_runtime_template_error_does_not_block_other_entries(sample_project: dict) -> None:
    src = sample_project["src"]
    (src / "partials" / "bad.html").write_text("<em>{{ 1 // 0 }}</em>\n", encoding="utf-8")
    (src / "broken.html").write_text('<p>{{ asset() }}</p>\n', encoding="utf-8")
    (src / "nested.html").write_text('{% include "partials/bad.html" %}\n', encoding="utf-8")
    config_path = sample_project["path"]
    config_path.write_text(
        config_path.read_text(encoding="utf-8")
        + '\n[[entry]]\nname = "broken"\nsource = "broken.html"\n'
        + '\n[[entry]]\nname = "nested"\nsource = "nested.html"\n',
        encoding="utf-8",
    )
    config = load_config(config_path)

    report = execute_build(config, BuildMode.PRODUCTION, max_workers=2)

    dist = sample_project["dist"]
    assert set(report.template_errors) == {"broken", "nested"}
    assert "TypeError" in str(report.template_errors["broken"])
    assert report.template_errors["nested"].path == (src / "partials" / "bad.html").resolve()
    assert (dist / report.manifest["broken.html"]).read_text(encoding="utf-8").endswith("<p>{{ asset() }}</p>\n")
    assert (dist / report.manifest["app.js"]).exists()
    assert (dist / "index.html").exists()
    assert set(_manifest(dist)) == {"app.js", "broken.html", "index.html", "nested.html", "style.css"}


def test_malformed_previous_manifest_aborts(sample_project: dict) -> None:
    config = load_config(sample_project["path"])
    dist = sample_project["dist"]
    dist.mkdir()
    (dist / "manifest.json").write_text("[]", encoding="utf-8")

    with pytest.raises(ManifestError):
        execute_build(config, BuildMode.PRODUCTION)

    assert not (dist / "index.html").exists()


def test_missing_entry_source_is_fatal(sample_project: dict) -> None:
    (sample_project["src"] / "app.js").unlink()
    config = load_config(sample_project["path"])

    with pytest.raises(BuildError) as exc:
        execute_build(config, BuildMode.DEVELOPMENT)

    assert "app.js" in str(exc.value)
    assert not (sample_project["dist"] / "manifest.json").exists()


def test_entry_command_output_is_emitted(sample_project: dict, tmp_path: Path) -> None:
    script = tmp_path / "compile_style.py"
    script.write_text(
        "import sys\nprint(open(sys.argv[1]).read().replace('$accent', 'red'), end='')\n",
        encoding="utf-8",
    )
    (sample_project["src"] / "theme.scss").write_text("a { color: $accent; }\n", encoding="utf-8")
    command = f"{Path(sys.executable).as_posix()} {script.as_posix()} {{source}}"
    config_path = sample_project["path"]
    config_path.write_text(
        config_path.read_text(encoding="utf-8")
        + f'\n[[entry]]\nname = "theme"\nsource = "theme.scss"\ncommand = "{command}"\n',
        encoding="utf-8",
    )
    config = load_config(config_path)

    execute_build(config, BuildMode.DEVELOPMENT)

    assert (sample_project["dist"] / "theme.css").read_text(encoding="utf-8") == "a { color: red; }\n"


def test_failing_command_is_fatal(sample_project: dict) -> None:
    (sample_project["src"] / "theme.scss").write_text("a {}\n", encoding="utf-8")
    config_path = sample_project["path"]
    config_path.write_text(
        config_path.read_text(encoding="utf-8")
        + '\n[[entry]]\nname = "theme"\nsource = "theme.scss"\ncommand = "definitely-not-a-real-sass-binary {source}"\n',
        encoding="utf-8",
    )
    config = load_config(config_path)

    with pytest.raises(BuildError) as exc:
        execute_build(config, BuildMode.DEVELOPMENT)

    assert "theme" in str(exc.value)
