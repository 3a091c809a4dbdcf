import os
from pathlib import Path
from typing import List

from assetbuild.config import load_config
from assetbuild.emit import BuildMode
from assetbuild.pipeline import BuildReport, execute_build
from assetbuild.pipeline.watch import snapshot, watch_build, watched_paths


def _bump(path: Path, text: str) -> None:
    path.write_text(text, encoding="utf-8")
    stat = path.stat()
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 5_000_000_000))


def test_watched_paths_include_fragments(sample_project: dict) -> None:
    config = load_config(sample_project["path"])
    report = execute_build(config, BuildMode.DEVELOPMENT)

    paths = watched_paths(config, sample_project["path"], report)

    assert sample_project["head"].resolve() in paths
    assert sample_project["meta"].resolve() in paths
    assert (sample_project["src"] / "app.js").resolve() in paths
    assert sample_project["path"] in paths


def test_snapshot_marks_missing_files(tmp_path: Path) -> None:
    present = tmp_path / "present.txt"
    present.write_text("x", encoding="utf-8")

    state = snapshot([present, tmp_path / "absent.txt"])

    assert state[present] is not None
    assert state[tmp_path / "absent.txt"] is None


def test_fragment_change_triggers_rebuild(sample_project: dict) -> None:
    reports: List[BuildReport] = []
    sleeps: List[float] = []

    def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)
        _bump(sample_project["meta"], '<meta charset="latin-1">\n')

    builds = watch_build(
        sample_project["path"],
        BuildMode.DEVELOPMENT,
        interval=0.25,
        max_builds=2,
        on_build=reports.append,
        sleep=fake_sleep,
    )

    assert builds == 2
    assert len(reports) == 2
    assert sleeps == [0.25]
    html = (sample_project["dist"] / "index.html").read_text(encoding="utf-8")
    assert '<meta charset="latin-1">' in html


def test_failed_build_keeps_watching(sample_project: dict) -> None:
    app = sample_project["src"] / "app.js"
    app.unlink()
    reports: List[BuildReport] = []

    def fake_sleep(seconds: float) -> None:
        _bump(app, "restored();\n")

    builds = watch_build(
        sample_project["path"],
        BuildMode.DEVELOPMENT,
        max_builds=2,
        on_build=reports.append,
        sleep=fake_sleep,
    )

    assert builds == 2
    assert len(reports) == 1
    assert (sample_project["dist"] / "app.js").read_text(encoding="utf-8") == "restored();\n"


def test_edit_during_build_triggers_rebuild(sample_project: dict) -> None:
    app = sample_project["src"] / "app.js"
    sleeps: List[float] = []

    def edit_once(report: BuildReport) -> None:
        if app.read_text(encoding="utf-8") != "edited();\n":
            _bump(app, "edited();\n")

    def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)
        assert len(sleeps) < 3, "change made during the first build was never noticed"

    builds = watch_build(
        sample_project["path"],
        BuildMode.DEVELOPMENT,
        max_builds=2,
        on_build=edit_once,
        sleep=fake_sleep,
    )

    assert builds == 2
    assert len(sleeps) == 1
    assert (sample_project["dist"] / "app.js").read_text(encoding="utf-8") == "edited();\n"
