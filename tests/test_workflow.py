from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from bcp_exorcist.release_config import ReleaseConfig, config_from_dict, load_config
from bcp_exorcist.workflow import WorkflowError, check_workflow, check_workflow_text, render_workflow, write_workflow


def test_rendered_default_workflow_is_conforming() -> None:
    config = ReleaseConfig()
    text = render_workflow(config)
    assert check_workflow_text(text, config) == []


def test_rendered_workflow_structure() -> None:
    data = yaml.safe_load(render_workflow(ReleaseConfig()))

    triggers = data[True]
    assert triggers["push"]["tags"] == ["v*"]
    assert "workflow_dispatch" in triggers

    build = data["jobs"]["build"]
    assert build["runs-on"] == "${{ matrix.os }}"
    assert build["strategy"]["matrix"]["os"] == ["ubuntu-latest", "windows-latest", "macos-latest"]
    assert build["strategy"]["matrix"]["python-version"] == ["3.9", "3.10", "3.11", "3.12"]
    runs = [step.get("run", "") for step in build["steps"]]
    assert "python -m build" in runs
    assert any("pip install build twine" in run for run in runs)

    publish = data["jobs"]["publish"]
    assert publish["needs"] == "build"
    assert publish["steps"][-1]["with"]["password"] == "${{ secrets.PYPI_API_TOKEN }}"


def test_checked_in_workflow_is_up_to_date(repo_root: Path) -> None:
    config = load_config(repo_root / "release.yaml")
    manifest = repo_root / ".github" / "workflows" / "release.yml"
    assert check_workflow(manifest, config) == []
    assert manifest.read_text(encoding="utf-8") == render_workflow(config)


def test_custom_config_roundtrip(release_config_file: Path) -> None:
    config = load_config(release_config_file)
    text = render_workflow(config)
    assert "workflow_dispatch" not in text
    assert check_workflow_text(text, config) == []
    assert check_workflow_text(text, ReleaseConfig()) != []


def test_write_workflow(tmp_path: Path) -> None:
    dst = write_workflow(ReleaseConfig(), tmp_path / ".github" / "workflows" / "release.yml")
    assert dst.exists()
    assert b"\r\n" not in dst.read_bytes()


def test_check_reports_missing_dispatch() -> None:
    config = ReleaseConfig()
    text = render_workflow(config).replace("  workflow_dispatch:\n", "")
    assert check_workflow_text(text, config) == ["manual invocation (workflow_dispatch) is not enabled"]


def test_check_reports_publish_without_build_dependency() -> None:
    config = ReleaseConfig()
    text = render_workflow(config).replace("    needs: build\n", "")
    assert check_workflow_text(text, config) == ["job 'publish' does not depend on job 'build'"]


def test_check_reports_unquoted_python_versions() -> None:
    config = ReleaseConfig()
    text = render_workflow(config).replace("'3.10'", "3.10")
    problems = check_workflow_text(text, config)
    assert len(problems) == 1
    assert "unquoted numeric" in problems[0]


def test_check_reports_matrix_mismatch() -> None:
    config = ReleaseConfig()
    text = render_workflow(config).replace(", 'macos-latest'", "")
    problems = check_workflow_text(text, config)
    assert len(problems) == 1
    assert problems[0].startswith("matrix.os is")


def test_check_reports_wrong_tag_pattern() -> None:
    config = ReleaseConfig()
    text = render_workflow(config).replace("- 'v*'", "- 'release-*'")
    problems = check_workflow_text(text, config)
    assert len(problems) == 1
    assert "push trigger" in problems[0]


def test_check_missing_jobs() -> None:
    text = "name: x\non:\n  push:\n    tags: ['v*']\n  workflow_dispatch:\n"
    assert check_workflow_text(text, ReleaseConfig()) == ["workflow has no jobs"]


def test_check_invalid_yaml() -> None:
    with pytest.raises(WorkflowError):
        check_workflow_text("jobs: [unclosed", ReleaseConfig())


def test_check_missing_file(tmp_path: Path) -> None:
    with pytest.raises(WorkflowError, match="not found"):
        check_workflow(tmp_path / "release.yml", ReleaseConfig())


def _build_steps(text: str) -> list[dict]:
    return yaml.safe_load(text)["jobs"]["build"]["steps"]


@pytest.mark.parametrize(
    "command",
    [
        "python -m build --outdir dist/ # sdist: wheel",
        "echo stage: build && python -m build",
        "python -m build --config-setting='x=1'",
    ],
)
def test_build_command_is_kept_verbatim(command: str) -> None:
    config = config_from_dict({"build": {"command": command}})
    text = render_workflow(config)

    assert check_workflow_text(text, config) == []
    runs = [step.get("run") for step in _build_steps(text)]
    assert command in runs


def test_artifact_name_with_special_characters() -> None:
    config = config_from_dict({"artifact": {"name": "dist: #1"}})
    data = yaml.safe_load(render_workflow(config))

    upload = data["jobs"]["build"]["steps"][-1]["with"]
    assert upload["name"] == "dist: #1-${{ matrix.os }}-${{ matrix.python-version }}"
    download = data["jobs"]["publish"]["steps"][0]["with"]
    assert download["pattern"] == "dist: #1-*"


@pytest.mark.parametrize("path", ["dist", "dist/", "build/out//"])
def test_twine_check_globs_inside_artifact_path(path: str) -> None:
    config = config_from_dict({"artifact": {"path": path}})
    runs = [step.get("run") for step in _build_steps(render_workflow(config))]
    assert f"twine check {path.rstrip('/')}/*" in runs


def test_check_workflow_accepts_str_path(tmp_path: Path) -> None:
    config = ReleaseConfig()
    dst = write_workflow(config, tmp_path / "release.yml")
    assert check_workflow(str(dst), config) == []


def test_check_workflow_missing_str_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    with pytest.raises(WorkflowError, match="not found"):
        check_workflow("release.yml", ReleaseConfig())
