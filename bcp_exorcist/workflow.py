"""
workflow.py

Responsibility: Render the release workflow manifest and check an existing one.

Rules:
- The manifest is rendered from `templates/release.yml.j2` with Jinja2 and
  the parsed `ReleaseConfig`; output is deterministic with `\\n` newlines.
- GitHub expressions (`${{ ... }}`) are produced by the `gha()` helper so
  they never clash with Jinja2 markers.
- Checking parses the manifest with PyYAML and only asserts the
  configuration-level properties: triggers, matrix contents and the
  build -> publish ordering.

This module intentionally does NOT know about GitHub's REST API or CLI parsing.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from jinja2 import Environment, StrictUndefined, TemplateError

from bcp_exorcist.release_config import ReleaseConfig

logger = logging.getLogger(__name__)

TEMPLATE_PATH = Path(__file__).resolve().parent / "templates" / "release.yml.j2"
DEFAULT_WORKFLOW_PATH = Path(".github") / "workflows" / "release.yml"

PUBLISH_ACTION = "pypa/gh-action-pypi-publish"


class WorkflowError(RuntimeError):
    pass


def gha(expression: str) -> str:
    return "${{ " + expression + " }}"


def _yaml_quote(value: object) -> str:
    return "'" + str(value).replace("'", "''") + "'"


def _build_context(config: ReleaseConfig) -> dict[str, object]:
    return {
        "name": config.name,
        "tag_pattern": config.tag_pattern,
        "manual_dispatch": config.manual_dispatch,
        "matrix_os": list(config.matrix.os),
        "matrix_python": list(config.matrix.python),
        "build_requirements": list(config.build.requirements),
        "build_command": config.build.command,
        "artifact_name": config.artifact.name,
        "artifact_path": config.artifact.path,
        "artifact_glob": config.artifact.path.rstrip("/") + "/*",
        "publish_runs_on": config.publish.runs_on,
        "publish_user": config.publish.user,
        "publish_secret": config.publish.secret,
        "gha": gha,
    }


def render_workflow(config: ReleaseConfig, *, template_path: str | Path = TEMPLATE_PATH) -> str:
    """
    Render the release workflow manifest for `config`.
    """
    tpl = Path(template_path)
    if not tpl.is_file():
        raise WorkflowError(f"Workflow template not found: {tpl}")

    env = Environment(
        autoescape=False,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["quote"] = _yaml_quote

    try:
        template = env.from_string(tpl.read_text(encoding="utf-8"))
        return template.render(**_build_context(config))
    except TemplateError as e:
        raise WorkflowError(f"Failed rendering workflow template: {tpl}") from e


def write_workflow(config: ReleaseConfig, destination: str | Path = DEFAULT_WORKFLOW_PATH) -> Path:
    dst = Path(destination)
    dst.parent.mkdir(parents=True, exist_ok=True)
    text = render_workflow(config)
    with dst.open("w", encoding="utf-8", newline="\n") as f:
        f.write(text)
    logger.info("Wrote release workflow to %s", dst)
    return dst


def _parse_manifest(text: str) -> dict[str, Any]:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise WorkflowError("Workflow manifest is not valid YAML") from e
    if not isinstance(data, dict):
        raise WorkflowError("Workflow manifest must be a mapping at the top level")
    return data


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _check_triggers(data: dict[str, Any], config: ReleaseConfig) -> list[str]:
    problems: list[str] = []
    # YAML 1.1 reads a bare `on` key as the boolean True.
    triggers = data.get("on", data.get(True))
    if isinstance(triggers, str):
        triggers = {triggers: None}
    elif isinstance(triggers, list):
        triggers = {t: None for t in triggers}
    if not isinstance(triggers, dict):
        return ["workflow has no trigger section"]

    push = triggers.get("push") or {}
    tags = _as_list(push.get("tags")) if isinstance(push, dict) else []
    if config.tag_pattern not in tags:
        problems.append(f"push trigger does not match tags {config.tag_pattern!r} (found {tags})")

    has_dispatch = "workflow_dispatch" in triggers
    if config.manual_dispatch and not has_dispatch:
        problems.append("manual invocation (workflow_dispatch) is not enabled")
    if not config.manual_dispatch and has_dispatch:
        problems.append("manual invocation (workflow_dispatch) is enabled but not configured")
    return problems


def _check_matrix_axis(matrix: dict[str, Any], axis: str, expected: tuple[str, ...]) -> list[str]:
    values = _as_list(matrix.get(axis))
    floats = [v for v in values if isinstance(v, float)]
    if floats:
        return [f"matrix.{axis} has unquoted numeric values {floats}"]
    found = [str(v) for v in values]
    if sorted(found) != sorted(expected):
        return [f"matrix.{axis} is {found}, expected {list(expected)}"]
    return []


def _check_build(jobs: dict[str, Any], config: ReleaseConfig) -> list[str]:
    build = jobs.get("build")
    if not isinstance(build, dict):
        return ["job 'build' is missing"]

    problems: list[str] = []
    if build.get("runs-on") != gha("matrix.os"):
        problems.append(f"job 'build' does not run on the matrix OS (runs-on: {build.get('runs-on')!r})")

    strategy = build.get("strategy") or {}
    matrix = strategy.get("matrix") if isinstance(strategy, dict) else None
    if not isinstance(matrix, dict):
        problems.append("job 'build' has no matrix")
        return problems
    problems += _check_matrix_axis(matrix, "os", config.matrix.os)
    problems += _check_matrix_axis(matrix, "python-version", config.matrix.python)
    return problems


def _check_publish(jobs: dict[str, Any], config: ReleaseConfig) -> list[str]:
    publish = jobs.get("publish")
    if not isinstance(publish, dict):
        return ["job 'publish' is missing"]

    problems: list[str] = []
    if "build" not in _as_list(publish.get("needs")):
        problems.append("job 'publish' does not depend on job 'build'")

    steps = [s for s in _as_list(publish.get("steps")) if isinstance(s, dict)]
    publish_steps = [s for s in steps if str(s.get("uses", "")).startswith(PUBLISH_ACTION)]
    if not publish_steps:
        problems.append(f"job 'publish' has no {PUBLISH_ACTION} step")
        return problems

    with_ = publish_steps[0].get("with") or {}
    expected_password = gha(f"secrets.{config.publish.secret}")
    if with_.get("password") != expected_password:
        problems.append(f"publish step does not use the {config.publish.secret} secret")
    if with_.get("user") != config.publish.user:
        problems.append(f"publish step user is {with_.get('user')!r}, expected {config.publish.user!r}")
    return problems


def check_workflow(path: str | os.PathLike[str], config: ReleaseConfig) -> list[str]:
    """
    Return the problems found in the workflow manifest at `path`; empty means conforming.
    """
    manifest = Path(path)
    if not manifest.is_file():
        raise WorkflowError(f"Workflow manifest not found: {manifest}")
    return check_workflow_text(manifest.read_text(encoding="utf-8"), config)


def check_workflow_text(text: str, config: ReleaseConfig) -> list[str]:
    data = _parse_manifest(text)
    problems = _check_triggers(data, config)

    jobs = data.get("jobs")
    if not isinstance(jobs, dict):
        problems.append("workflow has no jobs")
        return problems

    problems += _check_build(jobs, config)
    problems += _check_publish(jobs, config)
    for problem in problems:
        logger.debug("Workflow check: %s", problem)
    return problems
