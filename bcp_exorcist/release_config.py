"""
release_config.py

Responsibility: Load the YAML release configuration into a typed model.

The workflow renderer and checker treat the parsed result as the single
source of truth. Every key is optional; defaults describe the project's own
release pipeline (tag push or manual trigger, 3 OS x 4 Python build matrix,
then a single publish job).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG_PATH = "release.yaml"


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class MatrixConfig:
    os: tuple[str, ...] = ("ubuntu-latest", "windows-latest", "macos-latest")
    python: tuple[str, ...] = ("3.9", "3.10", "3.11", "3.12")


@dataclass(frozen=True)
class BuildConfig:
    requirements: tuple[str, ...] = ("build", "twine")
    command: str = "python -m build"


@dataclass(frozen=True)
class ArtifactConfig:
    name: str = "dist"
    path: str = "dist/"


@dataclass(frozen=True)
class PublishConfig:
    runs_on: str = "ubuntu-latest"
    user: str = "__token__"
    secret: str = "PYPI_API_TOKEN"


@dataclass(frozen=True)
class ReleaseConfig:
    """Parsed release configuration used to render and check the workflow manifest."""

    name: str = "Release"
    tag_pattern: str = "v*"
    manual_dispatch: bool = True
    matrix: MatrixConfig = field(default_factory=MatrixConfig)
    build: BuildConfig = field(default_factory=BuildConfig)
    artifact: ArtifactConfig = field(default_factory=ArtifactConfig)
    publish: PublishConfig = field(default_factory=PublishConfig)


_TOP_LEVEL_KEYS = {"name", "tag_pattern", "manual_dispatch", "matrix", "build", "artifact", "publish"}


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    raw = data.get(key) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"`{key}` must be an object/mapping when provided.")
    return raw


def _str(raw: dict[str, Any], key: str, default: str) -> str:
    value = raw.get(key)
    if value is None:
        return default
    text = str(value).strip()
    if not text:
        raise ConfigError(f"`{key}` cannot be empty.")
    return text


def _str_list(raw: dict[str, Any], key: str, default: tuple[str, ...], *, where: str) -> tuple[str, ...]:
    value = raw.get(key)
    if value is None:
        return default
    if not isinstance(value, list):
        raise ConfigError(f"`{where}.{key}` must be a list.")
    items = tuple(str(v).strip() for v in value)
    if not items or any(not item for item in items):
        raise ConfigError(f"`{where}.{key}` must be a non-empty list of non-empty values.")
    if len(set(items)) != len(items):
        raise ConfigError(f"`{where}.{key}` contains duplicates: {list(items)}")
    return items


def _python_versions(raw: dict[str, Any]) -> tuple[str, ...]:
    # YAML reads an unquoted 3.10 as the float 3.1; refuse it instead of guessing.
    value = raw.get("python")
    if isinstance(value, list):
        floats = [v for v in value if isinstance(v, float)]
        if floats:
            raise ConfigError(f"`matrix.python` versions must be quoted strings, got {floats}")
    return _str_list(raw, "python", MatrixConfig.python, where="matrix")


def config_from_dict(data: dict[str, Any]) -> ReleaseConfig:
    unknown = sorted(str(k) for k in data if k not in _TOP_LEVEL_KEYS)
    if unknown:
        raise ConfigError(f"Unknown release config keys: {', '.join(unknown)}")

    defaults = ReleaseConfig()
    matrix_raw = _section(data, "matrix")
    build_raw = _section(data, "build")
    artifact_raw = _section(data, "artifact")
    publish_raw = _section(data, "publish")

    manual_raw = data.get("manual_dispatch", defaults.manual_dispatch)
    if not isinstance(manual_raw, bool):
        raise ConfigError("`manual_dispatch` must be a boolean.")

    requirements = _str_list(build_raw, "requirements", BuildConfig.requirements, where="build")

    return ReleaseConfig(
        name=_str(data, "name", defaults.name),
        tag_pattern=_str(data, "tag_pattern", defaults.tag_pattern),
        manual_dispatch=manual_raw,
        matrix=MatrixConfig(
            os=_str_list(matrix_raw, "os", MatrixConfig.os, where="matrix"),
            python=_python_versions(matrix_raw),
        ),
        build=BuildConfig(
            requirements=requirements,
            command=_str(build_raw, "command", BuildConfig.command),
        ),
        artifact=ArtifactConfig(
            name=_str(artifact_raw, "name", ArtifactConfig.name),
            path=_str(artifact_raw, "path", ArtifactConfig.path),
        ),
        publish=PublishConfig(
            runs_on=_str(publish_raw, "runs_on", PublishConfig.runs_on),
            user=_str(publish_raw, "user", PublishConfig.user),
            secret=_str(publish_raw, "secret", PublishConfig.secret),
        ),
    )


def load_config(config_path: str | Path | None = None) -> ReleaseConfig:
    """
    Parse a release configuration file into a `ReleaseConfig`.

    A missing file at the default location yields the defaults; a missing
    file that was asked for explicitly is an error.
    """
    path = Path(config_path or DEFAULT_CONFIG_PATH)
    if not path.exists():
        if config_path is None:
            return ReleaseConfig()
        raise ConfigError(f"Release config does not exist: {path}")

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Release config is not valid YAML: {path}") from e
    if not isinstance(data, dict):
        raise ConfigError("Release config must be a mapping/object at the top level.")
    return config_from_dict(data)
