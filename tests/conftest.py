"""
Shared pytest fixtures.
"""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]


@pytest.fixture()
def repo_root() -> Path:
    return REPO_ROOT


@pytest.fixture()
def release_config_file(tmp_path: Path) -> Path:
    """A small release config that differs from the defaults."""
    content = textwrap.dedent("""\
        name: Publish
        tag_pattern: "release-*"
        manual_dispatch: false
        matrix:
          os: [ubuntu-latest]
          python: ["3.11", "3.12"]
        publish:
          secret: PYPI_TOKEN
    """)
    path = tmp_path / "release.yaml"
    path.write_text(content, encoding="utf-8")
    return path
