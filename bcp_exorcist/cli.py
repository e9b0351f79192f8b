"""
cli.py

Responsibility: CLI entrypoint for bcp-exorcist.

Commands:
- `exorcize`: repair a broken CSV export in place
- `workflow render` / `workflow check`: generate or verify the release manifest
- `release dispatch`: manually trigger the release workflow on GitHub

This module should orchestrate behavior but keep concerns isolated:
- CSV repair: `exorcism.py` / `reader.py`
- Release config: `release_config.py`
- Manifest rendering/checking: `workflow.py`
- GitHub API: `github_client.py`
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from bcp_exorcist.exorcism import ExorcismError, exorcize_csv
from bcp_exorcist.github_client import GitHubClient, GitHubError
from bcp_exorcist.release_config import DEFAULT_CONFIG_PATH, ConfigError, load_config
from bcp_exorcist.workflow import DEFAULT_WORKFLOW_PATH, WorkflowError, check_workflow, render_workflow, write_workflow

logger = logging.getLogger(__name__)


class CLIError(RuntimeError):
    pass


def _parse_byte_arg(value: str | None) -> bytes | None:
    """
    Accept a literal character or a backslash escape such as `\\x1e` or `\\t`.
    """
    if value is None:
        return None
    try:
        return value.encode("latin-1").decode("unicode_escape").encode("latin-1")
    except (UnicodeError, ValueError) as e:
        raise CLIError(f"Invalid byte value: {value!r}") from e


def exorcize_cmd(args: argparse.Namespace) -> int:
    try:
        exorcize_csv(
            args.path,
            delim=_parse_byte_arg(args.delim),
            newline=_parse_byte_arg(args.newline),
            chunk_size=args.chunk_size,
            keep_backup=not bool(args.no_backup),
        )
    except TypeError as e:
        raise CLIError(f"invalid --delim/--newline: {e}") from e
    return 0


def workflow_render_cmd(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    if args.stdout:
        sys.stdout.write(render_workflow(config))
        return 0
    write_workflow(config, Path(args.output))
    return 0


def workflow_check_cmd(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    problems = check_workflow(Path(args.workflow), config)
    if not problems:
        print(f"{args.workflow}: ok")
        return 0
    for problem in problems:
        print(f"{args.workflow}: {problem}")
    return 1


def release_dispatch_cmd(args: argparse.Namespace) -> int:
    token = args.github_token or os.environ.get("GITHUB_TOKEN") or ""
    if not token:
        raise CLIError("GitHub token is required (use --github-token or set GITHUB_TOKEN)")
    gh = GitHubClient(token)
    gh.dispatch_workflow(args.owner, args.repo, args.workflow, ref=args.ref)
    print(f"dispatched {args.workflow} on {args.owner}/{args.repo}@{args.ref}")
    return 0


def release_status_cmd(args: argparse.Namespace) -> int:
    token = args.github_token or os.environ.get("GITHUB_TOKEN") or ""
    if not token:
        raise CLIError("GitHub token is required (use --github-token or set GITHUB_TOKEN)")
    run = GitHubClient(token).latest_run(args.owner, args.repo, args.workflow)
    if run is None:
        print(f"{args.workflow}: no runs")
        return 0
    print(f"{args.workflow}: run {run.id} {run.status} {run.conclusion or '-'} ({run.event}) {run.html_url}")
    return 0


def _add_github_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--owner", required=True, help="GitHub owner (user or org)")
    p.add_argument("--repo", required=True, help="GitHub repository name")
    p.add_argument("--workflow", default="release.yml", help="Workflow file name or id (default: release.yml)")
    p.add_argument("--github-token", default=None, help="GitHub token (or set env GITHUB_TOKEN)")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="bcp-exorcist", description="Repair broken bcp CSV exports")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    e = sub.add_parser("exorcize", help="Repair a broken CSV file in place (keeps <file>.bak)")
    e.add_argument("path", help="Path to the broken CSV file")
    e.add_argument("--delim", default=None, help="Field terminator of the broken file (default: \\x1e)")
    e.add_argument("--newline", default=None, help="Record terminator of the broken file (default: \\x1d)")
    e.add_argument("--chunk-size", type=int, default=None, help="Bytes per batch (default: 4 MiB)")
    e.add_argument("--no-backup", action="store_true", help="Delete <file>.bak after a successful repair")
    e.set_defaults(func=exorcize_cmd)

    w = sub.add_parser("workflow", help="Render or check the release workflow manifest")
    wsub = w.add_subparsers(dest="workflow_command", required=True)

    wr = wsub.add_parser("render", help="Render the release workflow from the release config")
    wr.add_argument("--config", default=None, help=f"Release config (default: {DEFAULT_CONFIG_PATH} if present)")
    wr.add_argument("--output", default=str(DEFAULT_WORKFLOW_PATH), help="Where to write the manifest")
    wr.add_argument("--stdout", action="store_true", help="Print the manifest instead of writing it")
    wr.set_defaults(func=workflow_render_cmd)

    wc = wsub.add_parser("check", help="Check triggers, matrix and job ordering of a workflow manifest")
    wc.add_argument("--config", default=None, help=f"Release config (default: {DEFAULT_CONFIG_PATH} if present)")
    wc.add_argument("--workflow", default=str(DEFAULT_WORKFLOW_PATH), help="Manifest to check")
    wc.set_defaults(func=workflow_check_cmd)

    r = sub.add_parser("release", help="Trigger or inspect the release workflow on GitHub")
    rsub = r.add_subparsers(dest="release_command", required=True)

    rd = rsub.add_parser("dispatch", help="Manually trigger the release workflow")
    _add_github_args(rd)
    rd.add_argument("--ref", default="main", help="Branch or tag to run on (default: main)")
    rd.set_defaults(func=release_dispatch_cmd)

    rs = rsub.add_parser("status", help="Show the latest run of the release workflow")
    _add_github_args(rs)
    rs.set_defaults(func=release_status_cmd)

    return p


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return int(args.func(args))
    except (CLIError, ConfigError, WorkflowError, GitHubError, ExorcismError, FileNotFoundError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
