"""
github_client.py

Responsibility: Isolate all direct GitHub REST API interaction.

This module must be the only place that:
- Constructs GitHub REST endpoints
- Sends HTTP requests to api.github.com
- Interprets GitHub API responses / error payloads

It covers the manual trigger of the release workflow (`workflow_dispatch`)
and looking up the run it started.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import requests

logger = logging.getLogger(__name__)


class GitHubError(RuntimeError):
    pass


@dataclass(frozen=True)
class WorkflowRun:
    id: int
    status: str
    conclusion: str | None
    head_branch: str | None
    event: str
    html_url: str


class GitHubClient:
    def __init__(self, token: str, api_base: str = "https://api.github.com", timeout: float = 30) -> None:
        if not token.strip():
            raise GitHubError("GitHub token is required.")
        self._token = token
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self._token}",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "bcp-exorcist",
        }

    def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        url = f"{self._api_base}{path}"
        try:
            r = requests.request(
                method, url, headers=self._headers(), json=json_body, params=params, timeout=self._timeout
            )
        except requests.RequestException as e:
            raise GitHubError(f"GitHub API request failed {method} {path}: {e}") from e
        if r.status_code >= 400:
            try:
                payload = r.json()
            except ValueError:
                payload = {"message": r.text}
            message = payload.get("message", payload) if isinstance(payload, dict) else payload
            raise GitHubError(f"GitHub API error {r.status_code} {method} {path}: {message}")
        if r.status_code == 204:
            return None
        return r.json()

    def dispatch_workflow(
        self,
        owner: str,
        repo: str,
        workflow: str,
        *,
        ref: str = "main",
        inputs: dict[str, str] | None = None,
    ) -> None:
        """
        Manually trigger `workflow` (file name or numeric id) on `ref`.

        GitHub answers 204 with no body; the run id is not returned, use
        `latest_run` to follow it.
        """
        body: dict[str, Any] = {"ref": ref}
        if inputs:
            body["inputs"] = dict(inputs)
        self._request("POST", f"/repos/{owner}/{repo}/actions/workflows/{workflow}/dispatches", json_body=body)
        logger.info("Dispatched workflow %s on %s/%s@%s", workflow, owner, repo, ref)

    def latest_run(self, owner: str, repo: str, workflow: str) -> WorkflowRun | None:
        """
        Return the most recent run of `workflow`, or None when it never ran.
        """
        data = self._request(
            "GET",
            f"/repos/{owner}/{repo}/actions/workflows/{workflow}/runs",
            params={"per_page": 1},
        )
        runs = (data or {}).get("workflow_runs") or []
        if not runs:
            return None
        run = runs[0]
        return WorkflowRun(
            id=int(run["id"]),
            status=str(run.get("status") or "unknown"),
            conclusion=run.get("conclusion"),
            head_branch=run.get("head_branch"),
            event=str(run.get("event") or ""),
            html_url=str(run.get("html_url") or ""),
        )
