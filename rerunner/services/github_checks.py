"""
GitHub Checks Client
====================
Async GitHub REST collaborator used by the rerun resolver.

Endpoints:
    GET  /repos/{repo}/check-suites/{id}                      — fetch_check_suite
    POST /repos/{repo}/check-suites/{id}/rerequest            — rerequest_check_suite
    POST /repos/{repo}/actions/runs/{id}/rerun-failed-jobs    — rerun_failed_jobs
    GET  /repos/{repo}/commits/{ref}/check-runs               — list_check_runs

``repository`` is always the ``owner/name`` path. No retries happen here;
a failed request raises ``httpx.HTTPStatusError`` to the caller, except a
404 on a suite lookup which means "no such suite" and returns None.
"""
import re
import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from rerunner.core.config import GITHUB_API_URL, GITHUB_TOKEN, HTTP_TIMEOUT_SECONDS
from rerunner.models.check_run import CheckRun
from rerunner.models.check_suite import CheckSuite
from rerunner.services.check_status_store import CheckStatusStore

logger = logging.getLogger(__name__)

_REPO_URL_RE = re.compile(r"github\.com[:/](.+?)(?:\.git)?/?$")
_REPO_PATH_RE = re.compile(r"^[\w.\-]+/[\w.\-]+$")
_WORKFLOW_RUN_RE = re.compile(r"/actions/runs/(\d+)")

_PER_PAGE = 100


def extract_repo_path(repo_url: str) -> str:
    """Extract 'owner/repo' from a GitHub URL (or pass an 'owner/repo' path through)."""
    repo_url = repo_url.strip().rstrip("/")
    if repo_url.endswith(".git"):
        repo_url = repo_url[:-len(".git")]
    if _REPO_PATH_RE.match(repo_url):
        return repo_url
    match = _REPO_URL_RE.search(repo_url)
    if match:
        return match.group(1).rstrip("/")
    return ""


def parse_check_run(data: Dict[str, Any]) -> CheckRun:
    """Convert a check-run payload from the GitHub API into a CheckRun."""
    suite = data.get("check_suite") or {}
    workflow_run_id = None
    match = _WORKFLOW_RUN_RE.search(data.get("details_url") or "")
    if match:
        workflow_run_id = int(match.group(1))
    return CheckRun(
        id=data["id"],
        name=data.get("name", ""),
        check_suite_id=suite.get("id"),
        conclusion=data.get("conclusion"),
        status=data.get("status", "completed"),
        workflow_run_id=workflow_run_id,
        html_url=data.get("html_url") or "",
    )


class GitHubChecksClient:
    """
    Client for the GitHub checks and actions rerun APIs.
    """

    def __init__(
        self,
        github_token: Optional[str] = GITHUB_TOKEN,
        base_url: str = GITHUB_API_URL,
        timeout: float = HTTP_TIMEOUT_SECONDS,
        status_store: Optional[CheckStatusStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url
        self.timeout = timeout
        self.status_store = status_store if status_store is not None else CheckStatusStore()
        self._transport = transport
        self.headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "Check-Rerun-Service",
        }
        if github_token:
            self.headers["Authorization"] = f"token {github_token}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        async with self._client() as client:
            response = await client.request(method, path, **kwargs)
        response.raise_for_status()
        return response

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    async def fetch_check_suite(self, repository: str, suite_id: int) -> Optional[CheckSuite]:
        try:
            response = await self._request("GET", f"/repos/{repository}/check-suites/{suite_id}")
        except httpx.HTTPStatusError as http_err:
            if http_err.response.status_code == 404:
                logger.info("Check suite %s not found in %s", suite_id, repository)
                return None
            raise
        return CheckSuite.model_validate(response.json())

    async def list_check_runs(self, repository: str, ref: str) -> List[CheckRun]:
        """All check runs GitHub reports for a ref, following pagination."""
        runs: List[CheckRun] = []
        page = 1
        while True:
            response = await self._request(
                "GET",
                f"/repos/{repository}/commits/{ref}/check-runs",
                params={"per_page": _PER_PAGE, "page": page},
            )
            data = response.json()
            items = data.get("check_runs", [])
            runs.extend(parse_check_run(item) for item in items)
            total = data.get("total_count", len(runs))
            if not items or len(runs) >= total:
                break
            page += 1
        logger.info("Fetched %d check runs for %s@%s", len(runs), repository, ref)
        return runs

    # ------------------------------------------------------------------
    # Reruns
    # ------------------------------------------------------------------
    async def rerequest_check_suite(self, repository: str, suite_id: int) -> None:
        await self._request("POST", f"/repos/{repository}/check-suites/{suite_id}/rerequest")
        logger.info("Rerequested check suite %s in %s", suite_id, repository)

    async def rerun_failed_jobs(self, repository: str, workflow_run_id: int) -> None:
        await self._request("POST", f"/repos/{repository}/actions/runs/{workflow_run_id}/rerun-failed-jobs")
        logger.info("Requested rerun of failed jobs for workflow run %s in %s", workflow_run_id, repository)

    async def submit_rerun(self, repository: str, check_runs: Sequence[CheckRun], failed_only: bool) -> None:
        """
        Rerun the given check runs.

        In failed-only mode, Actions checks are rerun through their workflow
        run so only the failed jobs restart. Everything else (and every check
        outside failed-only mode) reruns its whole check suite.
        """
        workflow_run_ids: List[int] = []
        suite_ids: List[int] = []
        for cr in check_runs:
            if failed_only and cr.workflow_run_id is not None:
                if cr.workflow_run_id not in workflow_run_ids:
                    workflow_run_ids.append(cr.workflow_run_id)
                continue
            if cr.check_suite_id is not None and cr.check_suite_id not in suite_ids:
                suite_ids.append(cr.check_suite_id)

        logger.info(
            "Submitting rerun for %s: %d workflow run(s), %d check suite(s)",
            repository, len(workflow_run_ids), len(suite_ids),
        )
        await asyncio.gather(
            *(self.rerun_failed_jobs(repository, run_id) for run_id in workflow_run_ids),
            *(self.rerequest_check_suite(repository, suite_id) for suite_id in suite_ids),
        )

    async def refresh_status(self, repository: str, ref: str, check_runs: Sequence[CheckRun]) -> None:
        """Reload the checks for ``ref`` and mark the rerun ones as pending."""
        latest = await self.list_check_runs(repository, ref)
        self.status_store.update(repository, ref, latest, pending_ids=[cr.id for cr in check_runs])
