"""
Rerun Checks API
================
Routes:
    POST /api/rerun-checks/preview  — classify only, report what can be re-run
    POST /api/rerun-checks          — classify, then re-run the eligible checks
    GET  /api/rerun-checks/status   — last refreshed check status for a ref

When the request omits ``check_runs`` they are listed from GitHub for ``ref``.
"""
import re
import logging
from typing import List, Optional

import httpx
from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, ValidationError, field_validator

from rerunner.agents.rerun_resolver import RerunNotAllowedError, RerunResolver
from rerunner.core.config import GITHUB_TOKEN
from rerunner.models.check_run import CheckRun
from rerunner.services.check_status_store import CheckStatusSnapshot, CheckStatusStore
from rerunner.services.github_checks import GitHubChecksClient, extract_repo_path

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Checks"])

# Shared across requests so /status can read what a rerun refreshed
status_store = CheckStatusStore()

_GITHUB_URL_RE = re.compile(
    r"^(https?://github\.com/)?[\w.\-]+/[\w.\-]+(\.git)?/?$"
)

# Failures of a GitHub call: transport/status errors or a payload we cannot parse
_GITHUB_ERRORS = (httpx.HTTPError, KeyError, ValidationError)


# ---------------------------------------------------------------------------
# Request / Response schemas
# ---------------------------------------------------------------------------
class RerunRequest(BaseModel):
    repo_url: str
    ref: str
    failed_only: bool = False
    check_runs: Optional[List[CheckRun]] = None

    @field_validator("repo_url")
    @classmethod
    def validate_github_url(cls, v: str) -> str:
        if not _GITHUB_URL_RE.match(v.strip()):
            raise ValueError("Only GitHub repository URLs or owner/name paths are accepted")
        return v.strip()


class RerunPreviewResponse(BaseModel):
    repository: str
    ref: str
    failed_only: bool
    rerunnable: List[CheckRun]
    non_rerunnable: List[CheckRun]
    can_rerun: bool
    message: Optional[str] = None


class RerunResponse(BaseModel):
    repository: str
    ref: str
    failed_only: bool
    rerun_count: int
    rerun_ids: List[int]
    non_rerunnable_count: int
    message: Optional[str] = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _build_client() -> GitHubChecksClient:
    return GitHubChecksClient(github_token=GITHUB_TOKEN, status_store=status_store)


async def _classify(request: RerunRequest) -> RerunResolver:
    if not GITHUB_TOKEN:
        logger.error("GITHUB_TOKEN is missing from environment/config")
        raise HTTPException(
            status_code=400,
            detail="GITHUB_TOKEN not set, cannot query GitHub checks. "
                   "Please set GITHUB_TOKEN in the .env file."
        )

    repository = extract_repo_path(request.repo_url)
    if not repository:
        raise HTTPException(status_code=400, detail=f"Cannot derive owner/name from {request.repo_url!r}")
    client = _build_client()

    check_runs = request.check_runs
    if check_runs is None:
        try:
            check_runs = await client.list_check_runs(repository, request.ref)
        except _GITHUB_ERRORS as e:
            logger.error("[API] Listing check runs failed for %s@%s: %s", repository, request.ref, e)
            raise HTTPException(status_code=502, detail=f"Could not list check runs: {e}")

    resolver = RerunResolver(
        repository=repository,
        check_runs=check_runs,
        ref=request.ref,
        failed_only=request.failed_only,
        on_dismissed=lambda: logger.debug("[API] Resolver for %s@%s dismissed", repository, request.ref),
        client=client,
    )
    await resolver.wait_ready()
    return resolver


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@router.post("/rerun-checks/preview", response_model=RerunPreviewResponse)
async def preview_rerun(request: RerunRequest):
    """Report which checks would be re-run without submitting anything."""
    resolver = await _classify(request)
    resolver.cancel()
    return RerunPreviewResponse(
        repository=resolver.repository,
        ref=resolver.ref,
        failed_only=resolver.failed_only,
        rerunnable=resolver.eligibility.rerunnable,
        non_rerunnable=resolver.eligibility.non_rerunnable,
        can_rerun=len(resolver.eligibility.rerunnable) > 0,
        message=resolver.rerun_info_message(),
    )


@router.post("/rerun-checks", response_model=RerunResponse)
async def rerun_checks(request: RerunRequest):
    """Re-run every eligible check for the ref and refresh its status."""
    resolver = await _classify(request)
    message = resolver.rerun_info_message()

    try:
        rerun = await resolver.confirm()
    except RerunNotAllowedError as e:
        logger.warning("[API] %s", e)
        resolver.cancel()
        raise HTTPException(status_code=409, detail=message or "No checks can be re-run")
    except _GITHUB_ERRORS as e:
        resolver.cancel()
        if resolver.submitted is not None:
            # The rerun is already queued on GitHub; only the status reload failed
            submitted_ids = [cr.id for cr in resolver.submitted]
            logger.error(
                "[API] Status refresh failed after rerun of %s for %s@%s: %s",
                submitted_ids, resolver.repository, resolver.ref, e,
            )
            raise HTTPException(
                status_code=502,
                detail=f"Rerun submitted for check runs {submitted_ids}, "
                       f"but the status refresh failed: {e}",
            )
        logger.error("[API] Rerun failed for %s@%s: %s", resolver.repository, resolver.ref, e)
        raise HTTPException(status_code=502, detail=f"GitHub rerun request failed: {e}")

    logger.info("[API] Re-ran %d check(s) for %s@%s", len(rerun), resolver.repository, resolver.ref)
    return RerunResponse(
        repository=resolver.repository,
        ref=resolver.ref,
        failed_only=resolver.failed_only,
        rerun_count=len(rerun),
        rerun_ids=[cr.id for cr in rerun],
        non_rerunnable_count=len(resolver.eligibility.non_rerunnable),
        message=message,
    )


@router.get("/rerun-checks/status", response_model=CheckStatusSnapshot)
async def rerun_status(repo_url: str = Query(...), ref: str = Query(...)):
    snapshot = status_store.get(extract_repo_path(repo_url), ref)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No refreshed status for this ref")
    return snapshot
