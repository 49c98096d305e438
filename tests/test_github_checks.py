"""
GitHub Checks Client Tests
==========================
Requests are served by httpx.MockTransport, never real GitHub.
"""
import json
import pytest
import asyncio
import httpx

from rerunner.models.check_run import CheckRun
from rerunner.services.check_status_store import CheckStatusStore
from rerunner.services.github_checks import GitHubChecksClient, extract_repo_path, parse_check_run


SUITE_PAYLOAD = {
    "id": 42,
    "head_sha": "abc123",
    "status": "completed",
    "conclusion": "failure",
    "created_at": "2026-10-10T08:00:00Z",
    "rerequestable": True,
    "app": {"slug": "github-actions"},
}


def _check_run_payload(run_id, suite_id, status="completed", conclusion="failure", workflow_run_id=None):
    details = f"https://github.com/octo/repo/actions/runs/{workflow_run_id}/job/{run_id}" if workflow_run_id else ""
    return {
        "id": run_id,
        "name": f"job-{run_id}",
        "status": status,
        "conclusion": conclusion,
        "details_url": details,
        "html_url": f"https://github.com/octo/repo/runs/{run_id}",
        "check_suite": {"id": suite_id},
    }


def _client(handler, store=None):
    return GitHubChecksClient(
        github_token="fake",
        base_url="https://api.github.test",
        status_store=store,
        transport=httpx.MockTransport(handler),
    )


# ===================================================================
# Helpers
# ===================================================================
@pytest.mark.parametrize("url, expected", [
    ("https://github.com/octo/repo", "octo/repo"),
    ("https://github.com/octo/repo.git", "octo/repo"),
    ("git@github.com:octo/repo.git", "octo/repo"),
    ("octo/repo", "octo/repo"),
    ("octo/repo.git", "octo/repo"),
    ("octo/repo/", "octo/repo"),
    ("https://github.com/octo/repo.git/", "octo/repo"),
    ("https://gitlab.com/octo/repo", ""),
])
def test_extract_repo_path(url, expected):
    assert extract_repo_path(url) == expected


def test_parse_check_run_extracts_workflow_run():
    cr = parse_check_run(_check_run_payload(5, 42, workflow_run_id=900))
    assert cr.check_suite_id == 42
    assert cr.workflow_run_id == 900
    assert cr.conclusion == "failure"


def test_parse_check_run_without_suite():
    cr = parse_check_run({"id": 9, "name": "legacy", "status": "completed", "conclusion": None})
    assert cr.check_suite_id is None
    assert cr.workflow_run_id is None


# ===================================================================
# Suite lookups
# ===================================================================
def test_fetch_check_suite_parses_payload():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json=SUITE_PAYLOAD)

    suite = asyncio.run(_client(handler).fetch_check_suite("octo/repo", 42))

    assert seen["path"] == "/repos/octo/repo/check-suites/42"
    assert seen["auth"] == "token fake"
    assert suite.id == 42
    assert suite.rerequestable is True
    assert suite.status == "completed"
    assert suite.created_at.year == 2026


def test_fetch_check_suite_not_found_returns_none():
    def handler(request):
        return httpx.Response(404, json={"message": "Not Found"})

    assert asyncio.run(_client(handler).fetch_check_suite("octo/repo", 1)) is None


def test_fetch_check_suite_server_error_raises():
    def handler(request):
        return httpx.Response(500)

    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(_client(handler).fetch_check_suite("octo/repo", 1))


# ===================================================================
# Reruns
# ===================================================================
def test_submit_rerun_failed_only_uses_workflow_runs():
    posted = []

    def handler(request):
        posted.append((request.method, request.url.path))
        return httpx.Response(201)

    runs = [
        CheckRun(id=1, check_suite_id=10, conclusion="failure", workflow_run_id=900),
        CheckRun(id=2, check_suite_id=10, conclusion="failure", workflow_run_id=900),
        CheckRun(id=3, check_suite_id=11, conclusion="failure"),
    ]
    asyncio.run(_client(handler).submit_rerun("octo/repo", runs, failed_only=True))

    assert sorted(posted) == [
        ("POST", "/repos/octo/repo/actions/runs/900/rerun-failed-jobs"),
        ("POST", "/repos/octo/repo/check-suites/11/rerequest"),
    ]


def test_submit_rerun_all_rerequests_suites():
    posted = []

    def handler(request):
        posted.append(request.url.path)
        return httpx.Response(201)

    runs = [
        CheckRun(id=1, check_suite_id=10, workflow_run_id=900),
        CheckRun(id=2, check_suite_id=10),
        CheckRun(id=3, check_suite_id=11),
        CheckRun(id=4, check_suite_id=None),
    ]
    asyncio.run(_client(handler).submit_rerun("octo/repo", runs, failed_only=False))

    assert sorted(posted) == [
        "/repos/octo/repo/check-suites/10/rerequest",
        "/repos/octo/repo/check-suites/11/rerequest",
    ]


def test_submit_rerun_error_propagates():
    def handler(request):
        return httpx.Response(403, json={"message": "forbidden"})

    runs = [CheckRun(id=1, check_suite_id=10)]
    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(_client(handler).submit_rerun("octo/repo", runs, failed_only=False))


# ===================================================================
# Listing and refresh
# ===================================================================
def test_list_check_runs_follows_pages():
    pages = {
        "1": [_check_run_payload(i, 10) for i in range(1, 101)],
        "2": [_check_run_payload(101, 11)],
    }

    def handler(request):
        page = request.url.params["page"]
        return httpx.Response(200, json={"total_count": 101, "check_runs": pages[page]})

    runs = asyncio.run(_client(handler).list_check_runs("octo/repo", "abc123"))
    assert len(runs) == 101
    assert runs[-1].check_suite_id == 11


def test_refresh_status_stores_snapshot_with_pending():
    store = CheckStatusStore()

    def handler(request):
        assert request.url.path == "/repos/octo/repo/commits/refs/pull/7/head/check-runs"
        body = {"total_count": 2, "check_runs": [
            _check_run_payload(1, 10, status="queued", conclusion=None),
            _check_run_payload(2, 10, conclusion="success"),
        ]}
        return httpx.Response(200, content=json.dumps(body))

    rerun = [CheckRun(id=1, check_suite_id=10, conclusion="failure")]
    asyncio.run(_client(handler, store=store).refresh_status("octo/repo", "refs/pull/7/head", rerun))

    snapshot = store.get("octo/repo", "refs/pull/7/head")
    assert snapshot is not None
    assert [cr.id for cr in snapshot.check_runs] == [1, 2]
    assert snapshot.pending_ids == [1]
