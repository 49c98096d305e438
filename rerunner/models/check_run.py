"""
Check Run Model
===============
Pydantic snapshot of one executed check attached to a revision.

Fields:
    id                — unique check run id
    name              — display name of the check
    check_suite_id    — owning suite id (None for legacy commit statuses)
    conclusion        — success / failure / neutral / ... (None while running)
    status            — queued / in_progress / completed
    workflow_run_id   — GitHub Actions workflow run that produced the check, if any
    html_url          — link to the check on GitHub
"""
from typing import Optional
from pydantic import BaseModel


class CheckRun(BaseModel):
    id: int
    name: str = ""
    check_suite_id: Optional[int] = None
    conclusion: Optional[str] = None
    status: str = "completed"
    workflow_run_id: Optional[int] = None
    html_url: str = ""
