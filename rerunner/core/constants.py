"""
Constants
Centralised storage for GitHub check values, resolver states and user-facing text.
"""
from typing import Literal

CONCLUSION_FAILURE = "failure"
STATUS_COMPLETED = "completed"

ResolverState = Literal["classifying", "ready", "submitting", "done"]

RERUN_INFO_SUFFIX = (
    "A check run cannot be re-run if the check is more than one month old, "
    "the check has not completed, or the check is not configured to be re-run."
)
