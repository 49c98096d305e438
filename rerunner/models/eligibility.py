"""
Eligibility Set
===============
The resolver's derived state: which check runs can be re-run and which cannot.

Fields:
    rerunnable        — runs whose suite passed the eligibility predicate
    non_rerunnable    — runs reported to the user as not re-runnable
    loading           — True until the classification pass has settled
"""
from typing import List
from pydantic import BaseModel

from .check_run import CheckRun


class EligibilitySet(BaseModel):
    rerunnable: List[CheckRun] = []
    non_rerunnable: List[CheckRun] = []
    loading: bool = True
