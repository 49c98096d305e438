"""
Check Suite Model
Pydantic model for the suite metadata fetched from GitHub on demand.
"""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel


class CheckSuite(BaseModel):
    id: int
    created_at: datetime
    status: str
    rerequestable: bool = False
    conclusion: Optional[str] = None
    head_sha: str = ""
