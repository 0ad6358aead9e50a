from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime

class PipelineRunResponse(BaseModel):
    pod: str
    repo: str
    commit_sha: str
    branch: str
    section: int
    phase: Optional[str] = None
    created_at: Optional[datetime] = None

class StepStatusResponse(BaseModel):
    container: str
    check_run_id: Optional[int] = None
    state: str
    exit_code: Optional[int] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

class SectionStatusResponse(BaseModel):
    section: int
    pod: str
    branch: str
    phase: Optional[str] = None
    steps: List[StepStatusResponse] = []

class WebhookResponse(BaseModel):
    status: str
    event: Optional[str] = None
    message: Optional[str] = None
    section: Optional[int] = None
    pod: Optional[str] = None
    check_run: Optional[int] = None
    check_runs: Optional[List[int]] = None
    reason: Optional[str] = None
