from pydantic import BaseModel
from typing import Optional

class Installation(BaseModel):
    id: int

class Repository(BaseModel):
    full_name: str

class CheckSuite(BaseModel):
    head_sha: str
    head_branch: Optional[str] = None

class CheckSuiteEvent(BaseModel):
    action: str
    check_suite: CheckSuite
    repository: Repository
    installation: Installation

class RequestedAction(BaseModel):
    identifier: str

class CheckRun(BaseModel):
    id: int
    name: str
    head_sha: str
    check_suite: Optional[CheckSuite] = None

class CheckRunEvent(BaseModel):
    action: str
    check_run: CheckRun
    repository: Repository
    installation: Installation
    requested_action: Optional[RequestedAction] = None

    @property
    def head_branch(self) -> str:
        if self.check_run.check_suite is None:
            return ""
        return self.check_run.check_suite.head_branch or ""
