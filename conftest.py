"""Shared fakes for the GitHub gateway and the Pod client."""

from typing import Any, Dict, List, Optional, Tuple

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException

from controller.src.config import Settings
from controller.src.services.github import CheckRun, GithubApiError

ONE_STEP_PIPELINE = """
steps:
  - name: Unit tests
    image: python:3.12
    commands:
      - pip install -e .
      - pytest
"""

class FakeInstallation:
    def __init__(self, pipeline_file: Optional[str] = None):
        self.pipeline_file = pipeline_file
        self.next_id = 1
        self.check_runs: Dict[int, CheckRun] = {}
        self.created: List[Tuple[str, str]] = []
        self.in_progress: List[int] = []
        self.completed: List[Dict[str, Any]] = []
        self.blocks: List[Tuple[str, str, int]] = []
        self.failures = 0

    def _maybe_fail(self):
        if self.failures:
            self.failures -= 1
            raise GithubApiError("GitHub is unavailable", status_code=502)

    async def get_pipeline_file(self, commit_sha: str) -> Optional[str]:
        return self.pipeline_file

    async def create_check_run(self, name: str, head_sha: str) -> int:
        check_run_id = self.next_id
        self.next_id += 1
        self.check_runs[check_run_id] = CheckRun(id=check_run_id, name=name, status="queued")
        self.created.append((name, head_sha))
        return check_run_id

    async def set_in_progress(self, check_run_id: int) -> None:
        self._maybe_fail()
        self.in_progress.append(check_run_id)

    async def get_check_run(self, check_run_id: int) -> CheckRun:
        return self.check_runs[check_run_id]

    async def set_complete(
        self,
        check_run_id: int,
        name: str,
        conclusion: str,
        started_at: Optional[str],
        completed_at: Optional[str],
        logs: str,
        status: str = "completed",
    ) -> None:
        self._maybe_fail()
        self.completed.append({
            "id": check_run_id,
            "name": name,
            "conclusion": conclusion,
            "started_at": started_at,
            "completed_at": completed_at,
            "logs": logs,
        })

    async def find_check_run(self, name: str, head_sha: str) -> Optional[int]:
        for check_run_id, created in enumerate(self.created, start=1):
            if created == (name, head_sha):
                return check_run_id
        return None

    async def create_block_check_run(self, name: str, head_sha: str, next_section_index: int) -> int:
        check_run_id = await self.create_check_run(name, head_sha)
        self.blocks.append((name, head_sha, next_section_index))
        return check_run_id

class FakeGithub:
    def __init__(self, installation: FakeInstallation):
        self.installation_client = installation
        self.requests: List[Tuple[int, str]] = []

    async def installation(self, installation_id: int, repo_full_name: str) -> FakeInstallation:
        self.requests.append((installation_id, repo_full_name))
        return self.installation_client

class FakePodClient:
    def __init__(self, namespace: str = "kubeci"):
        self.namespace = namespace
        self.pods: Dict[str, client.V1Pod] = {}
        self.created: List[client.V1Pod] = []
        self.deleted: List[str] = []
        self.logs: Dict[Tuple[str, str], str] = {}
        self.events: List[Tuple[str, client.V1Pod]] = []

    async def create_pod(self, pod: client.V1Pod) -> bool:
        if pod.metadata.name in self.pods:
            return False
        self.pods[pod.metadata.name] = pod
        self.created.append(pod)
        return True

    async def get_pod(self, name: str) -> Optional[client.V1Pod]:
        return self.pods.get(name)

    async def delete_pod(self, name: str):
        self.deleted.append(name)
        self.pods.pop(name, None)

    async def read_container_logs(self, name: str, container: str) -> str:
        if (name, container) not in self.logs:
            raise ApiException(status=404, reason="Not Found")
        return self.logs[(name, container)]

    async def list_pods(self, label_selector: str) -> List[client.V1Pod]:
        wanted = dict(term.split("=", 1) for term in label_selector.split(",") if term)
        return [
            pod
            for pod in self.pods.values()
            if all((pod.metadata.labels or {}).get(k) == v for k, v in wanted.items())
        ]

    async def watch(self, timeout_seconds: int, label_selector: Optional[str] = None):
        for event_type, pod in self.events:
            yield event_type, pod

@pytest.fixture
def settings():
    return Settings(
        application_id="123456",
        github_application_private_key="not-a-real-key",
        namespace="kubeci",
    )

@pytest.fixture
def installation():
    return FakeInstallation(pipeline_file=ONE_STEP_PIPELINE)

@pytest.fixture
def github(installation):
    return FakeGithub(installation)

@pytest.fixture
def pods():
    return FakePodClient()
