"""
GitHub App client: app authentication, installation tokens, pipeline files
and check runs.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Protocol

import httpx
import jwt
from pydantic import BaseModel

from controller.src.config import Settings

logger = logging.getLogger(__name__)

ACCEPT_JSON = "application/vnd.github+json"
ACCEPT_RAW = "application/vnd.github.raw"
USER_AGENT = "kubeci"

JWT_LIFETIME_SECONDS = 10 * 60
MAX_OUTPUT_TEXT_LENGTH = 65535
TRUNCATION_MARKER = "... (truncated)\n"

UNBLOCK_LABEL = "Unblock"
UNBLOCK_DESCRIPTION = "Run the remaining pipeline steps"

class GithubApiError(Exception):
    """Raised when GitHub answers with an unexpected status."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

class CheckRun(BaseModel):
    id: int
    name: str
    started_at: Optional[str] = None
    status: Optional[str] = None
    conclusion: Optional[str] = None

def authenticate_app(github_private_key: str, application_id: str, now: int) -> str:
    """
    Sign the JWT a GitHub App uses to talk to the API as itself.

    Claims are serialized in a fixed order and header keys are left unsorted,
    so a given key and timestamp always produce the same token.
    """
    claims = {
        "exp": now + JWT_LIFETIME_SECONDS,
        "iat": now,
        "iss": application_id,
    }
    return jwt.encode(claims, github_private_key, algorithm="RS256", sort_headers=False)

def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

def truncate_output(text: str, limit: int = MAX_OUTPUT_TEXT_LENGTH) -> str:
    """Keep the tail of step output, which is where failures show up."""
    if len(text) <= limit:
        return text
    return TRUNCATION_MARKER + text[-(limit - len(TRUNCATION_MARKER)):]

def _raise_for_status(response: httpx.Response, expected: tuple, action: str):
    if response.status_code not in expected:
        raise GithubApiError(
            f"Failed to {action}: GitHub returned {response.status_code}: {response.text}",
            status_code=response.status_code,
        )

class InstallationGateway(Protocol):
    async def get_pipeline_file(self, commit_sha: str) -> Optional[str]: ...

    async def create_check_run(self, name: str, head_sha: str) -> int: ...

    async def set_in_progress(self, check_run_id: int) -> None: ...

    async def get_check_run(self, check_run_id: int) -> CheckRun: ...

    async def set_complete(
        self,
        check_run_id: int,
        name: str,
        conclusion: str,
        started_at: Optional[str],
        completed_at: Optional[str],
        logs: str,
        status: str = "completed",
    ) -> None: ...

    async def find_check_run(self, name: str, head_sha: str) -> Optional[int]: ...

    async def create_block_check_run(self, name: str, head_sha: str, next_section_index: int) -> int: ...

class GithubGateway(Protocol):
    async def installation(self, installation_id: int, repo_full_name: str) -> InstallationGateway: ...

class GithubApp:
    """Authenticates as the GitHub App and hands out installation clients."""

    def __init__(
        self,
        application_id: str,
        private_key: str,
        http_client: httpx.AsyncClient,
        base_url: str = "https://api.github.com",
        pipeline_file_path: str = ".kubeci/pipeline.yml",
        clock: Callable[[], float] = time.time,
    ):
        self.application_id = application_id
        self.private_key = private_key
        self.http_client = http_client
        self.base_url = base_url.rstrip("/")
        self.pipeline_file_path = pipeline_file_path
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, http_client: httpx.AsyncClient) -> "GithubApp":
        return cls(
            application_id=settings.application_id,
            private_key=settings.github_application_private_key,
            http_client=http_client,
            base_url=settings.github_base_url,
            pipeline_file_path=settings.pipeline_file_path,
        )

    def authenticate(self) -> str:
        return authenticate_app(self.private_key, self.application_id, int(self.clock()))

    async def get_installation_token(self, installation_id: int) -> str:
        url = f"{self.base_url}/app/installations/{installation_id}/access_tokens"
        logger.info(f"Requesting installation access token for installation {installation_id}")

        response = await self.http_client.post(
            url,
            headers={
                "Authorization": f"Bearer {self.authenticate()}",
                "Accept": ACCEPT_JSON,
                "User-Agent": USER_AGENT,
            },
        )
        _raise_for_status(response, (200, 201), "get installation access token")

        return response.json()["token"]

    async def installation(self, installation_id: int, repo_full_name: str) -> "GithubInstallationClient":
        token = await self.get_installation_token(installation_id)
        return GithubInstallationClient(
            http_client=self.http_client,
            base_url=self.base_url,
            repo_full_name=repo_full_name,
            token=token,
            pipeline_file_path=self.pipeline_file_path,
        )

class GithubInstallationClient:
    """Repository-scoped calls made with an installation access token."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        repo_full_name: str,
        token: str,
        pipeline_file_path: str,
    ):
        self.http_client = http_client
        self.base_url = base_url
        self.repo_full_name = repo_full_name
        self.token = token
        self.pipeline_file_path = pipeline_file_path

    def _headers(self, accept: str = ACCEPT_JSON) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": accept,
            "User-Agent": USER_AGENT,
        }

    def _check_run_url(self, check_run_id: Optional[int] = None) -> str:
        url = f"{self.base_url}/repos/{self.repo_full_name}/check-runs"
        if check_run_id is not None:
            url += f"/{check_run_id}"
        return url

    async def _update_check_run(self, check_run_id: int, body: Dict[str, Any], action: str):
        response = await self.http_client.patch(
            self._check_run_url(check_run_id),
            headers=self._headers(),
            json=body,
        )
        _raise_for_status(response, (200,), action)

    async def get_pipeline_file(self, commit_sha: str) -> Optional[str]:
        """Raw pipeline file at a commit, or None if the repository has none."""
        url = f"{self.base_url}/repos/{self.repo_full_name}/contents/{self.pipeline_file_path}"
        logger.info(f"Downloading pipeline file for {self.repo_full_name}@{commit_sha}")

        response = await self.http_client.get(
            url,
            params={"ref": commit_sha},
            headers=self._headers(ACCEPT_RAW),
        )
        if response.status_code == 404:
            return None
        _raise_for_status(response, (200,), "download pipeline file")

        return response.text

    async def create_check_run(self, name: str, head_sha: str) -> int:
        logger.info(f"Creating check run '{name}' for {self.repo_full_name}@{head_sha}")

        response = await self.http_client.post(
            self._check_run_url(),
            headers=self._headers(),
            json={"name": name, "head_sha": head_sha},
        )
        _raise_for_status(response, (200, 201), f"create check run '{name}'")

        return response.json()["id"]

    async def find_check_run(self, name: str, head_sha: str) -> Optional[int]:
        """Id of a check run with this name on the commit, if there is one."""
        response = await self.http_client.get(
            f"{self.base_url}/repos/{self.repo_full_name}/commits/{head_sha}/check-runs",
            params={"check_name": name},
            headers=self._headers(),
        )
        _raise_for_status(response, (200,), f"list check runs named '{name}'")

        check_runs = response.json().get("check_runs") or []
        if not check_runs:
            return None
        return check_runs[0]["id"]

    async def set_in_progress(self, check_run_id: int) -> None:
        await self._update_check_run(
            check_run_id,
            {"status": "in_progress", "started_at": utc_now()},
            f"start check run {check_run_id}",
        )

    async def get_check_run(self, check_run_id: int) -> CheckRun:
        response = await self.http_client.get(
            self._check_run_url(check_run_id),
            headers=self._headers(),
        )
        _raise_for_status(response, (200,), f"get check run {check_run_id}")

        return CheckRun(**response.json())

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
        """
        Complete a check run with the step output.

        Re-sending the same completion is harmless, which the controller
        relies on when a notification is delivered twice.
        """
        body: Dict[str, Any] = {
            "name": name,
            "status": status,
            "conclusion": conclusion,
            "completed_at": completed_at or utc_now(),
            "output": {
                "title": name,
                "summary": f"Step finished with conclusion '{conclusion}'",
                "text": truncate_output(logs),
            },
        }
        if started_at:
            body["started_at"] = started_at

        logger.info(f"Completing check run {check_run_id} ({name}) with conclusion {conclusion}")
        await self._update_check_run(check_run_id, body, f"complete check run {check_run_id}")

    async def create_block_check_run(self, name: str, head_sha: str, next_section_index: int) -> int:
        """
        Create the check run standing in for a manual approval block.

        Its action carries the index of the section to run once unblocked.
        """
        check_run_id = await self.create_check_run(name, head_sha)
        now = utc_now()

        await self._update_check_run(
            check_run_id,
            {
                "name": name,
                "status": "completed",
                "conclusion": "success",
                "started_at": now,
                "completed_at": now,
                "actions": [
                    {
                        "label": UNBLOCK_LABEL,
                        "description": UNBLOCK_DESCRIPTION,
                        "identifier": str(next_section_index),
                    }
                ],
            },
            f"create block check run '{name}'",
        )

        return check_run_id
