"""Tests for the GitHub App client against a mocked transport."""

import json

import httpx
import pytest

from controller.src.services.github import (
    MAX_OUTPUT_TEXT_LENGTH,
    GithubApiError,
    GithubApp,
    GithubInstallationClient,
    truncate_output,
)

def make_installation(handler):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GithubInstallationClient(
        http_client=http_client,
        base_url="https://api.github.com",
        repo_full_name="octo/widgets",
        token="inst-token",
        pipeline_file_path=".kubeci/pipeline.yml",
    )

@pytest.mark.asyncio
async def test_installation_token():
    requests = []

    def handler(request: httpx.Request):
        requests.append(request)
        return httpx.Response(201, json={"token": "inst-token"})

    app = GithubApp(
        application_id="123456",
        private_key="unused",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    app.authenticate = lambda: "app-jwt"

    installation = await app.installation(5, "octo/widgets")

    assert installation.token == "inst-token"
    assert installation.repo_full_name == "octo/widgets"
    assert requests[0].method == "POST"
    assert requests[0].url.path == "/app/installations/5/access_tokens"
    assert requests[0].headers["Authorization"] == "Bearer app-jwt"

@pytest.mark.asyncio
async def test_installation_token_failure():
    app = GithubApp(
        application_id="123456",
        private_key="unused",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(401))),
    )
    app.authenticate = lambda: "app-jwt"

    with pytest.raises(GithubApiError) as exc_info:
        await app.get_installation_token(5)
    assert exc_info.value.status_code == 401

@pytest.mark.asyncio
async def test_get_pipeline_file():
    def handler(request: httpx.Request):
        assert request.url.path == "/repos/octo/widgets/contents/.kubeci/pipeline.yml"
        assert request.url.params["ref"] == "abc123"
        assert request.headers["Accept"] == "application/vnd.github.raw"
        assert request.headers["Authorization"] == "Bearer inst-token"
        return httpx.Response(200, text="steps: []")

    installation = make_installation(handler)
    assert await installation.get_pipeline_file("abc123") == "steps: []"

@pytest.mark.asyncio
async def test_missing_pipeline_file():
    installation = make_installation(lambda r: httpx.Response(404, json={"message": "Not Found"}))
    assert await installation.get_pipeline_file("abc123") is None

@pytest.mark.asyncio
async def test_create_check_run():
    def handler(request: httpx.Request):
        assert request.method == "POST"
        assert request.url.path == "/repos/octo/widgets/check-runs"
        assert json.loads(request.content) == {"name": "Unit tests", "head_sha": "abc123"}
        return httpx.Response(201, json={"id": 99, "name": "Unit tests"})

    installation = make_installation(handler)
    assert await installation.create_check_run("Unit tests", "abc123") == 99

@pytest.mark.asyncio
async def test_find_check_run():
    def handler(request: httpx.Request):
        assert request.method == "GET"
        assert request.url.path == "/repos/octo/widgets/commits/abc123/check-runs"
        assert request.url.params["check_name"] == "Release"
        return httpx.Response(200, json={"total_count": 1, "check_runs": [{"id": 12, "name": "Release"}]})

    assert await make_installation(handler).find_check_run("Release", "abc123") == 12

@pytest.mark.asyncio
async def test_find_check_run_none():
    installation = make_installation(lambda r: httpx.Response(200, json={"total_count": 0, "check_runs": []}))
    assert await installation.find_check_run("Release", "abc123") is None

@pytest.mark.asyncio
async def test_get_check_run():
    def handler(request: httpx.Request):
        return httpx.Response(200, json={
            "id": 99,
            "name": "Unit tests",
            "status": "in_progress",
            "started_at": "2024-01-01T00:00:00Z",
            "conclusion": None,
            "head_sha": "abc123",
        })

    check_run = await make_installation(handler).get_check_run(99)

    assert check_run.name == "Unit tests"
    assert check_run.started_at == "2024-01-01T00:00:00Z"

@pytest.mark.asyncio
async def test_set_in_progress():
    bodies = []

    def handler(request: httpx.Request):
        assert request.method == "PATCH"
        assert request.url.path == "/repos/octo/widgets/check-runs/99"
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={})

    await make_installation(handler).set_in_progress(99)
    assert bodies[0]["status"] == "in_progress"

@pytest.mark.asyncio
async def test_set_complete():
    bodies = []

    def handler(request: httpx.Request):
        bodies.append(json.loads(request.content))
        return httpx.Response(200, json={})

    installation = make_installation(handler)
    await installation.set_complete(
        99,
        name="Unit tests",
        conclusion="failure",
        started_at="2024-01-01T00:00:00Z",
        completed_at="2024-01-01T00:05:00Z",
        logs="boom\n\nExit code: 1",
    )

    assert bodies[0] == {
        "name": "Unit tests",
        "status": "completed",
        "conclusion": "failure",
        "started_at": "2024-01-01T00:00:00Z",
        "completed_at": "2024-01-01T00:05:00Z",
        "output": {
            "title": "Unit tests",
            "summary": "Step finished with conclusion 'failure'",
            "text": "boom\n\nExit code: 1",
        },
    }

@pytest.mark.asyncio
async def test_set_complete_failure():
    installation = make_installation(lambda r: httpx.Response(422, json={"message": "Invalid"}))

    with pytest.raises(GithubApiError) as exc_info:
        await installation.set_complete(99, "a", "success", None, None, "")
    assert exc_info.value.status_code == 422

@pytest.mark.asyncio
async def test_block_check_run():
    requests = []

    def handler(request: httpx.Request):
        requests.append(request)
        if request.method == "POST":
            return httpx.Response(201, json={"id": 12})
        return httpx.Response(200, json={})

    check_run_id = await make_installation(handler).create_block_check_run("Release", "abc123", 3)

    assert check_run_id == 12
    update = json.loads(requests[1].content)
    assert requests[1].url.path == "/repos/octo/widgets/check-runs/12"
    assert update["status"] == "completed"
    assert update["conclusion"] == "success"
    assert update["actions"] == [
        {
            "label": "Unblock",
            "description": "Run the remaining pipeline steps",
            "identifier": "3",
        }
    ]

def test_truncate_output():
    assert truncate_output("short") == "short"

    long_text = "x" * (MAX_OUTPUT_TEXT_LENGTH + 100) + "tail"
    truncated = truncate_output(long_text)

    assert len(truncated) == MAX_OUTPUT_TEXT_LENGTH
    assert truncated.endswith("tail")
