from fastapi import APIRouter, Depends, HTTPException
from typing import Dict, List

from api.src.dependencies import get_app_label, get_pod_client
from api.src.models.run import PipelineRunResponse, SectionStatusResponse
from api.src.services.pipeline_status import (
    pods_selector,
    group_by_repo,
    group_by_branch,
    extract_steps,
)
from controller.src.k8s.client import PodClient

router = APIRouter(prefix="/pipelines", tags=["pipelines"])

@router.get("", response_model=Dict[str, List[PipelineRunResponse]])
async def list_pipelines(
    pods: PodClient = Depends(get_pod_client),
    app_label: str = Depends(get_app_label),
):
    """Running pipeline sections, grouped by repository."""
    items = await pods.list_pods(pods_selector(app_label))
    return group_by_repo(items)

@router.get("/{owner}/{repo}", response_model=Dict[str, List[PipelineRunResponse]])
async def list_repository_pipelines(
    owner: str,
    repo: str,
    pods: PodClient = Depends(get_pod_client),
    app_label: str = Depends(get_app_label),
):
    """Running pipeline sections of one repository, grouped by branch."""
    items = await pods.list_pods(pods_selector(app_label, repo_full_name=f"{owner}/{repo}"))
    return group_by_branch(items)

@router.get("/{owner}/{repo}/{commit_sha}", response_model=List[SectionStatusResponse])
async def get_commit_pipeline(
    owner: str,
    repo: str,
    commit_sha: str,
    pods: PodClient = Depends(get_pod_client),
    app_label: str = Depends(get_app_label),
):
    """Step status of a commit's running sections."""
    items = await pods.list_pods(
        pods_selector(app_label, repo_full_name=f"{owner}/{repo}", commit_sha=commit_sha)
    )
    sections = extract_steps(items)

    if not sections:
        raise HTTPException(status_code=404, detail="No running pipeline for this commit")

    return sections
