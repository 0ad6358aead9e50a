"""
Read-only pipeline status, projected from the Pods the controller runs.
"""

from collections import defaultdict
from typing import Dict, List, Optional

from kubernetes import client

from api.src.models.run import PipelineRunResponse, SectionStatusResponse, StepStatusResponse
from controller.src.k8s.labels import (
    APP_LABEL,
    COMMIT_SHA_LABEL,
    REPO_LABEL,
    context_from_pod,
    repo_label,
)
from controller.src.services.reconciler import find_check_run_id

def pods_selector(app_label: str, repo_full_name: Optional[str] = None, commit_sha: Optional[str] = None) -> str:
    selector = [f"{APP_LABEL}={app_label}"]
    if repo_full_name:
        selector.append(f"{REPO_LABEL}={repo_label(repo_full_name)}")
    if commit_sha:
        selector.append(f"{COMMIT_SHA_LABEL}={commit_sha}")
    return ",".join(selector)

def pipeline_runs(pods: List[client.V1Pod]) -> List[PipelineRunResponse]:
    """One entry per pipeline Pod, newest first. Unlabelled Pods are skipped."""
    runs = []
    for pod in pods:
        context = context_from_pod(pod)
        if context is None:
            continue

        runs.append(PipelineRunResponse(
            pod=pod.metadata.name,
            repo=context.repo_full_name,
            commit_sha=context.commit_sha,
            branch=context.branch_name,
            section=context.step_section,
            phase=pod.status.phase if pod.status else None,
            created_at=pod.metadata.creation_timestamp,
        ))

    runs.sort(key=lambda run: (run.created_at is not None, run.created_at), reverse=True)
    return runs

def group_by_repo(pods: List[client.V1Pod]) -> Dict[str, List[PipelineRunResponse]]:
    grouped = defaultdict(list)
    for run in pipeline_runs(pods):
        grouped[run.repo].append(run)
    return dict(grouped)

def group_by_branch(pods: List[client.V1Pod]) -> Dict[str, List[PipelineRunResponse]]:
    grouped = defaultdict(list)
    for run in pipeline_runs(pods):
        grouped[run.branch].append(run)
    return dict(grouped)

def step_status(pod: client.V1Pod, container_name: str) -> StepStatusResponse:
    statuses = (pod.status.container_statuses if pod.status else None) or []
    status = next((s for s in statuses if s.name == container_name), None)

    step = StepStatusResponse(
        container=container_name,
        check_run_id=find_check_run_id(pod, container_name),
        state="pending",
    )
    if status is None or status.state is None:
        return step

    if status.state.terminated is not None:
        terminated = status.state.terminated
        step.state = "succeeded" if terminated.exit_code == 0 else "failed"
        step.exit_code = terminated.exit_code
        step.started_at = terminated.started_at
        step.finished_at = terminated.finished_at
    elif status.state.running is not None:
        step.state = "running"
        step.started_at = status.state.running.started_at
    elif status.state.waiting is not None:
        step.state = "waiting"

    return step

def extract_steps(pods: List[client.V1Pod]) -> List[SectionStatusResponse]:
    """Per-step container status for the Pods of one commit, by section."""
    sections = []
    for pod in pods:
        context = context_from_pod(pod)
        if context is None:
            continue

        containers = pod.spec.containers if pod.spec else []
        sections.append(SectionStatusResponse(
            section=context.step_section,
            pod=pod.metadata.name,
            branch=context.branch_name,
            phase=pod.status.phase if pod.status else None,
            steps=[step_status(pod, container.name) for container in containers],
        ))

    sections.sort(key=lambda section: section.section)
    return sections
