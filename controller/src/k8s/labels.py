"""
Pod label schema.

Labels are the only state the controller keeps: every running section can be
recovered from the labels of its Pod.
"""

import re
from typing import Dict, Optional

from kubernetes import client

from controller.src.models.pipeline import RunningContext

APP_LABEL = "app"
REPO_LABEL = "repo"
COMMIT_LABEL = "commit"
COMMIT_SHA_LABEL = "commit_sha"
BRANCH_LABEL = "branch_name"
INSTALLATION_LABEL = "installation_id"
STEP_SECTION_LABEL = "step_section"

# Git branch names are not always valid label values, the exact name lives here
BRANCH_ANNOTATION = "branch_name"

SHORT_SHA_LENGTH = 7
MAX_LABEL_LENGTH = 63

_INVALID_LABEL_CHARS = re.compile(r"[^A-Za-z0-9_.-]")

def label_safe(value: str) -> str:
    """Coerce a value into a valid Kubernetes label value."""
    safe = _INVALID_LABEL_CHARS.sub("-", value)[:MAX_LABEL_LENGTH]
    return safe.strip("-_.")

def repo_label(repo_full_name: str) -> str:
    return repo_full_name.replace("/", ".")

def repo_from_label(value: str) -> str:
    # Owners cannot contain dots, so the first dot is the separator
    return value.replace(".", "/", 1)

def build_pod_labels(
    app_label: str,
    repo_full_name: str,
    commit_sha: str,
    branch: str,
    installation_id: int,
    section_index: int,
) -> Dict[str, str]:
    return {
        APP_LABEL: app_label,
        REPO_LABEL: repo_label(repo_full_name),
        COMMIT_LABEL: commit_sha[:SHORT_SHA_LENGTH],
        COMMIT_SHA_LABEL: commit_sha,
        BRANCH_LABEL: label_safe(branch),
        INSTALLATION_LABEL: str(installation_id),
        STEP_SECTION_LABEL: str(section_index),
    }

def build_pod_annotations(branch: str) -> Dict[str, str]:
    return {BRANCH_ANNOTATION: branch}

def context_from_pod(pod: client.V1Pod) -> Optional[RunningContext]:
    """
    Rebuild the running context of a section from its Pod metadata.

    Returns None when the labels do not fully describe a section, which is
    how Pods not created by the controller are ignored.
    """
    metadata = pod.metadata
    if metadata is None:
        return None

    labels = metadata.labels or {}
    annotations = metadata.annotations or {}

    required = (INSTALLATION_LABEL, REPO_LABEL, COMMIT_SHA_LABEL, BRANCH_LABEL, STEP_SECTION_LABEL)
    if not all(labels.get(key) is not None for key in required):
        return None

    try:
        return RunningContext(
            installation_id=int(labels[INSTALLATION_LABEL]),
            repo_full_name=repo_from_label(labels[REPO_LABEL]),
            commit_sha=labels[COMMIT_SHA_LABEL],
            branch_name=annotations.get(BRANCH_ANNOTATION, labels[BRANCH_LABEL]),
            step_section=int(labels[STEP_SECTION_LABEL]),
        )
    except ValueError:
        return None
