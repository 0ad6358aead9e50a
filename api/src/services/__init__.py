from api.src.services.github import (
    verify_signature,
    parse_check_suite_payload,
    parse_check_run_payload,
    requested_section_index,
)
from api.src.services.pipeline_status import (
    pods_selector,
    pipeline_runs,
    group_by_repo,
    group_by_branch,
    extract_steps,
)

__all__ = [
    "verify_signature",
    "parse_check_suite_payload",
    "parse_check_run_payload",
    "requested_section_index",
    "pods_selector",
    "pipeline_runs",
    "group_by_repo",
    "group_by_branch",
    "extract_steps",
]
