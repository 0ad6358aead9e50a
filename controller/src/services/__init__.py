from controller.src.services.pipeline_parser import (
    parse_pipeline_config,
    parse_pipeline_dict,
    PipelineConfigError,
)
from controller.src.services.sectioner import build_sections, select_section
from controller.src.services.github import (
    GithubApp,
    GithubInstallationClient,
    GithubApiError,
    authenticate_app,
)
from controller.src.services.log_collector import collect_logs
from controller.src.services.status_reporter import (
    report_step_started,
    report_step_finished,
    report_step_not_run,
)
from controller.src.services.pipeline_service import PipelineService
from controller.src.services.reconciler import Reconciler, newly_finished_containers

__all__ = [
    "parse_pipeline_config",
    "parse_pipeline_dict",
    "PipelineConfigError",
    "build_sections",
    "select_section",
    "GithubApp",
    "GithubInstallationClient",
    "GithubApiError",
    "authenticate_app",
    "collect_logs",
    "report_step_started",
    "report_step_finished",
    "report_step_not_run",
    "PipelineService",
    "Reconciler",
    "newly_finished_containers",
]
