"""
Report step status to GitHub check runs.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from controller.src.services.github import InstallationGateway

logger = logging.getLogger(__name__)

def step_conclusion(exit_code: int) -> str:
    return "success" if exit_code == 0 else "failure"

def format_step_output(logs: str, exit_code: int) -> str:
    return f"{logs.rstrip()}\n\nExit code: {exit_code}"

def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")

async def report_step_started(installation: InstallationGateway, check_run_id: int):
    """Mark a step's check run as in progress."""
    await installation.set_in_progress(check_run_id)
    logger.info(f"Check run {check_run_id} is in progress")

async def report_step_finished(
    installation: InstallationGateway,
    check_run_id: int,
    exit_code: int,
    logs: str,
    finished_at: Optional[datetime] = None,
):
    """Complete a step's check run from its container's exit code and logs."""
    check_run = await installation.get_check_run(check_run_id)
    conclusion = step_conclusion(exit_code)

    await installation.set_complete(
        check_run_id,
        name=check_run.name,
        conclusion=conclusion,
        started_at=check_run.started_at,
        completed_at=format_timestamp(finished_at),
        logs=format_step_output(logs, exit_code),
    )
    logger.info(f"Check run {check_run_id} ({check_run.name}) finished: {conclusion}")

async def report_step_not_run(installation: InstallationGateway, check_run_id: int, reason: str):
    """Fail a step's check run whose container never ran to completion."""
    check_run = await installation.get_check_run(check_run_id)

    await installation.set_complete(
        check_run_id,
        name=check_run.name,
        conclusion="failure",
        started_at=check_run.started_at,
        completed_at=None,
        logs=reason,
    )
    logger.info(f"Check run {check_run_id} ({check_run.name}) failed without running: {reason}")
