"""
GitHub webhook endpoints.
"""

from fastapi import APIRouter, Request, HTTPException, Header, Depends
from pydantic import ValidationError
from typing import Any, Dict, Optional
import json
import logging

from api.src.dependencies import get_pipeline_service, get_webhook_secret
from api.src.models.run import WebhookResponse
from api.src.models.webhook import CheckRunEvent, CheckSuiteEvent
from api.src.services.github import (
    CHECK_SUITE_ACTIONS,
    verify_signature,
    parse_check_suite_payload,
    parse_check_run_payload,
    requested_section_index,
)
from controller.src.services.pipeline_service import PipelineService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])

async def process_check_suite_event(
    event: CheckSuiteEvent,
    pipeline_service: PipelineService,
) -> Dict[str, Any]:
    """Start the first section of a pipeline for a requested check suite."""
    if event.action not in CHECK_SUITE_ACTIONS:
        return {"status": "ignored", "event": "check_suite", "message": f"Action '{event.action}' not handled"}

    logger.info(
        f"Check suite {event.action} for {event.repository.full_name}@{event.check_suite.head_sha}"
    )

    return await pipeline_service.start_section(
        installation_id=event.installation.id,
        repo_full_name=event.repository.full_name,
        commit_sha=event.check_suite.head_sha,
        branch=event.check_suite.head_branch or "",
    )

async def process_check_run_event(
    event: CheckRunEvent,
    pipeline_service: PipelineService,
) -> Dict[str, Any]:
    """Run the section an Unblock action points at."""
    section_index = requested_section_index(event)
    if section_index is None:
        return {"status": "ignored", "event": "check_run", "message": f"Action '{event.action}' not handled"}

    logger.info(
        f"Unblock requested on check run {event.check_run.id}, "
        f"running section {section_index} of {event.repository.full_name}@{event.check_run.head_sha}"
    )

    return await pipeline_service.run_section(
        installation_id=event.installation.id,
        repo_full_name=event.repository.full_name,
        commit_sha=event.check_run.head_sha,
        branch=event.head_branch,
        section_index=section_index,
    )

def _parse_event(parser, payload: Dict[str, Any]):
    try:
        return parser(payload)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid webhook payload: {e}")

@router.post("/webhook", response_model=WebhookResponse, response_model_exclude_none=True)
async def github_webhook(
    request: Request,
    pipeline_service: PipelineService = Depends(get_pipeline_service),
    webhook_secret: str = Depends(get_webhook_secret),
    x_hub_signature_256: Optional[str] = Header(None),
    x_github_event: Optional[str] = Header(None),
):
    """
    Receive GitHub App webhook events.
    """
    # Get raw body for signature verification
    body = await request.body()

    if not verify_signature(body, x_hub_signature_256, webhook_secret):
        raise HTTPException(status_code=401, detail="Invalid signature")

    # Parse JSON payload
    try:
        payload = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    if x_github_event == "ping":
        return {"status": "pong", "message": "Webhook configured successfully"}

    if x_github_event == "check_suite":
        event = _parse_event(parse_check_suite_payload, payload)
        handler = process_check_suite_event(event, pipeline_service)
    elif x_github_event == "check_run":
        event = _parse_event(parse_check_run_payload, payload)
        handler = process_check_run_event(event, pipeline_service)
    else:
        return {
            "status": "ignored",
            "event": x_github_event,
            "message": f"Event type '{x_github_event}' not handled"
        }

    try:
        return await handler
    except Exception as e:
        logger.exception(f"Failed to handle {x_github_event} event: {e}")
        raise HTTPException(status_code=500, detail=str(e))
