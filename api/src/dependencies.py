"""
Request dependencies. The engine is built once by the app lifespan and kept on
`app.state`.
"""

from fastapi import HTTPException, Request

from api.src.config import get_settings
from controller.src.k8s.client import PodClient
from controller.src.services.pipeline_service import PipelineService

def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=503, detail="Pipeline engine is not initialized")
    return value

def get_pipeline_service(request: Request) -> PipelineService:
    return _state(request, "pipeline_service")

def get_pod_client(request: Request) -> PodClient:
    return _state(request, "pods")

def get_app_label(request: Request) -> str:
    return _state(request, "app_label")

def get_webhook_secret() -> str:
    return get_settings().github_webhook_secret
