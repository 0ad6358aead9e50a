from fastapi import APIRouter, Depends

from api.src.dependencies import get_app_label, get_pod_client
from api.src.services.pipeline_status import pods_selector
from controller.src.k8s.client import PodClient

router = APIRouter(tags=["health"])

@router.get("/health")
async def health_check():
    return {"status": "healthy", "service": "kubeci-api"}

@router.get("/health/kubernetes")
async def kubernetes_health_check(
    pods: PodClient = Depends(get_pod_client),
    app_label: str = Depends(get_app_label),
):
    try:
        items = await pods.list_pods(pods_selector(app_label))
        return {
            "status": "healthy",
            "kubernetes": "connected",
            "namespace": pods.namespace,
            "pipeline_pods": len(items),
        }
    except Exception as e:
        return {"status": "unhealthy", "kubernetes": str(e)}
