"""
Collect logs from step containers.
"""

import logging
from kubernetes.client.rest import ApiException

from controller.src.k8s.client import PodClient

logger = logging.getLogger(__name__)

async def collect_logs(pods: PodClient, pod_name: str, container_name: str) -> str:
    """
    Collect logs from one container of a Pod.

    A failed fetch is reported in place of the logs so the step still gets a
    conclusion.
    """
    try:
        return await pods.read_container_logs(pod_name, container_name)
    except ApiException as e:
        logger.error(f"Failed to collect logs for {pod_name}/{container_name}: {e}")
        return f"Error collecting logs: {e.reason}"
