"""
Pod watch worker - feeds Pod events to the Reconciler.
"""

import asyncio
import logging
from typing import Optional

import httpx

from controller.src.config import Settings
from controller.src.k8s.client import PodClient, get_core_api
from controller.src.k8s.labels import APP_LABEL
from controller.src.services.github import GithubApp
from controller.src.services.pipeline_service import PipelineService
from controller.src.services.reconciler import Reconciler

logger = logging.getLogger(__name__)

async def watch_pods(
    pods: PodClient,
    reconciler: Reconciler,
    timeout_seconds: int,
    retry_delay: float,
    label_selector: Optional[str] = None,
):
    """
    Watch loop. Each stream ends after `timeout_seconds` and is reopened, the
    fresh listing resyncs every live Pod through the Reconciler.
    """
    logger.info(f"Watching pods in namespace {pods.namespace}")

    while True:
        try:
            async for event_type, pod in pods.watch(timeout_seconds, label_selector=label_selector):
                await reconciler.handle_event(event_type, pod)
            logger.debug("Pod watch stream ended, resyncing")
        except asyncio.CancelledError:
            logger.info("Pod watch stopped")
            raise
        except Exception as e:
            logger.exception(f"Pod watch failed: {e}")
            await asyncio.sleep(retry_delay)

def build_engine(settings: Settings, http_client: httpx.AsyncClient):
    """Wire the GitHub client, Pod client, PipelineService and Reconciler."""
    github = GithubApp.from_settings(settings, http_client)
    pods = PodClient(get_core_api(), settings.namespace)
    pipeline_service = PipelineService(github, pods, settings)
    reconciler = Reconciler(pipeline_service, github, pods)
    return pipeline_service, reconciler

async def worker_loop(settings: Settings):
    """Main worker loop."""
    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as http_client:
        _, reconciler = build_engine(settings, http_client)

        await watch_pods(
            reconciler.pods,
            reconciler,
            timeout_seconds=settings.watch_timeout_seconds,
            retry_delay=settings.watch_retry_delay_seconds,
            label_selector=f"{APP_LABEL}={settings.app_label}",
        )

def run_worker(settings: Settings):
    """Entry point for worker."""
    try:
        asyncio.run(worker_loop(settings))
    except KeyboardInterrupt:
        logger.info("Worker shutting down...")
