from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager, suppress
import asyncio
import logging
import sys

import httpx
import uvicorn

from api.src.config import get_settings
from api.src.routes import health_router, pipelines_router, webhooks_router
from controller.src.config import get_settings as get_engine_settings
from controller.src.k8s.client import init_k8s_client, ensure_namespace
from controller.src.k8s.labels import APP_LABEL
from controller.src.worker import build_engine, watch_pods

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)

logger = logging.getLogger(__name__)

settings = get_settings()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting KubeCI API")

    # Missing GitHub App credentials fail here, before anything is served
    engine_settings = get_engine_settings()
    logging.getLogger().setLevel(engine_settings.log_level.upper())

    if not init_k8s_client(engine_settings.k8s_in_cluster):
        raise RuntimeError("Failed to initialize Kubernetes client")
    ensure_namespace(engine_settings.namespace)

    http_client = httpx.AsyncClient(timeout=engine_settings.http_timeout_seconds)
    pipeline_service, reconciler = build_engine(engine_settings, http_client)

    app.state.pipeline_service = pipeline_service
    app.state.pods = pipeline_service.pods
    app.state.app_label = engine_settings.app_label

    watch_task = None
    if settings.run_reconciler:
        watch_task = asyncio.create_task(watch_pods(
            pipeline_service.pods,
            reconciler,
            timeout_seconds=engine_settings.watch_timeout_seconds,
            retry_delay=engine_settings.watch_retry_delay_seconds,
            label_selector=f"{APP_LABEL}={engine_settings.app_label}",
        ))

    try:
        yield
    finally:
        # Shutdown
        logger.info("Shutting down KubeCI API")
        if watch_task is not None:
            watch_task.cancel()
            with suppress(asyncio.CancelledError):
                await watch_task
        await http_client.aclose()

app = FastAPI(
    title="KubeCI",
    description="Kubernetes-native CI driven by GitHub Checks",
    version="0.1.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health_router)
app.include_router(pipelines_router)
app.include_router(webhooks_router)

@app.get("/")
async def root():
    return {
        "name": "KubeCI",
        "version": "0.1.0",
        "docs": "/docs"
    }

def run():
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)

if __name__ == "__main__":
    run()
