"""
KubeCI Controller - Main entry point.
"""

import logging
import sys

from pydantic import ValidationError

from controller.src.config import get_settings
from controller.src.k8s.client import init_k8s_client, ensure_namespace
from controller.src.worker import run_worker

logger = logging.getLogger(__name__)

def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)]
    )

def main():
    """Main entry point."""
    configure_logging()

    try:
        settings = get_settings()
    except ValidationError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    logging.getLogger().setLevel(settings.log_level.upper())

    logger.info("Starting KubeCI Controller")
    logger.info(f"Kubernetes namespace: {settings.namespace}")
    logger.info(f"GitHub API: {settings.github_base_url}")

    # Initialize Kubernetes client
    if not init_k8s_client(settings.k8s_in_cluster):
        logger.error("Failed to initialize Kubernetes client")
        sys.exit(1)

    # Ensure namespace exists
    try:
        ensure_namespace(settings.namespace)
    except Exception as e:
        logger.error(f"Failed to ensure namespace: {e}")
        sys.exit(1)

    logger.info("Starting worker...")
    run_worker(settings)

if __name__ == "__main__":
    main()
