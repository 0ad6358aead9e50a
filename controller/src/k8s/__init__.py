from controller.src.k8s.client import (
    init_k8s_client,
    get_core_api,
    ensure_namespace,
    PodClient,
)
from controller.src.k8s.labels import (
    build_pod_labels,
    context_from_pod,
)
from controller.src.k8s.pod_builder import (
    ScheduledStep,
    build_pod,
    build_pod_name,
    build_container_name,
    CHECK_RUN_ID_ENV,
)

__all__ = [
    "init_k8s_client",
    "get_core_api",
    "ensure_namespace",
    "PodClient",
    "build_pod_labels",
    "context_from_pod",
    "ScheduledStep",
    "build_pod",
    "build_pod_name",
    "build_container_name",
    "CHECK_RUN_ID_ENV",
]
