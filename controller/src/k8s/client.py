"""
Kubernetes client initialization and Pod operations.
"""

import asyncio
import threading
from typing import AsyncIterator, List, Optional, Tuple

from kubernetes import client, config, watch
from kubernetes.client.rest import ApiException
import logging

logger = logging.getLogger(__name__)

WATCHED_EVENTS = ("ADDED", "MODIFIED", "DELETED")

_api_client = None
_core_v1 = None

def init_k8s_client(in_cluster: bool = False) -> bool:
    """Initialize Kubernetes client."""
    global _api_client, _core_v1

    try:
        if in_cluster:
            # Running inside Kubernetes
            config.load_incluster_config()
            logger.info("Loaded in-cluster Kubernetes config")
        else:
            # Running locally (Docker Desktop, minikube, etc.)
            config.load_kube_config()
            logger.info("Loaded local Kubernetes config")

        _api_client = client.ApiClient()
        _core_v1 = client.CoreV1Api(_api_client)

        logger.info("Kubernetes client initialized successfully")
        return True
    except Exception as e:
        logger.error(f"Failed to initialize Kubernetes client: {e}")
        return False

def get_core_api() -> client.CoreV1Api:
    """Get CoreV1 API client for Pod operations."""
    global _core_v1
    if _core_v1 is None:
        raise RuntimeError("Kubernetes client is not initialized")
    return _core_v1

def ensure_namespace(namespace: str):
    """Ensure the namespace pipelines run in exists."""
    core_v1 = get_core_api()

    try:
        core_v1.read_namespace(name=namespace)
        logger.info(f"Namespace '{namespace}' exists")
    except ApiException as e:
        if e.status == 404:
            body = client.V1Namespace(metadata=client.V1ObjectMeta(name=namespace))
            core_v1.create_namespace(body=body)
            logger.info(f"Created namespace '{namespace}'")
        else:
            raise

class PodClient:
    """
    Namespaced Pod operations.

    The kubernetes client is blocking, so every call runs in a worker thread
    to keep the event loop free for webhook handlers and the pod watch.
    """

    def __init__(self, core_v1: client.CoreV1Api, namespace: str):
        self.core_v1 = core_v1
        self.namespace = namespace

    async def create_pod(self, pod: client.V1Pod) -> bool:
        """Create a Pod. Returns False if a Pod with that name already exists."""
        try:
            await asyncio.to_thread(
                self.core_v1.create_namespaced_pod,
                namespace=self.namespace,
                body=pod,
            )
            logger.info(f"Created pod {pod.metadata.name}")
            return True
        except ApiException as e:
            if e.status == 409:
                logger.info(f"Pod {pod.metadata.name} already exists")
                return False
            raise

    async def get_pod(self, name: str) -> Optional[client.V1Pod]:
        try:
            return await asyncio.to_thread(
                self.core_v1.read_namespaced_pod,
                name=name,
                namespace=self.namespace,
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise

    async def delete_pod(self, name: str):
        try:
            await asyncio.to_thread(
                self.core_v1.delete_namespaced_pod,
                name=name,
                namespace=self.namespace,
            )
            logger.info(f"Deleted pod {name}")
        except ApiException as e:
            if e.status != 404:
                raise

    async def read_container_logs(self, name: str, container: str) -> str:
        return await asyncio.to_thread(
            self.core_v1.read_namespaced_pod_log,
            name=name,
            namespace=self.namespace,
            container=container,
            timestamps=True,
        )

    async def list_pods(self, label_selector: str) -> List[client.V1Pod]:
        pods = await asyncio.to_thread(
            self.core_v1.list_namespaced_pod,
            namespace=self.namespace,
            label_selector=label_selector,
        )
        return pods.items

    def _stream_events(
        self,
        loop: asyncio.AbstractEventLoop,
        queue: asyncio.Queue,
        stop: threading.Event,
        timeout_seconds: int,
        label_selector: Optional[str],
    ):
        """
        Blocking watch stream, run on a daemon thread. Events are handed to the
        event loop, followed by None when the stream ends or the error it
        failed with.
        """
        def hand_over(item):
            if not loop.is_closed():
                loop.call_soon_threadsafe(queue.put_nowait, item)

        w = watch.Watch()
        try:
            for event in w.stream(
                self.core_v1.list_namespaced_pod,
                namespace=self.namespace,
                label_selector=label_selector,
                timeout_seconds=timeout_seconds,
            ):
                if stop.is_set():
                    break
                hand_over(event)
        except Exception as e:
            hand_over(e)
        finally:
            w.stop()
            hand_over(None)

    async def watch(
        self,
        timeout_seconds: int,
        label_selector: Optional[str] = None,
    ) -> AsyncIterator[Tuple[str, client.V1Pod]]:
        """
        List and watch Pods until the server closes the stream.

        Every new stream starts with an ADDED event per existing Pod, so
        reconnecting doubles as a resync. The stream is read on a daemon
        thread: a cancelled watch leaves it to finish on its own without
        holding up shutdown.
        """
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()
        stop = threading.Event()

        reader = threading.Thread(
            target=self._stream_events,
            args=(loop, queue, stop, timeout_seconds, label_selector),
            name=f"pod-watch-{self.namespace}",
            daemon=True,
        )
        reader.start()

        try:
            while True:
                item = await queue.get()
                if item is None:
                    return
                if isinstance(item, Exception):
                    raise item

                if item["type"] not in WATCHED_EVENTS:
                    logger.debug(f"Ignoring {item['type']} watch event")
                    continue

                yield item["type"], item["object"]
        finally:
            stop.set()
