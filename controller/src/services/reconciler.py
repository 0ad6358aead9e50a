"""
Pod reconciler.

Reacts to Pod watch events: reports finished step containers to their check
runs and, once a section's Pod has finished, starts the next section and
deletes the Pod. Everything it needs is rebuilt from Pod labels, the
in-memory bookkeeping only deduplicates notifications.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from kubernetes import client

from controller.src.k8s.client import PodClient
from controller.src.k8s.labels import context_from_pod
from controller.src.k8s.pod_builder import CHECK_RUN_ID_ENV, GIT_CHECKOUT_CONTAINER
from controller.src.models.pipeline import RunningContext
from controller.src.services.github import GithubGateway, InstallationGateway
from controller.src.services.log_collector import collect_logs
from controller.src.services.pipeline_service import PipelineService
from controller.src.services.status_reporter import (
    report_step_finished,
    report_step_not_run,
    report_step_started,
)

logger = logging.getLogger(__name__)

FINISHED_PHASES = ("Succeeded", "Failed")

@dataclass
class TrackedPod:
    context: RunningContext
    started: Set[str] = field(default_factory=set)
    reported: Set[str] = field(default_factory=set)
    advanced: bool = False

def _container_statuses(pod: client.V1Pod) -> List[client.V1ContainerStatus]:
    if pod.status is None:
        return []
    return pod.status.container_statuses or []

def newly_finished_containers(pod: client.V1Pod) -> List[Tuple[str, client.V1ContainerStateTerminated]]:
    """
    Containers that terminated since the previous state they reported.

    A container whose last state was already terminated is not flagged again,
    which absorbs repeated deliveries of the same terminal state.
    """
    finished = []
    for status in _container_statuses(pod):
        state, last_state = status.state, status.last_state

        if state is None or state.terminated is None:
            continue
        if last_state is not None and last_state.terminated is not None:
            continue

        finished.append((status.name, state.terminated))
    return finished

def running_containers(pod: client.V1Pod) -> List[str]:
    return [
        status.name
        for status in _container_statuses(pod)
        if status.state is not None and status.state.running is not None
    ]

def find_check_run_id(pod: client.V1Pod, container_name: str) -> Optional[int]:
    """Check run id a step container was created for, read from its env."""
    containers = pod.spec.containers if pod.spec else []
    for container in containers:
        if container.name != container_name:
            continue
        for env in container.env or []:
            if env.name == CHECK_RUN_ID_ENV and env.value:
                try:
                    return int(env.value)
                except ValueError:
                    return None
    return None

def is_finished(pod: client.V1Pod) -> bool:
    return pod.status is not None and pod.status.phase in FINISHED_PHASES

def is_deleting(pod: client.V1Pod) -> bool:
    return pod.metadata is not None and pod.metadata.deletion_timestamp is not None

class Reconciler:
    def __init__(self, pipeline_service: PipelineService, github: GithubGateway, pods: PodClient):
        self.pipeline_service = pipeline_service
        self.github = github
        self.pods = pods
        self.tracked: Dict[str, TrackedPod] = {}

    async def handle_event(self, event_type: str, pod: client.V1Pod):
        """Handle one watch event. Errors are logged, never raised."""
        name = pod.metadata.name if pod.metadata else None

        try:
            if event_type == "ADDED":
                await self.on_added(pod)
            elif event_type == "MODIFIED":
                await self.on_modified(pod)
            elif event_type == "DELETED":
                self.on_deleted(pod)
        except Exception as e:
            logger.exception(f"Failed to handle {event_type} event for pod {name}: {e}")

    async def on_added(self, pod: client.V1Pod):
        context = context_from_pod(pod)
        if context is None:
            logger.debug(f"Ignoring pod {pod.metadata.name} without pipeline labels")
            return

        name = pod.metadata.name
        tracked = self.tracked.get(name)

        # Resyncs deliver ADDED again for known pods, keep what was acknowledged
        if tracked is None or tracked.context != context:
            tracked = TrackedPod(context=context)
            self.tracked[name] = tracked
            logger.info(f"Tracking pod {name} (section {context.step_section} of {context.repo_full_name})")

        # A pod that finished while nobody was watching still needs handling
        await self.reconcile(pod, tracked)

    async def on_modified(self, pod: client.V1Pod):
        tracked = self.tracked.get(pod.metadata.name)
        if tracked is None:
            return
        await self.reconcile(pod, tracked)

    def on_deleted(self, pod: client.V1Pod):
        if self.tracked.pop(pod.metadata.name, None) is not None:
            logger.info(f"Pod {pod.metadata.name} was deleted")

    async def reconcile(self, pod: client.V1Pod, tracked: TrackedPod):
        if is_deleting(pod):
            return

        finished = [
            (name, terminated)
            for name, terminated in newly_finished_containers(pod)
            if name not in tracked.reported
        ]
        finished_names = {name for name, _ in finished}
        started = [
            name
            for name in running_containers(pod)
            if name not in tracked.started and name not in tracked.reported and name not in finished_names
        ]
        section_done = is_finished(pod)

        if not (started or finished or section_done):
            return

        installation = None
        if started or finished or not tracked.advanced:
            context = tracked.context
            installation = await self.github.installation(context.installation_id, context.repo_full_name)

        for container_name in started:
            await self._report_started(pod, tracked, installation, container_name)

        for container_name, terminated in finished:
            await self._report_finished(pod, tracked, installation, container_name, terminated)

        if section_done:
            await self._complete_section(pod, tracked, installation)

    async def _report_started(
        self,
        pod: client.V1Pod,
        tracked: TrackedPod,
        installation: InstallationGateway,
        container_name: str,
    ):
        check_run_id = find_check_run_id(pod, container_name)
        if check_run_id is None:
            tracked.started.add(container_name)
            return

        try:
            await report_step_started(installation, check_run_id)
            tracked.started.add(container_name)
        except Exception as e:
            logger.exception(f"Failed to mark check run {check_run_id} in progress: {e}")

    async def _report_finished(
        self,
        pod: client.V1Pod,
        tracked: TrackedPod,
        installation: InstallationGateway,
        container_name: str,
        terminated: client.V1ContainerStateTerminated,
    ):
        pod_name = pod.metadata.name
        check_run_id = find_check_run_id(pod, container_name)
        if check_run_id is None:
            logger.warning(f"Container {pod_name}/{container_name} has no {CHECK_RUN_ID_ENV}, skipping")
            tracked.reported.add(container_name)
            return

        logger.info(f"Container {pod_name}/{container_name} finished with exit code {terminated.exit_code}")

        try:
            logs = await collect_logs(self.pods, pod_name, container_name)
            await report_step_finished(
                installation,
                check_run_id,
                exit_code=terminated.exit_code,
                logs=logs,
                finished_at=terminated.finished_at,
            )
            # Only acknowledged once GitHub has it, otherwise retried on the next event
            tracked.reported.add(container_name)
        except Exception as e:
            logger.exception(f"Failed to report check run {check_run_id}: {e}")

    async def _complete_section(
        self,
        pod: client.V1Pod,
        tracked: TrackedPod,
        installation: Optional[InstallationGateway],
    ):
        pod_name = pod.metadata.name
        context = tracked.context

        if not tracked.advanced:
            if not await self._settle_unfinished_steps(pod, tracked, installation):
                logger.warning(f"Pod {pod_name} has unreported steps, retrying on the next event")
                return

            logger.info(f"Pod {pod_name} {pod.status.phase}, starting the next section")
            await self.pipeline_service.start_section(
                installation_id=context.installation_id,
                repo_full_name=context.repo_full_name,
                commit_sha=context.commit_sha,
                branch=context.branch_name,
                previous_section_index=context.step_section,
            )
            tracked.advanced = True

        await self.pods.delete_pod(pod_name)
        self.tracked.pop(pod_name, None)

    async def _settle_unfinished_steps(
        self,
        pod: client.V1Pod,
        tracked: TrackedPod,
        installation: InstallationGateway,
    ) -> bool:
        """
        Fail the check runs of step containers that never terminated, e.g.
        because the checkout failed. Returns True once every step is reported.
        """
        terminated = {
            status.name
            for status in _container_statuses(pod)
            if status.state is not None and status.state.terminated is not None
        }
        settled = True

        for container in pod.spec.containers if pod.spec else []:
            if container.name in tracked.reported:
                continue

            if container.name in terminated:
                # Terminated but its report failed earlier
                settled = False
                continue

            check_run_id = find_check_run_id(pod, container.name)
            if check_run_id is None:
                tracked.reported.add(container.name)
                continue

            try:
                reason = await self._not_run_reason(pod)
                await report_step_not_run(installation, check_run_id, reason)
                tracked.reported.add(container.name)
            except Exception as e:
                logger.exception(f"Failed to report check run {check_run_id}: {e}")
                settled = False

        return settled

    async def _not_run_reason(self, pod: client.V1Pod) -> str:
        status = pod.status
        reason = f"Step did not run, pod {status.phase}"
        if status.reason or status.message:
            reason += f": {status.reason or ''} {status.message or ''}".rstrip()

        for init_status in status.init_container_statuses or []:
            state = init_status.state
            if init_status.name != GIT_CHECKOUT_CONTAINER or state is None or state.terminated is None:
                continue
            if state.terminated.exit_code != 0:
                logs = await collect_logs(self.pods, pod.metadata.name, GIT_CHECKOUT_CONTAINER)
                reason += f"\n\nGit checkout failed with exit code {state.terminated.exit_code}:\n{logs}"

        return reason
