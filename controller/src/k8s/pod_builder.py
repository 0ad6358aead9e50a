"""
Kubernetes Pod builder for pipeline sections.

One section becomes one Pod: a git checkout init container followed by one
container per step. Each step works on a private copy of the repository.
"""

from kubernetes import client
from typing import List, NamedTuple
import logging
import re

from controller.src.k8s.labels import build_pod_annotations, build_pod_labels
from controller.src.models.pipeline import LiteralEnv, Step

logger = logging.getLogger(__name__)

CHECK_RUN_ID_ENV = "CHECK_RUN_ID"
WORKING_DIR = "/app"
GIT_CHECKOUT_CONTAINER = "git-checkout"
MAX_CONTAINER_NAME_LENGTH = 63

_INVALID_CONTAINER_CHARS = re.compile(r"[^a-z0-9/-]")

class ScheduledStep(NamedTuple):
    step: Step
    check_run_id: int

def build_pod_name(commit_sha: str, section_index: int) -> str:
    return f"{commit_sha}-{section_index}"

def build_container_name(step_name: str, check_run_id: int) -> str:
    """Generate a container name that is unique within the Pod."""
    safe_name = step_name.replace(" ", "-").lower()
    safe_name = _INVALID_CONTAINER_CHARS.sub("", safe_name)

    suffix = f"-{check_run_id}"
    prefix = "step-"
    safe_name = safe_name[:MAX_CONTAINER_NAME_LENGTH - len(prefix) - len(suffix)]

    return f"{prefix}{safe_name}{suffix}"

def build_step_script(commands: List[str]) -> str:
    """
    Shell command that writes the step's commands to a script and runs it.

    The script aborts on the first failing command. Single quotes are escaped
    for embedding, but commands are otherwise passed through unchanged.
    """
    script = "#!/bin/sh\\nset -euf\\n"
    for command in commands:
        script += f"echo '{command}'\\n"
        script += f"{command}\\n"

    escaped_script = script.replace("'", "'\\''")

    return f"printf '%b' '{escaped_script}' > ./script.sh && chmod +x ./script.sh && ./script.sh"

def build_env(scheduled: ScheduledStep) -> List[client.V1EnvVar]:
    env = []
    for entry in scheduled.step.env:
        if isinstance(entry, LiteralEnv):
            env.append(client.V1EnvVar(name=entry.name, value=entry.value))
        else:
            env.append(
                client.V1EnvVar(
                    name=entry.name,
                    value_from=client.V1EnvVarSource(
                        secret_key_ref=client.V1SecretKeySelector(
                            name=entry.secret_name,
                            key=entry.secret_key,
                        )
                    ),
                )
            )

    # The controller maps a finished container back to its check run through this
    env.append(client.V1EnvVar(name=CHECK_RUN_ID_ENV, value=str(scheduled.check_run_id)))
    return env

def build_step_container(scheduled: ScheduledStep) -> client.V1Container:
    step = scheduled.step

    volume_mounts = [
        client.V1VolumeMount(
            name=mount.name,
            mount_path=mount.mount_path,
            read_only=True,
        )
        for mount in step.mount_secrets
    ]
    volume_mounts.append(
        client.V1VolumeMount(name=str(scheduled.check_run_id), mount_path=WORKING_DIR)
    )

    command = None
    if step.commands is not None:
        command = ["/bin/sh", "-c", build_step_script(step.commands)]

    return client.V1Container(
        name=build_container_name(step.name, scheduled.check_run_id),
        image=step.image,
        command=command,
        args=step.args,
        env=build_env(scheduled),
        volume_mounts=volume_mounts,
        working_dir=WORKING_DIR,
    )

def build_git_init_container(
    image: str,
    clone_url: str,
    commit_sha: str,
    volume_names: List[str],
) -> client.V1Container:
    """
    Init container that checks out the commit and copies it into every
    step's private volume.
    """
    container_volumes = ";".join(f"/{name}" for name in volume_names)

    return client.V1Container(
        name=GIT_CHECKOUT_CONTAINER,
        image=image,
        env=[
            client.V1EnvVar(name="REPO_URL", value=clone_url),
            client.V1EnvVar(name="COMMIT_SHA", value=commit_sha),
            client.V1EnvVar(name="CONTAINER_VOLUMES", value=container_volumes),
        ],
        volume_mounts=[
            client.V1VolumeMount(name=name, mount_path=f"/{name}")
            for name in volume_names
        ],
        working_dir=WORKING_DIR,
    )

def build_volumes(scheduled_steps: List[ScheduledStep]) -> List[client.V1Volume]:
    # Two steps may mount the same secret, volume names must stay unique
    secret_names = sorted({
        mount.name
        for scheduled in scheduled_steps
        for mount in scheduled.step.mount_secrets
    })

    secret_volumes = [
        client.V1Volume(
            name=name,
            secret=client.V1SecretVolumeSource(secret_name=name, optional=True),
        )
        for name in secret_names
    ]

    repo_volumes = [
        client.V1Volume(
            name=str(scheduled.check_run_id),
            empty_dir=client.V1EmptyDirVolumeSource(),
        )
        for scheduled in scheduled_steps
    ]

    return secret_volumes + repo_volumes

def build_pod(
    scheduled_steps: List[ScheduledStep],
    commit_sha: str,
    repo_full_name: str,
    namespace: str,
    branch: str,
    installation_id: int,
    section_index: int,
    service_account: str = "kubeci",
    git_checkout_image: str = "kubeci/git-checkout:latest",
    app_label: str = "kubeci",
    clone_base_url: str = "https://github.com",
) -> client.V1Pod:
    """
    Build the Pod running one section of a pipeline.
    """
    volume_names = [str(scheduled.check_run_id) for scheduled in scheduled_steps]

    init_container = build_git_init_container(
        image=git_checkout_image,
        clone_url=f"{clone_base_url}/{repo_full_name}",
        commit_sha=commit_sha,
        volume_names=volume_names,
    )

    pod_spec = client.V1PodSpec(
        init_containers=[init_container],
        containers=[build_step_container(scheduled) for scheduled in scheduled_steps],
        volumes=build_volumes(scheduled_steps),
        restart_policy="Never",
        service_account_name=service_account,
    )

    pod = client.V1Pod(
        api_version="v1",
        kind="Pod",
        metadata=client.V1ObjectMeta(
            name=build_pod_name(commit_sha, section_index),
            namespace=namespace,
            labels=build_pod_labels(
                app_label=app_label,
                repo_full_name=repo_full_name,
                commit_sha=commit_sha,
                branch=branch,
                installation_id=installation_id,
                section_index=section_index,
            ),
            annotations=build_pod_annotations(branch),
        ),
        spec=pod_spec,
    )

    logger.debug(f"Pod configuration to deploy: {pod.to_dict()}")

    return pod
