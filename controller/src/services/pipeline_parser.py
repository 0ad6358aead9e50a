"""
Pipeline YAML parser and validator.

Each entry of `steps` is decoded by ordered attempts: the literal `wait`
marker, then a mapping with a `block` key, then a generic step.
"""

import yaml
from typing import List, Dict, Any, Optional

from controller.src.models.pipeline import (
    Block,
    EnvEntry,
    LiteralEnv,
    MountSecret,
    Pipeline,
    SecretEnv,
    Step,
    StepNode,
    Wait,
)

WAIT_MARKER = "wait"

class PipelineConfigError(Exception):
    """Raised when pipeline configuration is invalid."""
    pass

def parse_pipeline_config(yaml_content: str) -> Pipeline:
    """Parse pipeline YAML configuration from string."""
    try:
        config = yaml.safe_load(yaml_content)
    except yaml.YAMLError as e:
        raise PipelineConfigError(f"Invalid YAML: {e}")

    return validate_config(config)

def parse_pipeline_dict(config: Dict[str, Any]) -> Pipeline:
    """Validate pipeline configuration from dict."""
    return validate_config(config)

def validate_config(config: Optional[Dict[str, Any]]) -> Pipeline:
    """Validate pipeline configuration structure."""
    if not config:
        raise PipelineConfigError("Empty pipeline configuration")

    if not isinstance(config, dict):
        raise PipelineConfigError("Pipeline configuration must be a dictionary")

    if "steps" not in config:
        raise PipelineConfigError("Pipeline must have 'steps' defined")

    steps = config["steps"]
    if not isinstance(steps, list):
        raise PipelineConfigError("Pipeline 'steps' must be a list")

    return Pipeline(steps=[validate_node(node, i) for i, node in enumerate(steps)])

def validate_node(node: Any, index: int) -> StepNode:
    """Decode one entry of the steps list."""
    if node == WAIT_MARKER:
        return Wait()

    if isinstance(node, dict) and "block" in node:
        return validate_block(node, index)

    if isinstance(node, dict):
        return validate_step(node, index)

    raise PipelineConfigError(
        f"Step {index} must be '{WAIT_MARKER}', a block or a step definition"
    )

def validate_block(block: Dict[str, Any], index: int) -> Block:
    if not isinstance(block["block"], str):
        raise PipelineConfigError(f"Step {index} 'block' must be a string")

    return Block(
        name=block["block"],
        branch=_optional_string(block, "branch", index),
    )

def validate_step(step: Dict[str, Any], index: int) -> Step:
    """Validate a single pipeline step."""
    # Required fields
    if "name" not in step:
        raise PipelineConfigError(f"Step {index} missing 'name'")

    if "image" not in step:
        raise PipelineConfigError(f"Step {index} missing 'image'")

    # Validate types
    if not isinstance(step["name"], str):
        raise PipelineConfigError(f"Step {index} 'name' must be a string")

    if not isinstance(step["image"], str):
        raise PipelineConfigError(f"Step {index} 'image' must be a string")

    return Step(
        name=step["name"],
        image=step["image"],
        commands=_optional_string_list(step, "commands", index),
        args=_optional_string_list(step, "args", index),
        branch=_optional_string(step, "branch", index),
        env=validate_env(step.get("env") or [], index),
        mount_secrets=validate_mount_secrets(step.get("mountSecret") or [], index),
    )

def validate_env(env: Any, index: int) -> List[EnvEntry]:
    if not isinstance(env, list):
        raise PipelineConfigError(f"Step {index} 'env' must be a list")

    entries: List[EnvEntry] = []
    for j, entry in enumerate(env):
        if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
            raise PipelineConfigError(f"Step {index} env {j} must have a 'name'")

        if "value" in entry:
            entries.append(LiteralEnv(name=entry["name"], value=_env_value(entry["value"], index, j)))
            continue

        value_from = entry.get("valueFrom")
        secret_ref = value_from.get("secretKeyRef") if isinstance(value_from, dict) else None
        if not isinstance(secret_ref, dict) or not all(
            isinstance(secret_ref.get(key), str) for key in ("name", "key")
        ):
            raise PipelineConfigError(
                f"Step {index} env {j} needs 'value' or 'valueFrom.secretKeyRef' with 'name' and 'key'"
            )

        entries.append(
            SecretEnv(
                name=entry["name"],
                secret_name=secret_ref["name"],
                secret_key=secret_ref["key"],
            )
        )

    return entries

def validate_mount_secrets(mount_secrets: Any, index: int) -> List[MountSecret]:
    if not isinstance(mount_secrets, list):
        raise PipelineConfigError(f"Step {index} 'mountSecret' must be a list")

    validated = []
    for j, mount in enumerate(mount_secrets):
        if not isinstance(mount, dict):
            raise PipelineConfigError(f"Step {index} mountSecret {j} must be a dictionary")

        for key in ("name", "mountPath"):
            if not isinstance(mount.get(key), str):
                raise PipelineConfigError(f"Step {index} mountSecret {j} missing '{key}'")

        validated.append(MountSecret(name=mount["name"], mount_path=mount["mountPath"]))

    return validated

def _env_value(value: Any, index: int, j: int) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise PipelineConfigError(f"Step {index} env {j} 'value' must be a scalar")

def _optional_string(node: Dict[str, Any], key: str, index: int) -> Optional[str]:
    value = node.get(key)
    if value is not None and not isinstance(value, str):
        raise PipelineConfigError(f"Step {index} '{key}' must be a string")
    return value

def _optional_string_list(node: Dict[str, Any], key: str, index: int) -> Optional[List[str]]:
    value = node.get(key)
    if value is None:
        return None

    if not isinstance(value, list):
        raise PipelineConfigError(f"Step {index} '{key}' must be a list")

    for j, item in enumerate(value):
        if not isinstance(item, str):
            raise PipelineConfigError(f"Step {index} {key[:-1]} {j} must be a string")

    return value
