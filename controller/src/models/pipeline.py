"""
Pipeline definition models.

A pipeline file decodes into an ordered list of step nodes (Step, Block or
Wait). The sectioner groups those nodes into sections, and the controller
tracks running sections through a RunningContext rebuilt from Pod labels.
"""

from pydantic import BaseModel, ConfigDict
from typing import List, Literal, Optional, Union

class LiteralEnv(BaseModel):
    kind: Literal["literal"] = "literal"
    name: str
    value: str

class SecretEnv(BaseModel):
    kind: Literal["secret"] = "secret"
    name: str
    secret_name: str
    secret_key: str

EnvEntry = Union[LiteralEnv, SecretEnv]

class MountSecret(BaseModel):
    name: str
    mount_path: str

class Step(BaseModel):
    kind: Literal["step"] = "step"
    name: str
    image: str
    commands: Optional[List[str]] = None
    args: Optional[List[str]] = None
    branch: Optional[str] = None
    env: List[EnvEntry] = []
    mount_secrets: List[MountSecret] = []

class Block(BaseModel):
    """Manual approval gate."""
    kind: Literal["block"] = "block"
    name: str
    branch: Optional[str] = None

class Wait(BaseModel):
    kind: Literal["wait"] = "wait"

StepNode = Union[Step, Block, Wait]

class Pipeline(BaseModel):
    steps: List[StepNode]

class StepsSection(BaseModel):
    """Steps that run together as sibling containers of one Pod."""
    kind: Literal["steps"] = "steps"
    steps: List[Step]

class BlockSection(BaseModel):
    kind: Literal["block"] = "block"
    block: Block

Section = Union[StepsSection, BlockSection]

class RunningContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    installation_id: int
    repo_full_name: str
    commit_sha: str
    branch_name: str
    step_section: int
