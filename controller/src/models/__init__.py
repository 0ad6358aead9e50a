from controller.src.models.pipeline import (
    LiteralEnv,
    SecretEnv,
    EnvEntry,
    MountSecret,
    Step,
    Block,
    Wait,
    StepNode,
    Pipeline,
    StepsSection,
    BlockSection,
    Section,
    RunningContext,
)

__all__ = [
    "LiteralEnv",
    "SecretEnv",
    "EnvEntry",
    "MountSecret",
    "Step",
    "Block",
    "Wait",
    "StepNode",
    "Pipeline",
    "StepsSection",
    "BlockSection",
    "Section",
    "RunningContext",
]
