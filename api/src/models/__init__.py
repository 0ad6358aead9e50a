from api.src.models.webhook import (
    CheckSuiteEvent,
    CheckRunEvent,
    CheckSuite,
    CheckRun,
    RequestedAction,
    Repository,
    Installation,
)
from api.src.models.run import (
    PipelineRunResponse,
    StepStatusResponse,
    SectionStatusResponse,
    WebhookResponse,
)

__all__ = [
    "CheckSuiteEvent",
    "CheckRunEvent",
    "CheckSuite",
    "CheckRun",
    "RequestedAction",
    "Repository",
    "Installation",
    "PipelineRunResponse",
    "StepStatusResponse",
    "SectionStatusResponse",
    "WebhookResponse",
]
