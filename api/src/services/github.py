"""
GitHub service for webhook validation and payload parsing.
"""

import hmac
import hashlib
from typing import Any, Dict, Optional

from api.src.models.webhook import CheckRunEvent, CheckSuiteEvent

CHECK_SUITE_ACTIONS = ("requested", "rerequested")
REQUESTED_ACTION = "requested_action"

def verify_signature(payload: bytes, signature: Optional[str], secret: str) -> bool:
    """Verify GitHub webhook signature."""
    if not secret:
        # Skip verification if no secret configured (development)
        return True

    if not signature:
        return False

    expected = "sha256=" + hmac.new(
        secret.encode(),
        payload,
        hashlib.sha256
    ).hexdigest()
    return hmac.compare_digest(expected, signature)

def parse_check_suite_payload(payload: Dict[str, Any]) -> CheckSuiteEvent:
    return CheckSuiteEvent.model_validate(payload)

def parse_check_run_payload(payload: Dict[str, Any]) -> CheckRunEvent:
    return CheckRunEvent.model_validate(payload)

def requested_section_index(event: CheckRunEvent) -> Optional[int]:
    """Section index carried by an Unblock action, None if there is none."""
    if event.action != REQUESTED_ACTION or event.requested_action is None:
        return None

    try:
        return int(event.requested_action.identifier)
    except ValueError:
        return None
