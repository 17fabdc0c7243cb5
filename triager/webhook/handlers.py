"""Handle Linear webhook deliveries.

Verifies the signature, filters to the two processed event kinds and hands
accepted events to the orchestrator on the background loop.
"""

import hashlib
import hmac
import logging
from typing import Any, Dict

from pydantic import ValidationError

from triager.models import WebhookPayload
from triager.orchestrator import TriageOrchestrator
from triager.webhook.runner import BackgroundRunner

LOG = logging.getLogger("triager.webhook.handlers")

SIGNATURE_HEADER = "linear-signature"


def verify_signature(body: bytes, signature_header: str | None, secret: str) -> bool:
    """HMAC-SHA256 hex digest of the raw body, compared in constant time.

    Without a secret nothing verifies; unsigned operation is opted into by
    the server (webhook.insecure), never here.
    """
    if not secret:
        return False
    if not signature_header:
        LOG.warning("Missing %s header", SIGNATURE_HEADER)
        return False
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature_header.strip().lower())


def handle_linear_event(
    orchestrator: TriageOrchestrator,
    runner: BackgroundRunner,
    payload: Dict[str, Any],
) -> bool:
    """Schedule processing for Issue/Comment create events.

    Returns True when the event was handed to the orchestrator.
    """
    try:
        event = WebhookPayload.model_validate(payload)
    except ValidationError as e:
        LOG.warning("Ignoring webhook without action/type: %s", e.error_count())
        return False

    if not (event.is_issue_created or event.is_comment_created):
        LOG.debug("Ignoring %s %s", event.action, event.type)
        return False

    LOG.info("Accepted %s %s (id=%s)", event.action, event.type, event.data.get("id"))
    runner.submit(orchestrator.handle_event(event))
    return True
