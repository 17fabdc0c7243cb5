"""Webhook server, signature verification and background runner for Linear events."""

from triager.webhook.handlers import handle_linear_event, verify_signature
from triager.webhook.runner import BackgroundRunner
from triager.webhook.server import MissingSigningSecret, make_server, run_webhook_server

__all__ = [
    "BackgroundRunner",
    "MissingSigningSecret",
    "handle_linear_event",
    "make_server",
    "run_webhook_server",
    "verify_signature",
]
