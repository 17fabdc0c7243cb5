"""Webhook HTTP server for Linear events.

Serves a health check and the webhook path. Deliveries are acknowledged as
soon as they are verified and parsed; triage runs in the background.
"""

import json
import logging
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any

from triager.config import WebhookConfig
from triager.orchestrator import TriageOrchestrator
from triager.webhook.handlers import SIGNATURE_HEADER, handle_linear_event, verify_signature
from triager.webhook.runner import BackgroundRunner

LOG = logging.getLogger("triager.webhook.server")


class MissingSigningSecret(ValueError):
    """Refusing to serve unverified webhooks."""


class WebhookHandler(BaseHTTPRequestHandler):
    """Handle GET /health and POST on the configured webhook path."""

    webhook_path: str = "/webhook/linear"
    signing_secret: str = ""
    insecure: bool = False
    orchestrator: TriageOrchestrator
    runner: BackgroundRunner

    def _respond(self, status: int, payload: dict) -> None:
        data = json.dumps(payload).encode()
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def do_GET(self) -> None:
        if self.path == "/health" or self.path == "/":
            self._respond(200, {"status": "ok", "service": "triager"})
            return
        self._respond(404, {"error": "not found"})

    def do_POST(self) -> None:
        if self.path != self.webhook_path:
            self._respond(404, {"error": "not found"})
            return
        self._handle_linear_webhook()

    def _handle_linear_webhook(self) -> None:
        length = int(self.headers.get("Content-Length", 0))
        body = self.rfile.read(length) if length else b""

        unsigned_allowed = self.insecure and not self.signing_secret
        if not unsigned_allowed and not verify_signature(
            body, self.headers.get(SIGNATURE_HEADER), self.signing_secret
        ):
            LOG.warning("Rejected webhook with invalid signature")
            self._respond(401, {"error": "invalid signature"})
            return

        try:
            payload = json.loads(body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            LOG.warning("Invalid webhook JSON (%s bytes)", len(body))
            self._respond(400, {"error": "invalid json"})
            return
        if not isinstance(payload, dict):
            self._respond(400, {"error": "invalid payload"})
            return

        accepted = handle_linear_event(self.orchestrator, self.runner, payload)
        self._respond(200, {"received": True, "accepted": accepted})

    def log_message(self, format: str, *args: Any) -> None:
        LOG.debug(format, *args)


def make_server(
    config: WebhookConfig,
    orchestrator: TriageOrchestrator,
    runner: BackgroundRunner,
    signing_secret: str,
) -> ThreadingHTTPServer:
    """Bind the server; handler state is carried on a per-server subclass.

    Raises MissingSigningSecret when no secret is set and webhook.insecure is off.
    """
    if not signing_secret:
        if not config.insecure:
            raise MissingSigningSecret(
                "LINEAR_SIGNING_SECRET is not set; set webhook.insecure to accept unsigned deliveries"
            )
        LOG.warning("webhook.insecure is on and no signing secret is set; deliveries are not verified")
    handler = type(
        "BoundWebhookHandler",
        (WebhookHandler,),
        {
            "webhook_path": config.path,
            "signing_secret": signing_secret,
            "insecure": config.insecure,
            "orchestrator": orchestrator,
            "runner": runner,
        },
    )
    return ThreadingHTTPServer((config.host, config.port), handler)


def run_webhook_server(
    config: WebhookConfig,
    orchestrator: TriageOrchestrator,
    runner: BackgroundRunner,
    signing_secret: str,
) -> None:
    """Run HTTP server for webhooks and health check until interrupted."""
    server = make_server(config, orchestrator, runner, signing_secret)
    LOG.info("Webhook server listening on %s:%s%s", config.host, config.port, config.path)
    try:
        server.serve_forever()
    finally:
        server.server_close()
