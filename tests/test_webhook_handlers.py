"""Tests for webhook signature verification, event filtering and the HTTP server."""

import hashlib
import hmac
import json
import threading
from typing import Iterator
from unittest.mock import AsyncMock, Mock

import httpx
import pytest

from triager.config import WebhookConfig
from triager.webhook import (
    BackgroundRunner,
    MissingSigningSecret,
    handle_linear_event,
    make_server,
    verify_signature,
)

SECRET = "whsec_test"


def _sign(body: bytes, secret: str = SECRET) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class TestVerifySignature:
    def test_valid_signature(self) -> None:
        body = b'{"action":"create"}'
        assert verify_signature(body, _sign(body), SECRET)

    def test_tampered_body_rejected(self) -> None:
        body = b'{"action":"create"}'
        assert not verify_signature(b'{"action":"remove"}', _sign(body), SECRET)

    def test_wrong_secret_rejected(self) -> None:
        body = b"{}"
        assert not verify_signature(body, _sign(body, "other"), SECRET)

    def test_missing_header_rejected(self) -> None:
        assert not verify_signature(b"{}", None, SECRET)
        assert not verify_signature(b"{}", "", SECRET)

    def test_empty_secret_rejects_everything(self) -> None:
        body = b"{}"
        assert not verify_signature(body, None, "")
        assert not verify_signature(body, hmac.new(b"", body, hashlib.sha256).hexdigest(), "")


class TestHandleLinearEvent:
    @pytest.mark.parametrize(
        "payload",
        [
            {"action": "create", "type": "Issue", "data": {"id": "I1"}},
            {"action": "create", "type": "Comment", "data": {"id": "C1", "issueId": "I1"}},
        ],
    )
    def test_accepts_create_events(self, payload: dict) -> None:
        orchestrator = Mock()
        orchestrator.handle_event = AsyncMock()
        runner = Mock()
        assert handle_linear_event(orchestrator, runner, payload) is True
        runner.submit.assert_called_once()
        event = orchestrator.handle_event.call_args.args[0]
        assert event.type == payload["type"]
        runner.submit.call_args.args[0].close()

    @pytest.mark.parametrize(
        "payload",
        [
            {"action": "update", "type": "Issue", "data": {"id": "I1"}},
            {"action": "remove", "type": "Comment", "data": {"id": "C1"}},
            {"action": "create", "type": "Reaction", "data": {"id": "R1"}},
            {"data": {"id": "I1"}},
        ],
    )
    def test_ignores_other_events(self, payload: dict) -> None:
        orchestrator = Mock()
        runner = Mock()
        assert handle_linear_event(orchestrator, runner, payload) is False
        runner.submit.assert_not_called()


@pytest.fixture
def server_url() -> Iterator[tuple[str, Mock]]:
    """Webhook server on an ephemeral port with a mocked orchestrator."""
    orchestrator = Mock()
    orchestrator.handle_event = AsyncMock()
    runner = BackgroundRunner()
    runner.start()
    server = make_server(WebhookConfig(host="127.0.0.1", port=0), orchestrator, runner, SECRET)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    host, port = server.server_address[:2]
    try:
        yield f"http://{host}:{port}", orchestrator
    finally:
        server.shutdown()
        server.server_close()
        runner.stop()


class TestServer:
    def test_health(self, server_url: tuple[str, Mock]) -> None:
        url, _ = server_url
        response = httpx.get(f"{url}/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_unknown_path_404(self, server_url: tuple[str, Mock]) -> None:
        url, _ = server_url
        assert httpx.post(f"{url}/other", content=b"{}").status_code == 404

    def test_signed_event_accepted(self, server_url: tuple[str, Mock]) -> None:
        url, orchestrator = server_url
        body = json.dumps({"action": "create", "type": "Issue", "data": {"id": "I1", "title": "x"}}).encode()
        response = httpx.post(f"{url}/webhook/linear", content=body, headers={"linear-signature": _sign(body)})
        assert response.status_code == 200
        assert response.json() == {"received": True, "accepted": True}
        orchestrator.handle_event.assert_called_once()

    def test_bad_signature_401(self, server_url: tuple[str, Mock]) -> None:
        url, orchestrator = server_url
        body = b'{"action":"create","type":"Issue","data":{"id":"I1"}}'
        response = httpx.post(f"{url}/webhook/linear", content=body, headers={"linear-signature": "deadbeef"})
        assert response.status_code == 401
        orchestrator.handle_event.assert_not_called()

    def test_invalid_json_400(self, server_url: tuple[str, Mock]) -> None:
        url, _ = server_url
        body = b"{not json"
        response = httpx.post(f"{url}/webhook/linear", content=body, headers={"linear-signature": _sign(body)})
        assert response.status_code == 400

    def test_ignored_event_still_acknowledged(self, server_url: tuple[str, Mock]) -> None:
        url, orchestrator = server_url
        body = b'{"action":"update","type":"Issue","data":{"id":"I1"}}'
        response = httpx.post(f"{url}/webhook/linear", content=body, headers={"linear-signature": _sign(body)})
        assert response.status_code == 200
        assert response.json()["accepted"] is False
        orchestrator.handle_event.assert_not_called()


class TestUnsignedOperation:
    def test_server_refuses_to_start_without_secret(self) -> None:
        with pytest.raises(MissingSigningSecret):
            make_server(WebhookConfig(host="127.0.0.1", port=0), Mock(), Mock(), "")

    def test_insecure_server_accepts_unsigned_delivery(self) -> None:
        orchestrator = Mock()
        orchestrator.handle_event = AsyncMock()
        runner = BackgroundRunner()
        runner.start()
        config = WebhookConfig(host="127.0.0.1", port=0, insecure=True)
        server = make_server(config, orchestrator, runner, "")
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        host, port = server.server_address[:2]
        try:
            body = b'{"action":"create","type":"Issue","data":{"id":"I1","title":"x"}}'
            response = httpx.post(f"http://{host}:{port}/webhook/linear", content=body)
            assert response.status_code == 200
            assert response.json()["accepted"] is True
        finally:
            server.shutdown()
            server.server_close()
            runner.stop()

    def test_insecure_flag_does_not_bypass_configured_secret(self) -> None:
        orchestrator = Mock()
        config = WebhookConfig(host="127.0.0.1", port=0, insecure=True)
        server = make_server(config, orchestrator, Mock(), SECRET)
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        host, port = server.server_address[:2]
        try:
            body = b'{"action":"create","type":"Issue","data":{"id":"I1"}}'
            response = httpx.post(f"http://{host}:{port}/webhook/linear", content=body)
            assert response.status_code == 401
            orchestrator.handle_event.assert_not_called()
        finally:
            server.shutdown()
            server.server_close()
