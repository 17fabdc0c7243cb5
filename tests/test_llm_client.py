"""Unit tests for the chat completions client (mocked HTTP)."""

import asyncio
import json

import httpx
import pytest
from pytest_httpx import HTTPXMock

from triager.config import OpenAIConfig
from triager.llm import ModelError, OpenAIChatClient

API_URL = "https://llm.test/v1/chat/completions"


@pytest.fixture
def client() -> OpenAIChatClient:
    return OpenAIChatClient(OpenAIConfig(api_url=API_URL, model="gpt-test", temperature=0.2), api_key="sk-test")


def _complete(client: OpenAIChatClient) -> str:
    async def go() -> str:
        try:
            return await client.complete("system text", "user text")
        finally:
            await client.aclose()

    return asyncio.run(go())


def test_complete_returns_content(client: OpenAIChatClient, httpx_mock: HTTPXMock) -> None:
    httpx_mock.add_response(
        url=API_URL,
        method="POST",
        json={"choices": [{"message": {"role": "assistant", "content": '{"needsClarification": false}'}}]},
    )
    assert _complete(client) == '{"needsClarification": false}'

    request = httpx_mock.get_request()
    assert request.headers["Authorization"] == "Bearer sk-test"
    body = json.loads(request.content)
    assert body["model"] == "gpt-test"
    assert body["temperature"] == 0.2
    assert body["response_format"] == {"type": "json_object"}
    assert body["messages"] == [
        {"role": "system", "content": "system text"},
        {"role": "user", "content": "user text"},
    ]


def test_http_error_raises_model_error(client: OpenAIChatClient, httpx_mock: HTTPXMock) -> None:
    httpx_mock.add_response(url=API_URL, status_code=429, text="rate limited")
    with pytest.raises(ModelError, match="429"):
        _complete(client)


def test_transport_error_raises_model_error(client: OpenAIChatClient, httpx_mock: HTTPXMock) -> None:
    httpx_mock.add_exception(httpx.ConnectTimeout("timed out"), url=API_URL)
    with pytest.raises(ModelError, match="Request failed"):
        _complete(client)


@pytest.mark.parametrize(
    "payload",
    [
        {"choices": []},
        {"unexpected": True},
        {"choices": [{"message": {"content": ""}}]},
        {"choices": [{"message": {"content": None}}]},
    ],
)
def test_unusable_response_raises_model_error(
    client: OpenAIChatClient, httpx_mock: HTTPXMock, payload: dict
) -> None:
    httpx_mock.add_response(url=API_URL, json=payload)
    with pytest.raises(ModelError):
        _complete(client)


def test_requires_api_key() -> None:
    with pytest.raises(ValueError):
        OpenAIChatClient(OpenAIConfig(), api_key="")
