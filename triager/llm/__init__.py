"""Language model client module."""

from triager.llm.client import ChatModel, ModelError, OpenAIChatClient

__all__ = ["ChatModel", "ModelError", "OpenAIChatClient"]
