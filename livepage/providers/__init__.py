"""Chat-completion providers: streaming requestor, optimizer, registry."""

from livepage.providers.base import StreamRequestor
from livepage.providers.openai_stream import OpenAIStreamRequestor

__all__ = ["OpenAIStreamRequestor", "StreamRequestor"]
