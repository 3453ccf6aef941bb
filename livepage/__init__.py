"""livepage — stream LLM-generated HTML pages into a live preview."""

__version__ = "0.1.0"

from livepage.generation import start_generation
from livepage.stream.cancellation import CancellationToken
from livepage.stream.reassembler import HtmlReassembler

__all__ = ["CancellationToken", "HtmlReassembler", "start_generation"]
