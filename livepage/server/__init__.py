"""HTTP host for live page generation — optional dependency.

Provides a FastAPI app that streams snapshots to the browser over
Server-Sent Events. Install with: pip install livepage[server]
"""

from livepage.server.rate_limit import RateLimitExceeded, RateLimitStore
from livepage.server.sessions import GenerationRegistry

__all__ = [
    "GenerationRegistry",
    "RateLimitExceeded",
    "RateLimitStore",
]
