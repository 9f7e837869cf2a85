"""
Response Handlers - what happens to each ingested message.

ResponseChain runs handlers in registration order:
    chain.register(FuzzyAutoResponder(...))   # reply to known questions
    chain.register(MyHandler())               # anything else, e.g. forwarding
"""

from .base import ResponseHandler
from .chain import ResponseChain
from .fuzzy import DEFAULT_THRESHOLD, FuzzyAutoResponder, load_response_rules

__all__ = [
    "ResponseHandler",
    "ResponseChain",
    "FuzzyAutoResponder",
    "DEFAULT_THRESHOLD",
    "load_response_rules",
]
