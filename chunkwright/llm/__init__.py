"""Completion backend abstractions for chunk rewriting.

This package defines the HTTP completion client, the streaming frame protocol,
the truncation fallback, instruction templates, and the length policy.
"""

from .completion_client import CompletionClient, HttpCompletionClient, PassThroughCompletionClient
from .fallback import CompletionAttempt, complete_with_truncation_fallback
from .length_enforcer import EnforcementOutcome, LengthEnforcer
from .prompts import PromptLibrary
from .streaming import CompleteFrame, DeltaFrame, ErrorFrame, StreamReader, iter_frames, parse_frame

__all__ = [
    "CompletionClient",
    "HttpCompletionClient",
    "PassThroughCompletionClient",
    "CompletionAttempt",
    "complete_with_truncation_fallback",
    "EnforcementOutcome",
    "LengthEnforcer",
    "PromptLibrary",
    "DeltaFrame",
    "CompleteFrame",
    "ErrorFrame",
    "StreamReader",
    "iter_frames",
    "parse_frame",
]
