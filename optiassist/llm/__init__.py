"""
Optical-Assist LLM Module

Hosted model integration: chat completion client and prompt templates.
"""

from optiassist.llm.api_base import NO_RETRY, RetryPolicy
from optiassist.llm.completion_client import CompletionClient
from optiassist.llm.prompt_templates import SYSTEM_PROMPT, build_context, build_messages

__all__ = [
    "CompletionClient",
    "NO_RETRY",
    "RetryPolicy",
    "SYSTEM_PROMPT",
    "build_context",
    "build_messages",
]
