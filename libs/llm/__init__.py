"""LLM client abstractions and implementations."""

from .llm_client import LLMClient
from .replicate_client import ReplicateLLMClient, LLMClientError

__all__ = ["LLMClient", "ReplicateLLMClient", "LLMClientError"]
