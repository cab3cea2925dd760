"""LiteLLM-backed language model access."""
from .llm_service import LLMContextWindowError, LLMError, LLMRateLimitError, LLMService

__all__ = ["LLMContextWindowError", "LLMError", "LLMRateLimitError", "LLMService"]
