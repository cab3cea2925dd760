"""
LLM Service - Unified interface wrapping LiteLLM.

Provides:
- Async completion with automatic fallback between models
- Retry logic with exponential backoff
- A blocking entry point for Celery tasks
"""
import asyncio
import concurrent.futures
import logging
import os
import random
import re
from typing import Any, Dict, List, Optional

import litellm
from litellm import acompletion
from litellm.exceptions import (
    APIConnectionError,
    APIError,
    ContextWindowExceededError,
    RateLimitError,
)

from ...config import settings
from .config import (
    ModelPreset,
    get_fallback_chain,
    get_model_params,
    get_preset_for_use_case,
)

logger = logging.getLogger(__name__)

# Configure LiteLLM
litellm.drop_params = True  # Drop unsupported params instead of erroring


class LLMError(Exception):
    """Base exception for LLM errors."""
    pass


class LLMRateLimitError(LLMError):
    """Raised when rate limit is exceeded after retries."""
    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class LLMContextWindowError(LLMError):
    """Raised when request exceeds context window."""
    pass


class LLMService:
    """
    LiteLLM wrapper with per-use-case presets.

    Usage:
        llm = LLMService(use_case="scoring")
        response = llm.completion_sync(messages=[...], response_format={"type": "json_object"})
        text = LLMService.extract_content(response)
    """

    def __init__(self, use_case: str = "scoring", preset: Optional[ModelPreset] = None):
        """
        Args:
            use_case: One of "scoring", "synthesis", "title"
            preset: Optional custom ModelPreset (overrides use_case)
        """
        self.use_case = use_case
        self.preset = preset or get_preset_for_use_case(use_case)
        self._setup_api_keys()

    def _setup_api_keys(self):
        """Expose configured keys to LiteLLM via the environment."""
        gemini_key = settings.gemini_api_key or os.environ.get("GEMINI_API_KEY")
        if gemini_key:
            os.environ["GEMINI_API_KEY"] = gemini_key

    async def completion(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        allow_fallbacks: bool = True,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        response_format: Optional[Dict] = None,
        num_retries: int = 2,
    ) -> Any:
        """Async completion with automatic fallbacks."""
        params = get_model_params(self.preset.primary)
        if model:
            params["model"] = model
        if temperature is not None:
            params["temperature"] = temperature
        if max_tokens is not None:
            params["max_tokens"] = max_tokens
        if response_format:
            params["response_format"] = response_format
        params["messages"] = messages

        fallback_models = get_fallback_chain(self.preset)[1:] if allow_fallbacks else []
        return await self._call_with_fallbacks(params, fallback_models, num_retries)

    def completion_sync(self, messages: List[Dict[str, Any]], **kwargs) -> Any:
        """Blocking completion for sync contexts (Celery tasks)."""
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self.completion(messages=messages, **kwargs))

        # Already inside an event loop - run on a private one
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as executor:
            future = executor.submit(asyncio.run, self.completion(messages=messages, **kwargs))
            return future.result()

    async def _call_with_fallbacks(
        self,
        params: Dict,
        fallbacks: List[str],
        num_retries: int,
    ) -> Any:
        all_models = [params["model"]] + fallbacks
        last_error = None

        for model in all_models:
            params["model"] = model
            try:
                return await self._call_with_retry(params, num_retries)
            except LLMContextWindowError:
                raise
            except LLMError as e:
                logger.warning(f"Model {model} failed: {e}")
                last_error = e

        if isinstance(last_error, LLMRateLimitError):
            raise last_error
        raise LLMError(f"All models failed. Last error: {last_error}")

    async def _call_with_retry(
        self,
        params: Dict,
        num_retries: int,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
    ) -> Any:
        """Execute completion with exponential backoff retry."""
        last_error = None

        for attempt in range(num_retries + 1):
            try:
                return await acompletion(**params)

            except ContextWindowExceededError as e:
                raise LLMContextWindowError(str(e))

            except RateLimitError as e:
                last_error = e
                if attempt >= num_retries:
                    raise LLMRateLimitError(
                        f"Rate limit exceeded after {num_retries} retries: {e}",
                        retry_after=self._extract_retry_after(e),
                    )
                delay = self._calculate_delay(attempt, base_delay, max_delay, e)
                logger.warning(
                    f"Rate limit hit (attempt {attempt + 1}/{num_retries + 1}). Retrying in {delay:.1f}s..."
                )
                await asyncio.sleep(delay)

            except (APIConnectionError, APIError) as e:
                last_error = e
                if attempt >= num_retries:
                    raise LLMError(f"API error after {num_retries} retries: {e}")
                delay = self._calculate_delay(attempt, base_delay, max_delay / 2)
                logger.warning(
                    f"API error (attempt {attempt + 1}/{num_retries + 1}). Retrying in {delay:.1f}s..."
                )
                await asyncio.sleep(delay)

        raise LLMError(f"Unexpected error: {last_error}")

    def _extract_retry_after(self, error: Exception) -> Optional[float]:
        """Extract retry-after value from error message."""
        match = re.search(r'(?:try again|retry after) in? ?(\d+(?:\.\d+)?)\s*(?:s|second)', str(error).lower())
        if match:
            return float(match.group(1))
        return None

    def _calculate_delay(
        self,
        attempt: int,
        base_delay: float,
        max_delay: float,
        error: Optional[Exception] = None,
    ) -> float:
        """Calculate delay with exponential backoff and jitter."""
        delay = min(base_delay * (2 ** attempt), max_delay)

        if error is not None:
            server_delay = self._extract_retry_after(error)
            if server_delay is not None and server_delay <= max_delay:
                delay = max(delay, server_delay)

        jitter = delay * 0.1 * random.random()
        return delay + jitter

    @staticmethod
    def extract_content(response: Any) -> str:
        """Extract text content from response."""
        if hasattr(response, 'choices') and response.choices:
            message = response.choices[0].message
            return message.content or ""
        return ""
