"""
OpenAI-compatible LLM client for chat completions.
"""
from dataclasses import dataclass
from openai import OpenAI
from chatguard.core.config import OPENAI_API_KEY, OPENAI_BASE_URL, DEFAULT_LLM_MODEL
from chatguard.core.exceptions import UpstreamProviderError
from typing import Optional, Dict, List
import logging

logger = logging.getLogger(__name__)


@dataclass
class CompletionResult:
    """Reply text plus the token usage reported by the provider."""
    content: Optional[str]
    model: str
    input_tokens: int
    output_tokens: int
    total_tokens: int


class LLMClient:
    """Client for making chat completion calls."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[OpenAI] = None,
    ):
        """Initialize the client.

        Args:
            api_key: Optional API key. If not provided, uses OPENAI_API_KEY from config
            base_url: Optional API base URL. If not provided, uses OPENAI_BASE_URL from config
            client: Pre-built OpenAI client (skips key handling)
        """
        self.default_model = DEFAULT_LLM_MODEL

        if client is not None:
            self.client = client
            return

        api_key = api_key or OPENAI_API_KEY
        if not api_key:
            raise ValueError("OpenAI API key not configured. Set OPENAI_API_KEY in config_local.py")

        # Create OpenAI client without proxies to avoid version compatibility issues
        import httpx
        http_client = httpx.Client(
            timeout=60.0,
            follow_redirects=True,
        )

        self.client = OpenAI(
            api_key=api_key,
            base_url=base_url or OPENAI_BASE_URL,
            http_client=http_client,
        )

    def chat(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> CompletionResult:
        """Run a chat completion over an ordered message list.

        Args:
            messages: [{"role": ..., "content": ...}, ...] in prompt order
            model: Model to use (defaults to DEFAULT_LLM_MODEL)
            temperature: Sampling temperature (0-2)
            max_tokens: Maximum tokens to generate

        Returns:
            CompletionResult (content may be None or empty; callers decide)

        Raises:
            UpstreamProviderError: If the provider call fails
        """
        model = model or self.default_model

        try:
            response = self.client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except Exception as e:
            error_msg = str(e)
            error_type = type(e).__name__
            logger.error(
                f"llm_call_failed: model={repr(model)}, error_type={error_type}, error={error_msg}"
            )
            raise UpstreamProviderError(
                f"LLM call failed for model '{model}': {error_msg} (Error type: {error_type})",
                provider_error=e,
            )

        content = None
        if response.choices:
            content = response.choices[0].message.content

        # Extract token usage details
        if response.usage:
            input_tokens = getattr(response.usage, 'prompt_tokens', 0) or 0
            output_tokens = getattr(response.usage, 'completion_tokens', 0) or 0
            total_tokens = getattr(response.usage, 'total_tokens', 0) or (input_tokens + output_tokens)
        else:
            input_tokens = 0
            output_tokens = 0
            total_tokens = 0

        logger.info(
            f"llm_call_completed: model={model}, input_tokens={input_tokens}, "
            f"output_tokens={output_tokens}, total_tokens={total_tokens}"
        )

        return CompletionResult(
            content=content,
            model=getattr(response, 'model', None) or model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=total_tokens,
        )
