"""
Embedding generation service.
Uses the OpenAI-compatible embeddings API.
"""
from typing import Optional
from openai import OpenAI
import logging

from chatguard.core.config import (
    OPENAI_API_KEY,
    OPENAI_BASE_URL,
    DEFAULT_EMBEDDING_MODEL,
)
from chatguard.core.exceptions import UpstreamProviderError
from chatguard.services.pricing import estimate_tokens
from chatguard.services.rag.rag_models import EmbeddingResult

logger = logging.getLogger(__name__)


class EmbeddingService:
    """Service for generating embeddings."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[OpenAI] = None,
    ):
        """Initialize embedding service.

        Args:
            api_key: Optional API key. If not provided, uses OPENAI_API_KEY from config
            base_url: Optional API base URL. If not provided, uses OPENAI_BASE_URL from config
            model: Embedding model (defaults to DEFAULT_EMBEDDING_MODEL)
            client: Pre-built OpenAI client (skips key handling)
        """
        self.default_model = model or DEFAULT_EMBEDDING_MODEL

        if client is not None:
            self.client = client
            return

        api_key = api_key or OPENAI_API_KEY
        if not api_key:
            raise ValueError("OpenAI API key not configured. Set OPENAI_API_KEY in config_local.py")

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

    def generate_embedding(self, text: str, model: Optional[str] = None) -> EmbeddingResult:
        """Generate embedding for a single text.

        Args:
            text: Text to embed
            model: Embedding model (defaults to the service default)

        Returns:
            EmbeddingResult with vector and token usage

        Raises:
            UpstreamProviderError: If the provider call fails
        """
        model = model or self.default_model

        try:
            response = self.client.embeddings.create(
                model=model,
                input=text,
            )
        except Exception as e:
            logger.error(f"Failed to generate embedding: {e}")
            raise UpstreamProviderError(f"Failed to generate embedding: {e}", provider_error=e)

        if not response.data:
            raise UpstreamProviderError("Embedding provider returned no data")

        embedding = response.data[0].embedding

        # Extract token usage from response
        total_tokens = 0
        if getattr(response, 'usage', None):
            total_tokens = getattr(response.usage, 'total_tokens', 0) or 0
            if total_tokens == 0:
                total_tokens = getattr(response.usage, 'prompt_tokens', 0) or 0
        # If no usage info, estimate from text length
        if total_tokens == 0:
            total_tokens = estimate_tokens(text)
            logger.info(f"Estimated tokens from text length: {total_tokens} (text length: {len(text)})")

        logger.debug(f"Generated embedding for text (length={len(text)}, model={model}), tokens: {total_tokens}")
        return EmbeddingResult(embedding=embedding, total_tokens=total_tokens, model=model)
