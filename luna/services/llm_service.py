"""
LLM Service - OpenAI-compatible chat completions for the astrologer

Provides:
- Streaming completion as a lazy sequence of text fragments
- Time-to-first-fragment and total-duration limits on a stream
- Non-streaming completion with retries (daily audio transcripts)
"""

import asyncio
import logging
from typing import AsyncGenerator, List, Dict, Optional, Any

from openai import AsyncOpenAI, OpenAIError, RateLimitError, APIConnectionError

from luna.config import settings
from luna.exceptions import GatewayError, GatewayTimeout

logger = logging.getLogger(__name__)


class LLMService:
    """
    Streaming Completion Gateway.

    ``complete`` yields non-empty text fragments in the order the provider
    produced them; their concatenation is the full answer. Each call produces
    a fresh, forward-only generator that may be consumed once.

    The streaming path never retries: a failure before the first fragment
    yields nothing, a failure after it ends the sequence early. Both raise
    GatewayError.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        first_fragment_timeout: Optional[float] = None,
        total_timeout: Optional[float] = None,
        client: Optional[Any] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.openai_api_key
        self.base_url = base_url if base_url is not None else settings.openai_base_url
        self.model = model or settings.chat_model
        self.max_tokens = max_tokens or settings.max_tokens
        self.temperature = temperature if temperature is not None else settings.temperature
        self.first_fragment_timeout = first_fragment_timeout or settings.stream_first_fragment_timeout
        self.total_timeout = total_timeout or settings.stream_total_timeout
        self._client = client

    @property
    def client(self):
        """Lazily built provider client."""
        if self._client is None:
            if not self.api_key:
                raise GatewayError("OPENAI_API_KEY not configured")
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url or None,
                max_retries=0,
            )
        return self._client

    @staticmethod
    def build_messages(
        system_prompt: str,
        history: List[Dict[str, str]],
        user_context: Optional[str] = None,
    ) -> List[Dict[str, str]]:
        """System prompt (with the per-request context appended) followed by history."""
        system = system_prompt
        if user_context:
            system = f"{system_prompt}\n\n{user_context}"
        return [{"role": "system", "content": system}] + [
            {"role": m["role"], "content": m["content"]} for m in history
        ]

    def _budget(self, started: float, produced: bool) -> float:
        """Seconds left before the next fragment must arrive."""
        elapsed = asyncio.get_running_loop().time() - started
        remaining = self.total_timeout - elapsed
        if not produced:
            remaining = min(remaining, self.first_fragment_timeout - elapsed)
        return remaining

    async def complete(
        self,
        system_prompt: str,
        history: List[Dict[str, str]],
        user_context: Optional[str] = None,
    ) -> AsyncGenerator[str, None]:
        """
        Stream one model response.

        Args:
            system_prompt: Fixed persona/behavior directive
            history: Prior messages, oldest first, as role/content dicts
            user_context: Per-request context appended to the system prompt

        Yields:
            Non-empty text fragments

        Raises:
            GatewayTimeout: no fragment within the first-fragment limit, or the
                stream outlived the total limit
            GatewayError: provider unreachable, misconfigured or failing
        """
        messages = self.build_messages(system_prompt, history, user_context)
        started = asyncio.get_running_loop().time()
        produced = False

        try:
            stream = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                    stream=True,
                ),
                timeout=self._budget(started, produced),
            )
        except asyncio.TimeoutError as e:
            raise GatewayTimeout("Model did not start answering in time") from e
        except OpenAIError as e:
            logger.error(f"Streaming request failed: {e}")
            raise GatewayError(str(e)) from e

        # Closing the stream drops the upstream response so the provider stops
        # generating on timeout, error or an abandoned consumer.
        try:
            chunks = stream.__aiter__()
            while True:
                budget = self._budget(started, produced)
                if budget <= 0:
                    raise GatewayTimeout("Model stream exceeded its time limit")
                try:
                    chunk = await asyncio.wait_for(chunks.__anext__(), timeout=budget)
                except StopAsyncIteration:
                    break
                except asyncio.TimeoutError as e:
                    raise GatewayTimeout("Model stream exceeded its time limit") from e
                except OpenAIError as e:
                    logger.error(f"Streaming error: {e}")
                    raise GatewayError(str(e)) from e

                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    produced = True
                    yield content
        finally:
            await stream.close()

    async def complete_text(
        self,
        prompt: str,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Single-shot completion for a one-message prompt.

        Retries rate-limit and connection errors with exponential backoff.
        """
        max_retries = 3
        retry_delay = 1.0

        for attempt in range(max_retries):
            try:
                response = await self.client.chat.completions.create(
                    model=self.model,
                    messages=[{"role": "user", "content": prompt}],
                    max_tokens=max_tokens or self.max_tokens,
                    temperature=self.temperature,
                )
                return response.choices[0].message.content or ""

            except (RateLimitError, APIConnectionError) as e:
                if attempt < max_retries - 1:
                    wait_time = retry_delay * (2 ** attempt)
                    logger.warning(f"Transient provider error, retrying in {wait_time}s: {e}")
                    await asyncio.sleep(wait_time)
                else:
                    raise GatewayError(str(e)) from e

            except OpenAIError as e:
                logger.error(f"OpenAI API error: {e}")
                raise GatewayError(str(e)) from e


# Singleton instance
_llm_service: Optional[LLMService] = None


def get_llm_service() -> LLMService:
    """Get the LLM service singleton (FastAPI dependency)."""
    global _llm_service
    if _llm_service is None:
        _llm_service = LLMService()
    return _llm_service
