# pdfchat/llm/client.py
import asyncio
import logging
import time

from openai import AsyncOpenAI

from pdfchat.config import (
    LLM_MODEL,
    LLM_MAX_TOKENS,
    LLM_TEMPERATURE,
    LLM_TIMEOUT_SECONDS,
)
from pdfchat.errors import CompletionUnavailable
from pdfchat.prompts.system_prompts import DOCUMENT_QA_SYSTEM_PROMPT

logger = logging.getLogger(__name__)


class LLMClient:
    """
    Client for the OpenAI chat completion API.

    A single provider with no fallback chain and no retries. Every
    failure, including a timeout or an empty answer, surfaces as
    CompletionUnavailable.
    """

    def __init__(
        self,
        api_key: str,
        model: str = LLM_MODEL,
        max_tokens: int = LLM_MAX_TOKENS,
        temperature: float = LLM_TEMPERATURE,
        timeout_seconds: float = LLM_TIMEOUT_SECONDS,
    ):
        """
        Initialize OpenAI client.

        Args:
            api_key: OpenAI API key
            model: Chat model to use
            max_tokens: Output length budget per answer
            timeout_seconds: Upper bound for one completion call
        """
        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout_seconds = timeout_seconds

    async def generate(self, prompt: str) -> str:
        """
        Generate an answer for a fully built prompt.

        Raises:
            CompletionUnavailable: If the API call fails or times out
        """
        start = time.time()

        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": DOCUMENT_QA_SYSTEM_PROMPT},
                        {"role": "user", "content": prompt},
                    ],
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                ),
                timeout=self.timeout_seconds,
            )

        except asyncio.TimeoutError:
            logger.warning(
                "Completion request timed out",
                extra={"timeout_seconds": self.timeout_seconds},
            )
            raise CompletionUnavailable(
                f"Completion provider timed out after {self.timeout_seconds}s"
            )

        except Exception as e:
            logger.warning(
                "Completion request failed",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            raise CompletionUnavailable(f"OpenAI API call failed: {e}")

        choices = getattr(response, "choices", None) or []
        text = choices[0].message.content if choices else None

        if not text or not text.strip():
            raise CompletionUnavailable("Completion provider returned an empty answer")

        logger.info(
            "LLM provider success",
            extra={
                "provider": "openai",
                "model": self.model,
                "latency_seconds": round(time.time() - start, 3),
            },
        )

        return text.strip()

    async def close(self):

        await self.client.close()
