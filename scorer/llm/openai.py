"""
OpenAI generation client.

Works against any OpenAI-compatible chat completions endpoint via base_url.
"""
from typing import Optional

import structlog
from openai import APIConnectionError, APITimeoutError, AsyncOpenAI, RateLimitError

from scorer.config import LLMConfig
from scorer.llm.base import GenerationClient, transport_retrying

logger = structlog.get_logger()


class OpenAIGenerationClient(GenerationClient):
    """Async generation client for OpenAI."""

    def __init__(self, config: LLMConfig):
        self.client = AsyncOpenAI(
            # Self-hosted compatible servers accept any key
            api_key=config.api_key.get_secret_value() if config.api_key else "EMPTY",
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            max_retries=0,
        )
        self.model = config.model_name
        self.max_tokens = config.max_tokens
        self.temperature = config.temperature
        self.max_attempts = config.max_attempts
        self.json_mode = config.json_mode

        logger.info("OpenAI generation client initialized", model=self.model,
                    base_url=config.base_url)

    async def close(self) -> None:
        await self.client.close()

    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        request = {
            "model": self.model,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        if self.json_mode:
            request["response_format"] = {"type": "json_object"}

        try:
            async for attempt in transport_retrying(
                self.max_attempts, APIConnectionError, APITimeoutError, RateLimitError
            ):
                with attempt:
                    response = await self.client.chat.completions.create(**request)
            return response.choices[0].message.content or ""
        except Exception as e:
            logger.error("OpenAI generation failed", error=str(e), model=self.model)
            raise
