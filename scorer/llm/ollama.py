"""
Ollama generation client.

Talks to the ``/api/generate`` endpoint of an Ollama server with streaming
off, asking for JSON output when ``json_mode`` is set.
"""
from typing import Any, Dict, Optional

import httpx
import structlog

from scorer.config import LLMConfig
from scorer.llm.base import GenerationClient, transport_retrying

logger = structlog.get_logger()

DEFAULT_OLLAMA_URL = "http://localhost:11434"


class OllamaGenerationClient(GenerationClient):
    """Scores article content with a model served by Ollama."""

    def __init__(self, config: LLMConfig):
        self.config = config
        self.endpoint = f"{(config.base_url or DEFAULT_OLLAMA_URL).rstrip('/')}/api/generate"
        self._client = httpx.AsyncClient(timeout=config.timeout_seconds)
        logger.info("Ollama generation client initialized", endpoint=self.endpoint,
                    model=config.model_name)

    async def close(self) -> None:
        await self._client.aclose()

    def _payload(self, prompt: str, system_prompt: Optional[str]) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.config.model_name,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": self.config.temperature,
                "num_predict": self.config.max_tokens,
            },
        }
        if system_prompt:
            payload["system"] = system_prompt
        if self.config.json_mode:
            payload["format"] = "json"
        return payload

    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        payload = self._payload(prompt, system_prompt)
        try:
            async for attempt in transport_retrying(
                self.config.max_attempts, httpx.TransportError, httpx.TimeoutException
            ):
                with attempt:
                    response = await self._client.post(self.endpoint, json=payload)
                    response.raise_for_status()
        except Exception as e:
            logger.error("Ollama request failed", error=str(e), model=self.config.model_name)
            raise

        return response.json().get("response", "")
