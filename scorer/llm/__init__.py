"""
LLM generation module.
"""
from scorer.config import LLMConfig, LLMProvider
from scorer.llm.base import GenerationClient
from scorer.llm.ollama import OllamaGenerationClient
from scorer.llm.openai import OpenAIGenerationClient


def get_generation_client(config: LLMConfig) -> GenerationClient:
    """Factory to get the appropriate generation client."""
    if config.provider == LLMProvider.OPENAI:
        return OpenAIGenerationClient(config)
    elif config.provider == LLMProvider.OLLAMA:
        return OllamaGenerationClient(config)
    elif config.provider == LLMProvider.CUSTOM:
        # Custom endpoints are expected to speak the OpenAI protocol
        return OpenAIGenerationClient(config)
    else:
        raise ValueError(f"Unsupported LLM provider: {config.provider}")


__all__ = ["GenerationClient", "OpenAIGenerationClient", "OllamaGenerationClient", "get_generation_client"]
