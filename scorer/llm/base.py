"""
Base classes and interfaces for LLM generation.
"""
from typing import Optional, Protocol

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential


class GenerationClient(Protocol):
    """Protocol defining the interface for LLM generation clients."""

    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """
        Generate text based on a prompt.

        Args:
            prompt: The user prompt.
            system_prompt: Optional system prompt to guide behavior.

        Returns:
            str: The generated text.
        """
        ...

    async def close(self) -> None:
        """Close the client and release resources."""
        ...

    async def __aenter__(self) -> "GenerationClient":
        """Enter the async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit the async context manager."""
        await self.close()


def transport_retrying(max_attempts: int, *exception_types: type) -> AsyncRetrying:
    """
    Retry policy for LLM transport errors.

    With max_attempts=1 the call is made once and any error propagates
    unchanged.
    """
    return AsyncRetrying(
        wait=wait_exponential(min=1, max=10),
        stop=stop_after_attempt(max_attempts),
        retry=retry_if_exception_type(exception_types),
        reraise=True,
    )
