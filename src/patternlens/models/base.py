"""Abstract interface for narrative generation."""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel


class ModelResponse(BaseModel):
    """Response from a model generation."""

    content: str
    model: str
    usage: dict[str, int] | None = None
    raw_response: Any = None


class NarrativeGenerator(ABC):
    """Turns a structured prompt into free-form prose.

    Implementations may raise, hang or return text that does not follow the
    requested format; the insight cache guards against all three.
    """

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model name being used."""
        ...

    @abstractmethod
    async def generate(self, prompt: str, max_tokens: int) -> str:
        """Generate text for a prompt.

        Args:
            prompt: The fully rendered user prompt.
            max_tokens: Maximum tokens in the response.

        Returns:
            The generated text.
        """
        ...
