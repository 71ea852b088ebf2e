"""Anthropic Claude narrative generator."""

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import SecretStr

from patternlens.core.logging import get_logger
from patternlens.models.base import ModelResponse, NarrativeGenerator

logger = get_logger(__name__)


class AnthropicNarrativeGenerator(NarrativeGenerator):
    """Narrative generator backed by Anthropic Claude models."""

    def __init__(
        self,
        api_key: SecretStr,
        model: str = "claude-sonnet-4-20250514",
        system_prompt: str = "",
        temperature: float = 0.4,
    ) -> None:
        """Initialize the Anthropic generator.

        Args:
            api_key: Anthropic API key.
            model: Model name to use.
            system_prompt: System message sent with every request.
            temperature: Sampling temperature.
        """
        self._model = model
        self._system_prompt = system_prompt
        self._temperature = temperature
        self._client = ChatAnthropic(
            api_key=api_key,
            model=model,
        )

    @property
    def model_name(self) -> str:
        """Return the model name being used."""
        return self._model

    async def complete(self, prompt: str, max_tokens: int) -> ModelResponse:
        """Generate a response from Claude with usage details."""
        messages = [HumanMessage(content=prompt)]
        if self._system_prompt:
            messages.insert(0, SystemMessage(content=self._system_prompt))

        response = await self._client.ainvoke(
            messages,
            temperature=self._temperature,
            max_tokens=max_tokens,
        )

        usage = None
        if hasattr(response, "usage_metadata") and response.usage_metadata:
            usage = {
                "input_tokens": response.usage_metadata.get("input_tokens", 0),
                "output_tokens": response.usage_metadata.get("output_tokens", 0),
            }

        return ModelResponse(
            content=str(response.content),
            model=self._model,
            usage=usage,
            raw_response=response,
        )

    async def generate(self, prompt: str, max_tokens: int) -> str:
        """Generate narrative text from Claude."""
        response = await self.complete(prompt, max_tokens)
        if response.usage:
            logger.debug("Narrative generated", model=self._model, **response.usage)
        return response.content
