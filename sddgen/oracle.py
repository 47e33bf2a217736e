"""
sddgen Oracle - Text generation backends

The oracle is an opaque, nondeterministic dependency: phases and the repair
loop only see the GenerationOracle protocol. AnthropicOracle is the
production backend; tests inject scripted fakes.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

import anthropic

from sddgen.config import DEFAULT_MODEL, RunConfig, require_api_key
from sddgen.errors import OracleError

logger = logging.getLogger(__name__)


@runtime_checkable
class GenerationOracle(Protocol):
    """Protocol for pluggable generation backends."""

    def generate(self, prompt: str, instructions: str | None = None) -> str: ...


class AnthropicOracle:
    """Generation backend using the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 8000,
        temperature: float = 0.7,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client = anthropic.Anthropic(api_key=api_key or require_api_key())

    @classmethod
    def from_config(cls, config: RunConfig) -> "AnthropicOracle":
        return cls(
            model=config.model,
            max_tokens=config.max_tokens,
            temperature=config.temperature,
        )

    def generate(self, prompt: str, instructions: str | None = None) -> str:
        logger.info("Calling %s (%d prompt chars)", self.model, len(prompt))

        kwargs = {}
        if instructions:
            kwargs["system"] = instructions

        try:
            message = self._client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                messages=[{"role": "user", "content": prompt}],
                **kwargs,
            )
        except anthropic.APIError as e:
            logger.error("Oracle call failed: %s", e)
            raise OracleError(f"Anthropic API call failed: {e}") from e

        if not message.content or message.content[0].type != "text":
            raise OracleError("Unexpected response type from oracle")

        usage = getattr(message, "usage", None)
        if usage is not None:
            logger.info(
                "Tokens used: %s input, %s output",
                usage.input_tokens,
                usage.output_tokens,
            )
        return message.content[0].text
