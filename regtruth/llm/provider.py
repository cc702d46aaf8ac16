"""
LLM provider abstraction.

The extractor is the only caller. A provider turns a prompt into completion text;
grounding, composition and review never depend on what the model says about itself.
"""

from abc import ABC, abstractmethod
from typing import Any


class LLMProvider(ABC):
    """Abstract base for LLM providers."""

    model: str

    @abstractmethod
    def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        **kwargs: Any,
    ) -> str:
        """Send prompt and return completion text."""
        ...
