"""LLM provider interfaces."""

from .provider import LLMProvider, OpenAIChatProvider, PromptContext, StaticResponseProvider

__all__ = [
    "LLMProvider",
    "PromptContext",
    "OpenAIChatProvider",
    "StaticResponseProvider",
]
