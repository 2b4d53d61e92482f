"""
SDK for AI Observe.

Provides the observed completion gateway.
"""

from .openai_client import CompletionResult, ObservedOpenAI

__all__ = ["CompletionResult", "ObservedOpenAI"]
