"""
AI Observe.

Usage observability for LLM chat completions: per-call latency, token and
error metrics with an approximate token-level view of prompts and responses.
"""

__version__ = "0.1.0"
