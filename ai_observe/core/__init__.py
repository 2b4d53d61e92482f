"""
Core modules for AI Observe.

This package contains token segmentation, token breakdown records,
tokenizer capability detection, and metrics aggregation.
"""
