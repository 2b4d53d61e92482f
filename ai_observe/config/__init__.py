"""Configuration loading for AI Observe."""
