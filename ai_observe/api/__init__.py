"""Framework-agnostic request handlers for the completion and metrics endpoints."""
