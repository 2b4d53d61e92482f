"""Metrics store: append-only ledger of completion call records."""
