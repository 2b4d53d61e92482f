"""
Database connection management.

Provides SQLite connections for the metrics store.
"""

import sqlite3
from pathlib import Path


def get_connection(db_path: str) -> sqlite3.Connection:
    """Create and return a SQLite connection for the metrics store.

    Parent directories are created on demand. A busy timeout lets
    concurrent writers queue at the storage layer instead of failing.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLite connection
    """
    path = Path(db_path)
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), timeout=30.0)
    return conn
