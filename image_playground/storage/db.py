"""
Database connection management.

Provides the SQLite connection behind the generation history.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = ".image-playground.db"


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Open a SQLite connection, creating parent directories as needed.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLite connection
    """
    path = Path(db_path)
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
    return sqlite3.connect(str(path))
