"""
Database connection management.

Provides SQLite connections for the resume builder's persistence layer.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = "ai_resume_builder.db"

# Seconds a writer waits for a competing writer's lock before failing
BUSY_TIMEOUT = 30.0


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Create and return a SQLite database connection with foreign keys enabled.

    Each call opens a fresh connection, so connections are never shared
    between worker threads.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLite connection with foreign key constraints enabled
    """
    path = Path(db_path)
    conn = sqlite3.connect(str(path), timeout=BUSY_TIMEOUT)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn
