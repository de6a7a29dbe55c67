"""
Database module for jukebox.

Handles SQLite database initialization, schema creation, and connection management.
"""

import logging
import sqlite3
from pathlib import Path
from typing import Dict, List, Optional

from .models import ConfigEntry


class Database:
    """Manages SQLite database connection and schema."""

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize database connection.

        Args:
            db_path: Path to SQLite database file. If None, uses ~/.jukebox/jukebox.db
        """
        self.logger = logging.getLogger(__name__)

        if db_path is None:
            home = Path.home()
            jukebox_dir = home / '.jukebox'
            jukebox_dir.mkdir(exist_ok=True)
            db_path = str(jukebox_dir / 'jukebox.db')

        self.db_path = db_path
        self._ensure_schema()
        self.logger.info('Database initialized at %s', self.db_path)

    def _ensure_schema(self):
        """Ensure database schema exists (thread-safe)."""
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        try:
            cursor = conn.cursor()
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS config (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            ''')
            conn.commit()
        finally:
            conn.close()
        self.logger.debug('Database schema created/verified')

    def get_connection(self):
        """
        Get a new database connection (thread-safe).

        Each thread should get its own connection. Caller is responsible
        for closing the connection when done.
        """
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def close(self):
        """Close database connection (no-op since we use per-thread connections)."""
        pass

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()


class ConfigRepository:
    """Key/value access to the config table."""

    def __init__(self, database: Database):
        self.database = database

    def initialize_defaults(self, defaults: Dict[str, Optional[str]]):
        """Insert default values for keys that are not stored yet."""
        conn = self.database.get_connection()
        try:
            conn.executemany(
                'INSERT OR IGNORE INTO config (key, value) VALUES (?, ?)',
                [(key, '' if value is None else str(value)) for key, value in defaults.items()],
            )
            conn.commit()
        finally:
            conn.close()

    def get(self, key: str) -> Optional[ConfigEntry]:
        conn = self.database.get_connection()
        try:
            row = conn.execute(
                'SELECT key, value, updated_at FROM config WHERE key = ?', (key,)
            ).fetchone()
            if row is None:
                return None
            return ConfigEntry(key=row['key'], value=row['value'], updated_at=row['updated_at'])
        finally:
            conn.close()

    def set(self, key: str, value: str) -> bool:
        conn = self.database.get_connection()
        try:
            conn.execute('''
                INSERT INTO config (key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP
            ''', (key, value))
            conn.commit()
            return True
        finally:
            conn.close()

    def get_all(self) -> List[ConfigEntry]:
        conn = self.database.get_connection()
        try:
            rows = conn.execute('SELECT key, value, updated_at FROM config ORDER BY key').fetchall()
            return [
                ConfigEntry(key=row['key'], value=row['value'], updated_at=row['updated_at'])
                for row in rows
            ]
        finally:
            conn.close()
