import os
import sqlite3

from .config import Settings, settings as default_settings


def get_db_path(settings: Settings = default_settings) -> str:
    return os.path.join(settings.DB_DIR, settings.DB_FILE)


def get_db_connection(settings: Settings = default_settings):
    """Establishes a connection to the SQLite database."""
    conn = sqlite3.connect(get_db_path(settings))
    conn.row_factory = sqlite3.Row
    return conn


def create_log_table(settings: Settings = default_settings):
    """Creates the log table if it doesn't exist."""
    conn = get_db_connection(settings)
    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp DATETIME DEFAULT CURRENT_TIMESTAMP,
                level TEXT,
                message TEXT
            );
        """
        )
    conn.close()


def create_state_table(settings: Settings = default_settings):
    """Creates the key/value table holding persisted study state."""
    conn = get_db_connection(settings)
    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS state (
                section TEXT PRIMARY KEY,
                payload TEXT NOT NULL,
                updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );
        """
        )
    conn.close()


def init_db(settings: Settings = default_settings):
    """Initializes the database and creates necessary tables."""
    if not os.path.exists(settings.DB_DIR):
        os.makedirs(settings.DB_DIR)
    create_log_table(settings)
    create_state_table(settings)
