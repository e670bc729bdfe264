import logging

from .config import Settings, settings as default_settings
from .database import get_db_connection


class SQLiteHandler(logging.Handler):
    """
    A logging handler that writes logs to an SQLite database.
    """

    def __init__(self, settings: Settings = default_settings):
        super().__init__()
        self.settings = settings

    def emit(self, record):
        try:
            conn = get_db_connection(self.settings)
            with conn:
                conn.execute(
                    "INSERT INTO logs (level, message) VALUES (?, ?)",
                    (record.levelname, self.format(record)),
                )
            conn.close()
        except Exception:
            self.handleError(record)
