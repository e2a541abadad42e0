from contextlib import contextmanager
from typing import Optional

import psycopg
from psycopg.rows import dict_row

from tollroute.config import settings


@contextmanager
def get_db(statement_timeout_ms: Optional[int] = None):
    options = f"-c statement_timeout={int(statement_timeout_ms)}" if statement_timeout_ms else ""
    conn = psycopg.connect(
        settings.database_url,
        row_factory=dict_row,
        connect_timeout=settings.database_connect_timeout_seconds,
        options=options,
    )
    try:
        yield conn
    finally:
        conn.close()
