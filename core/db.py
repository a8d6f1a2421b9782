"""
core/db.py -- create_engine() options shared by the SQLAlchemy stores.

storage_timeout_seconds bounds every wait on the database:
  SQLite     the driver's busy timeout (waiting on another writer's lock).
  others     pool_timeout (waiting for a free pooled connection).

Statement-level timeouts on server databases are driver specific and are left
to the DATABASE_URL query string (e.g. ?connect_timeout=5 for psycopg2).
"""


def is_sqlite(db_url: str) -> bool:
    return db_url.startswith("sqlite")


def engine_options(db_url: str, timeout: float) -> dict:
    """Keyword arguments for create_engine(db_url, **engine_options(...))."""
    if is_sqlite(db_url):
        return {"connect_args": {"check_same_thread": False, "timeout": timeout}}
    return {"pool_timeout": timeout}
