# src/inbox_broker/init_db.py
"""Create the broker's tables in the configured database."""

from inbox_broker.core.settings import settings
from inbox_broker.db.session import build_engine, create_tables


def init_db() -> None:
    """Initialize the database by creating all tables."""
    engine = build_engine(settings.database_url_sync, echo=settings.sql_debug)
    try:
        create_tables(engine)
    finally:
        engine.dispose()


if __name__ == "__main__":
    init_db()
    print("Database initialized.")
