"""Database initialization for the ranking and snapshot tables."""
import logging
from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from app.db.database import engine as default_engine, Base
# Imported for its side effect of registering the tables on Base.metadata
from app.db import models  # noqa: F401

logger = logging.getLogger(__name__)


def init_db(engine: Engine = None) -> None:
    """
    Initialize database: create the ranking and snapshot tables.

    Safe to call multiple times - table creation is idempotent.

    Args:
        engine: Engine to initialize. Defaults to the configured application engine.
    """
    engine = engine or default_engine
    logger.info("Initializing database...")

    existing_tables = set(inspect(engine).get_table_names())
    missing = [name for name in Base.metadata.tables if name not in existing_tables]
    if missing:
        logger.info(f"Creating tables: {', '.join(sorted(missing))}")
    else:
        logger.info("All tables present. Nothing to create.")

    Base.metadata.create_all(bind=engine)
    logger.info("Database initialization complete.")


if __name__ == "__main__":
    # Set up basic logging for standalone execution
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    init_db()
    print("Database initialization complete.")
