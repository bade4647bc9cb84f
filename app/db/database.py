"""Database engine, session factory and declarative base."""
import os
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from app.config import settings


def build_engine(database_url: str):
    """Create an engine for the given URL.

    SQLite file databases get their parent directory created and are opened
    with ``check_same_thread`` disabled, since store calls run in the
    threadpool rather than on the thread that opened the connection.
    """
    connect_args = {}
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        connect_args["check_same_thread"] = False
        if url.database and url.database != ":memory:":
            directory = os.path.dirname(url.database)
            if directory:
                os.makedirs(directory, exist_ok=True)

    return create_engine(database_url, connect_args=connect_args, pool_pre_ping=True)


engine = build_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()
