"""
Database setup for the Risk game server.
Uses SQLite locally; use DATABASE_URL (e.g. Heroku Postgres) for production.
"""

import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base


def _resolve_database_url() -> str:
    # Heroku sets DATABASE_URL to postgres://; SQLAlchemy 2.x expects postgresql://
    raw_url = os.environ.get("DATABASE_URL")
    if raw_url and raw_url.startswith("postgres://"):
        return raw_url.replace("postgres://", "postgresql://", 1)
    if raw_url:
        return raw_url
    db_dir = os.path.dirname(os.path.abspath(__file__))
    return f"sqlite:///{os.path.join(db_dir, 'risk.db')}"


DATABASE_URL = _resolve_database_url()


def make_engine(url: str = DATABASE_URL, **kwargs):
    """Create an engine. SQLite needs check_same_thread=False; Postgres does not use that arg."""
    connect_args = kwargs.pop("connect_args", {})
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, **connect_args}
    return create_engine(url, connect_args=connect_args, **kwargs)


def make_session_factory(bind):
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


engine = make_engine(DATABASE_URL)
SessionLocal = make_session_factory(engine)
Base = declarative_base()


def init_db(bind=None):
    """Create all tables."""
    Base.metadata.create_all(bind=bind or engine)
