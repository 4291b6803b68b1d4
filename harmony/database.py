from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from harmony.config import settings


def build_engine(url: str):
    """Create an engine, allowing SQLite connections to cross worker threads."""
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url)


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(bind=engine)


class Base(DeclarativeBase):
    pass
