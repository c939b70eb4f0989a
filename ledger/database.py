"""
Database engine + session factory.

Defaults to SQLite for local dev, Postgres in production.
Sessions don't expire on commit so rows can be returned after close().
"""
from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from ledger.config import DATABASE_URL


class Base(DeclarativeBase):
    pass


# Heroku-style URLs say postgres:// but SQLAlchemy 2.x requires postgresql://
url = DATABASE_URL.replace('postgres://', 'postgresql://', 1)

# SQLite needs different engine kwargs than Postgres
if url.startswith('sqlite'):
    engine = create_engine(url, connect_args={'check_same_thread': False})
else:
    engine = create_engine(url, pool_pre_ping=True, pool_size=5, max_overflow=10)

SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)


def get_session():
    """Return a new DB session."""
    return SessionLocal()


def utcnow():
    """Timezone-aware UTC now, used for Python-side column defaults."""
    return datetime.now(timezone.utc)
