from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from app.core.config import settings

Base = declarative_base()


def make_engine(url: str, timeout_seconds: int = settings.DB_TIMEOUT_SECONDS) -> Engine:
    """
    Build an engine whose storage calls fail instead of hanging.
    Postgres: statement and lock timeouts per connection, bounded pool checkout.
    SQLite: busy timeout while waiting on the write lock.
    """
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": timeout_seconds},
        )
    timeout_ms = timeout_seconds * 1000
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_timeout=timeout_seconds,
        connect_args={
            "connect_timeout": timeout_seconds,
            "options": f"-c statement_timeout={timeout_ms} -c lock_timeout={timeout_ms}",
        },
    )


engine = make_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
