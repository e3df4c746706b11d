import os

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool


def database_url(default_name: str) -> str:
    """
    DATABASE_URL wins; otherwise assemble a psycopg3 URL from DB_* variables.
    """
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    user = os.getenv("DB_USER", "postgres")
    password = os.getenv("DB_PASS", os.getenv("DB_PASSWORD", "password"))
    host = os.getenv("DB_HOST", "localhost")
    port = os.getenv("DB_PORT", "5432")
    name = os.getenv("DB_NAME", default_name)
    return f"postgresql+psycopg://{user}:{password}@{host}:{port}/{name}"


def make_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        # one shared connection so in-memory databases survive across sessions
        return create_engine(url, connect_args={"check_same_thread": False},
                             poolclass=StaticPool, future=True)
    return create_engine(url, pool_pre_ping=True, future=True)


def make_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False,
                        expire_on_commit=False, future=True)


def get_session(request: Request):
    """
    FastAPI dependency: yields a DB session from the app's sessionmaker,
    commits on success, rolls back on error.
    """
    s: Session = request.app.state.sessionmaker()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
