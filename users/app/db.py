from sqlalchemy.engine import Engine

from svckit.db import database_url, get_session  # noqa: F401

DATABASE_URL = database_url("userdb")

def init_db(engine: Engine):
    """Create tables (idempotent)."""
    from .models import Base  # noqa
    Base.metadata.create_all(bind=engine)
