from sqlalchemy.engine import Engine

from svckit.db import database_url, get_session  # noqa: F401

DATABASE_URL = database_url("orderdb")

def init_db(engine: Engine):
    """Create orders + order_items (idempotent)."""
    from .models import Base  # noqa
    Base.metadata.create_all(bind=engine)
