from app.db.session import engine
from app.db.base import Base
import app.db.models  # noqa: F401


def init_db():
    """Create all tables (local development without Alembic)."""
    Base.metadata.create_all(bind=engine)
