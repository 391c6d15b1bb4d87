from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.config import settings


# The engine is only connected when the SQL store is selected.
engine = create_engine(
    settings.database_url or "sqlite+pysqlite:///./au_assess.db",
    pool_pre_ping=True,
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

