# coopbus/core/db.py

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from coopbus.core.config import settings
from coopbus.utils.logger import get_logger

# --- Configure logging ---
logger = get_logger(__name__)

# --- Create database engine ---
engine = create_engine(settings.db_url, pool_pre_ping=True)

# --- Create sessionmaker ---
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# --- Create declarative base ---
Base = declarative_base()

# --- Synchronous database session ---

def get_db():
    """
    Method for obtaining database session object
    """
    db = SessionLocal()
    try:
        yield db
        logger.info("Committing DB transaction")
        db.commit()
    finally:
        db.close()


def create_all_tables(bind=None) -> None:
    """
    Create every table registered on the declarative base
    """
    # Model modules register their tables on import
    from coopbus import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database tables created", tables=len(Base.metadata.tables))
