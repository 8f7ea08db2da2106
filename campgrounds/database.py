# campgrounds/database.py
import logging
import os

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base, Session

logger = logging.getLogger(__name__)

# DATABASE_URL from the environment, SQLite file by default
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./campgrounds.db")

# SQLite only (other backends reject this option)
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    DATABASE_URL,
    connect_args=connect_args
)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()

def get_db():
    db: Session = SessionLocal()
    try:
        yield db
    finally:
        db.close()

logger.info("Using database: %s", DATABASE_URL)
