"""
FlowReader SQLite Database Connection
"""
import logging
import os
from typing import Iterator, Optional
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from flowreader.core.config import settings
from flowreader.core.exceptions import DatabaseException
from flowreader.db.models import Base, DocumentMetadata

logger = logging.getLogger(__name__)

db_dir = os.path.dirname(settings.SQLITE_DB_FILE)
if db_dir: os.makedirs(db_dir, exist_ok=True)

SQLALCHEMY_DATABASE_URL = f"sqlite:///{settings.SQLITE_DB_FILE}"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    pool_pre_ping=True
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

@event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA busy_timeout=30000")  # 30sec timeout if busy connection
    cursor.close()

def get_db() -> Iterator[Session]:
    """Get database session dependency."""
    db = SessionLocal()
    try: yield db
    finally: db.close()

def initialise_db():
    """Initialise db connections and create tables if they don't exist"""
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database initialised - tables created if they didn't exist")
    except Exception as e:
        raise DatabaseException(f"Failed to initialize database: {str(e)}")

def get_metadata_value(db: Session, book_id: str, key: str) -> Optional[str]:
    """Stored metadata value for a document, None if absent"""
    try:
        record = db.query(DocumentMetadata).filter(DocumentMetadata.book_id == book_id, DocumentMetadata.key == key).first()
        return record.value if record else None
    except Exception as e:
        raise DatabaseException(f"Failed to read metadata {key} for book {book_id}: {str(e)}")

def set_metadata_value(db: Session, book_id: str, key: str, value: Optional[str]) -> None:
    """Insert or replace a metadata value; None deletes the record"""
    try:
        record = db.query(DocumentMetadata).filter(DocumentMetadata.book_id == book_id, DocumentMetadata.key == key).first()

        if value is None:
            if record: db.delete(record)
        elif record: record.value = value
        else: db.add(DocumentMetadata(book_id=book_id, key=key, value=value))

        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to store metadata {key} for book {book_id}: {str(e)}")
        raise DatabaseException(f"Failed to store metadata {key} for book {book_id}: {str(e)}")
