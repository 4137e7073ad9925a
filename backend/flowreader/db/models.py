"""
FlowReader SQLAlchemy Database Models
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import relationship, declarative_base

Base = declarative_base()

class Book(Base):
    """Book model representing a processed document in the library"""
    __tablename__ = "books"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String, nullable=False)
    file_path = Column(String, nullable=False)
    total_characters = Column(Integer, nullable=True)
    total_pages = Column(Integer, nullable=True)
    total_chapters = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    document_metadata = relationship("DocumentMetadata", back_populates="book", cascade="all, delete-orphan")

class DocumentMetadata(Base):
    """Opaque per-document metadata record, e.g. the encoded reading position"""
    __tablename__ = "document_metadata"
    __table_args__ = (UniqueConstraint("book_id", "key", name="uq_document_metadata_key"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    book_id = Column(String, ForeignKey("books.id", ondelete="CASCADE"), nullable=False)
    key = Column(String, nullable=False)
    value = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    book = relationship("Book", back_populates="document_metadata")
