"""Document: one record of the document store.

path: full document path, alternating collection/document segments (projects/p1/tasks/t1).
collection_path: parent collection path (projects/p1/tasks); used by collection queries.
collection_id: last collection segment (tasks); used by collection-group queries.
fields: JSON payload; datetimes are tagged (see nexus.store.types).
"""
from sqlalchemy import JSON, Column, DateTime, Integer, String
from sqlalchemy.sql import func

from nexus.db.base import Base


class Document(Base):
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    path = Column(String(512), nullable=False, unique=True, index=True)
    collection_path = Column(String(512), nullable=False, index=True)
    collection_id = Column(String(128), nullable=False, index=True)
    doc_id = Column(String(128), nullable=False)
    fields = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
