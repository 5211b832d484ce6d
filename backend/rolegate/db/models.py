from sqlalchemy import Column, Integer, String, DateTime, JSON, UniqueConstraint
from sqlalchemy.sql import func
from rolegate.db.database import Base


class DocumentRecord(Base):
    """One keyed JSON document inside a named collection."""
    __tablename__ = "documents"
    __table_args__ = (
        UniqueConstraint("collection", "key", name="uq_documents_collection_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    collection = Column(String(100), index=True, nullable=False)
    key = Column(String(255), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
