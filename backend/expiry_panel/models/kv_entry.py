"""
Key-Value Entry Model - JSON blobs for servers, categories and settings
"""
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func
from ..database import Base


class KVEntry(Base):
    __tablename__ = "kv_store"

    key = Column(String(100), primary_key=True, index=True)
    value = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<KVEntry {self.key} ({len(self.value or '')} bytes)>"
