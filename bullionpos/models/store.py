"""
bullionpos/models/store.py

Key/value document store. Two keys are used:
 - 'settings': the dealer Settings document
 - 'transactions': the full transaction history as one JSON array
"""

from datetime import datetime, timezone

from sqlalchemy import Column, String
from sqlalchemy.types import JSON

from bullionpos.database import Base, UTCDateTime


class KeyValue(Base):
    __tablename__ = "kv_store"

    key = Column(String, primary_key=True)
    value = Column(JSON, nullable=True)
    updated_at = Column(
        UTCDateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self):
        return f"<KeyValue(key={self.key!r}, updated_at={self.updated_at})>"
