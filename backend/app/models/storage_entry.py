"""Durable key-value storage, used for state that must survive restarts."""

from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func

from app.database import Base


class StorageEntry(Base):
    """
    One JSON document per key.
    The offline upload queue keeps its whole item list under a single key.
    """
    __tablename__ = "storage_entries"

    key = Column(String(128), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


def read_entry(db, key: str):
    """Return the raw stored value for ``key`` or None."""
    entry = db.query(StorageEntry).filter(StorageEntry.key == key).first()
    return entry.value if entry else None


def write_entry(db, key: str, value: str) -> None:
    entry = db.query(StorageEntry).filter(StorageEntry.key == key).first()
    if entry:
        entry.value = value
    else:
        db.add(StorageEntry(key=key, value=value))
    db.commit()


def delete_entry(db, key: str) -> None:
    db.query(StorageEntry).filter(StorageEntry.key == key).delete()
    db.commit()
