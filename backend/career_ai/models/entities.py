from sqlalchemy import Column, String, Text, Integer, DateTime, Index

from career_ai.core.database import Base


class KvEntry(Base):
    __tablename__ = "kv_entries"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    expires_at = Column(DateTime, nullable=True, index=True)
    updated_at = Column(DateTime, nullable=False)


class KvListItem(Base):
    __tablename__ = "kv_list_items"
    __table_args__ = (Index("ix_kv_list_items_list_key_seq", "list_key", "seq"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    list_key = Column(String(255), nullable=False)
    # Ordering key: lpush takes min(seq) - 1, rpush takes max(seq) + 1.
    seq = Column(Integer, nullable=False)
    value = Column(Text, nullable=False)
