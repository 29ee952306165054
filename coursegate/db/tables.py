"""SQLAlchemy table definitions for the SQL-backed document store.

All five collections share one table: a record is addressed by
(collection, id) and its fields live in a JSON body, mirroring the
document layout of the JSON-file store.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from coursegate.db.engine import Base


class DocumentRow(Base):
    __tablename__ = "documents"

    collection: Mapped[str] = mapped_column(String(64), primary_key=True)
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    body: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    __table_args__ = (Index("ix_documents_collection", "collection"),)
