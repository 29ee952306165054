"""Process-wide document store, chosen from SETTINGS at import time.

DATABASE_URL -> SqlDocumentStore, DATA_DIR -> JsonFileDocumentStore,
neither -> InMemoryDocumentStore (tests reset it between cases).
"""

from __future__ import annotations

from coursegate.core.config import SETTINGS
from coursegate.db.engine import async_session_factory
from coursegate.repos.document_store import (
    DocumentStore,
    InMemoryDocumentStore,
    JsonFileDocumentStore,
)
from coursegate.repos.sql_document_store import SqlDocumentStore

if async_session_factory is not None:
    document_store: DocumentStore = SqlDocumentStore(async_session_factory)
elif SETTINGS.data_dir:
    document_store = JsonFileDocumentStore(SETTINGS.data_dir)
else:
    document_store = InMemoryDocumentStore()
