"""
Supabase-backed document store (`ai_embeddings` table).

Columns: id, content, embedding, type, source, title, category, timestamp.
The supabase client is synchronous; calls run in a worker thread so the
event loop is not blocked.
"""
import asyncio
from typing import Any, Dict, Optional

from supabase import Client

from astroai.core.logging import get_logger
from astroai.models.search import EmbeddingRecord

logger = get_logger(__name__)

DEFAULT_TABLE = "ai_embeddings"


def record_to_row(record: EmbeddingRecord) -> Dict[str, Any]:
    return record.model_dump()


def row_to_record(row: Dict[str, Any]) -> EmbeddingRecord:
    return EmbeddingRecord(
        id=str(row.get("id") or ""),
        type=str(row.get("type") or "unknown"),
        source=str(row.get("source") or ""),
        title=str(row.get("title") or ""),
        category=str(row.get("category") or "general"),
        content=str(row.get("content") or ""),
        embedding=row.get("embedding") or None,
        timestamp=float(row.get("timestamp") or 0.0),
    )


class SupabaseDocumentStore:

    name = "supabase"

    def __init__(self, client: Client, table: str = DEFAULT_TABLE):
        self.client = client
        self.table = table

    async def upsert(self, record: EmbeddingRecord) -> None:
        row = record_to_row(record)
        await asyncio.to_thread(
            lambda: self.client.table(self.table).upsert(row).execute()
        )

    async def get(self, id: str) -> Optional[EmbeddingRecord]:
        response = await asyncio.to_thread(
            lambda: self.client.table(self.table).select("*").eq("id", id).limit(1).execute()
        )
        if not response.data:
            return None
        return row_to_record(response.data[0])

    async def delete(self, id: str) -> None:
        await asyncio.to_thread(
            lambda: self.client.table(self.table).delete().eq("id", id).execute()
        )
