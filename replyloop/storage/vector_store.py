"""Embedding records and exact cosine-similarity search.

Search is a linear scan over one source type. That keeps results exact and
deterministic; an approximate nearest neighbour index can replace the scan
behind find_similar without changing callers.
"""

import json
import logging
import math
import sqlite3
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

import numpy as np

from replyloop.storage.sqlite_store import SQLiteStore

logger = logging.getLogger(__name__)

SourceType = Literal["knowledge_item", "message", "document"]
SOURCE_TYPES: tuple[str, ...] = ("knowledge_item", "message", "document")


@dataclass
class EmbeddingRecord:
    """One vector per (source_id, source_type)."""

    source_id: str
    source_type: str
    vector: list[float]
    model: str
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def dimensions(self) -> int:
        return len(self.vector)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between two vectors of equal length.

    Returns 0.0 when either vector has zero magnitude.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"Dimension mismatch: {va.shape[0]} vs {vb.shape[0]}")

    norm_a = float(np.dot(va, va))
    norm_b = float(np.dot(vb, vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    similarity = float(np.dot(va, vb)) / math.sqrt(norm_a * norm_b)
    return max(-1.0, min(1.0, similarity))


class VectorStore:
    """SQLite-backed store of embedding records."""

    def __init__(self, db: SQLiteStore):
        self.db = db

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> EmbeddingRecord:
        return EmbeddingRecord(
            source_id=row["source_id"],
            source_type=row["source_type"],
            vector=json.loads(row["vector"]),
            model=row["model"],
            metadata=json.loads(row["metadata"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def upsert(
        self,
        source_id: str,
        source_type: SourceType,
        vector: Sequence[float],
        model: str,
        metadata: dict[str, Any] | None = None,
    ) -> EmbeddingRecord:
        """Create or replace the record for (source_id, source_type).

        A replaced record keeps its original position in scan order.
        """
        if source_type not in SOURCE_TYPES:
            raise ValueError(f"Unknown source type: {source_type}")
        if not vector:
            raise ValueError("Cannot store an empty vector")

        now = datetime.now(UTC).isoformat()
        values = [float(v) for v in vector]

        with self.db.connection() as conn:
            conn.execute(
                """
                INSERT INTO embeddings (
                    source_id, source_type, vector, dimensions, model, metadata,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(source_id, source_type) DO UPDATE SET
                    vector = excluded.vector,
                    dimensions = excluded.dimensions,
                    model = excluded.model,
                    metadata = excluded.metadata,
                    updated_at = excluded.updated_at
                """,
                (
                    source_id,
                    source_type,
                    json.dumps(values),
                    len(values),
                    model,
                    json.dumps(metadata or {}, ensure_ascii=False),
                    now,
                    now,
                ),
            )
            row = conn.execute(
                "SELECT * FROM embeddings WHERE source_id = ? AND source_type = ?",
                (source_id, source_type),
            ).fetchone()

        logger.debug(f"Upserted {source_type} embedding for {source_id} ({len(values)}D)")
        return self._row_to_record(row)

    def get_by_source(self, source_id: str, source_type: SourceType) -> EmbeddingRecord | None:
        with self.db.connection() as conn:
            row = conn.execute(
                "SELECT * FROM embeddings WHERE source_id = ? AND source_type = ?",
                (source_id, source_type),
            ).fetchone()
        return self._row_to_record(row) if row else None

    def delete_by_source(self, source_id: str, source_type: SourceType) -> bool:
        with self.db.connection() as conn:
            cursor = conn.execute(
                "DELETE FROM embeddings WHERE source_id = ? AND source_type = ?",
                (source_id, source_type),
            )
            deleted = cursor.rowcount > 0

        if deleted:
            logger.debug(f"Deleted {source_type} embedding for {source_id}")
        return deleted

    def count(self, source_type: SourceType | None = None) -> int:
        sql = "SELECT COUNT(*) FROM embeddings"
        params: tuple = ()
        if source_type:
            sql += " WHERE source_type = ?"
            params = (source_type,)
        with self.db.connection() as conn:
            return conn.execute(sql, params).fetchone()[0]

    def find_similar(
        self,
        query_vector: Sequence[float],
        source_type: SourceType = "knowledge_item",
        limit: int = 5,
        threshold: float = 0.7,
    ) -> list[tuple[EmbeddingRecord, float]]:
        """Records of one source type ranked by cosine similarity to the query.

        Records of a different dimensionality are skipped. Results are sorted
        by similarity (highest first), keep only similarity >= threshold and
        are truncated to limit. Equal scores keep insertion order.
        """
        if limit <= 0 or not query_vector:
            return []

        with self.db.connection() as conn:
            rows = conn.execute(
                "SELECT * FROM embeddings WHERE source_type = ? AND dimensions = ? ORDER BY id",
                (source_type, len(query_vector)),
            ).fetchall()

        scored = []
        for row in rows:
            record = self._row_to_record(row)
            similarity = cosine_similarity(query_vector, record.vector)
            if similarity >= threshold:
                scored.append((record, similarity))

        # list.sort is stable, so ties stay in scan order
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return scored[:limit]
