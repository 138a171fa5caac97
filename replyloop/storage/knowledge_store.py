"""CRUD and search over knowledge items."""

import json
import logging
import re
import sqlite3
from datetime import UTC, datetime

from replyloop.models.knowledge import KnowledgeItem
from replyloop.storage.sqlite_store import SQLiteStore

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"\w+")
_CJK_RE = re.compile(r"[\u3400-\u9fff\uf900-\ufaff]")
_MAX_TERMS = 32


def text_terms(text: str) -> list[str]:
    """Split text into match terms.

    Latin words longer than one character are kept whole. Runs of CJK
    characters have no spaces, so they contribute overlapping bigrams.
    """
    terms: list[str] = []
    for token in _WORD_RE.findall(text.lower()):
        if _CJK_RE.search(token):
            terms.extend(token[i : i + 2] for i in range(len(token) - 1))
        elif len(token) > 1:
            terms.append(token)

    unique = list(dict.fromkeys(terms))
    return unique[:_MAX_TERMS]


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class KnowledgeStore:
    def __init__(self, db: SQLiteStore):
        self.db = db

    def _row_to_item(self, row: sqlite3.Row) -> KnowledgeItem:
        return KnowledgeItem(
            id=row["id"],
            title=row["title"],
            content=row["content"],
            category=row["category"],
            tags=json.loads(row["tags"]),
            source=row["source"],
            source_url=row["source_url"],
            is_published=bool(row["is_published"]),
            metadata=json.loads(row["metadata"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def create(self, item: KnowledgeItem) -> KnowledgeItem:
        with self.db.connection() as conn:
            conn.execute(
                """
                INSERT INTO knowledge_items (
                    id, title, content, category, tags, source, source_url,
                    is_published, metadata, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    item.id,
                    item.title,
                    item.content,
                    item.category,
                    json.dumps(item.tags, ensure_ascii=False),
                    item.source,
                    item.source_url,
                    int(item.is_published),
                    json.dumps(item.metadata, ensure_ascii=False),
                    item.created_at.isoformat(),
                    item.updated_at.isoformat(),
                ),
            )
        logger.debug(f"Created knowledge item {item.id}")
        return item

    def get(self, item_id: str) -> KnowledgeItem | None:
        with self.db.connection() as conn:
            row = conn.execute("SELECT * FROM knowledge_items WHERE id = ?", (item_id,)).fetchone()
        return self._row_to_item(row) if row else None

    def get_many(self, item_ids: list[str]) -> dict[str, KnowledgeItem]:
        if not item_ids:
            return {}
        placeholders = ",".join("?" * len(item_ids))
        with self.db.connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM knowledge_items WHERE id IN ({placeholders})", list(item_ids)
            ).fetchall()
        return {row["id"]: self._row_to_item(row) for row in rows}

    def update(self, item: KnowledgeItem) -> bool:
        """Overwrite an existing item. Last writer wins; returns False if it is gone."""
        item.updated_at = datetime.now(UTC)
        with self.db.connection() as conn:
            cursor = conn.execute(
                """
                UPDATE knowledge_items
                SET title = ?, content = ?, category = ?, tags = ?, source = ?,
                    source_url = ?, is_published = ?, metadata = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    item.title,
                    item.content,
                    item.category,
                    json.dumps(item.tags, ensure_ascii=False),
                    item.source,
                    item.source_url,
                    int(item.is_published),
                    json.dumps(item.metadata, ensure_ascii=False),
                    item.updated_at.isoformat(),
                    item.id,
                ),
            )
            return cursor.rowcount > 0

    def delete(self, item_id: str) -> bool:
        with self.db.connection() as conn:
            cursor = conn.execute("DELETE FROM knowledge_items WHERE id = ?", (item_id,))
            return cursor.rowcount > 0

    def search(
        self,
        query: str | None = None,
        categories: list[str] | None = None,
        tags: list[str] | None = None,
        source: str | None = None,
        is_published: bool | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[KnowledgeItem]:
        """Filter items; query is a case-insensitive substring of title or content.

        Results are newest first.
        """
        clauses = []
        params: list = []

        if query:
            pattern = f"%{_escape_like(query)}%"
            clauses.append("(title LIKE ? ESCAPE '\\' OR content LIKE ? ESCAPE '\\')")
            params.extend([pattern, pattern])
        if categories:
            clauses.append(f"category IN ({','.join('?' * len(categories))})")
            params.extend(categories)
        if tags:
            clauses.append(
                "EXISTS (SELECT 1 FROM json_each(knowledge_items.tags) "
                f"WHERE json_each.value IN ({','.join('?' * len(tags))}))"
            )
            params.extend(tags)
        if source:
            clauses.append("source = ?")
            params.append(source)
        if is_published is not None:
            clauses.append("is_published = ?")
            params.append(int(is_published))

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        sql = (
            f"SELECT * FROM knowledge_items {where} "
            "ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?"
        )
        params.extend([limit, offset])

        with self.db.connection() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_item(row) for row in rows]

    def find_related_by_text(
        self, text: str, limit: int = 10, exclude_id: str | None = None
    ) -> list[KnowledgeItem]:
        """Rank items by how many terms of `text` their title or content contain.

        Pure keyword overlap, no embeddings. Ties keep insertion order.
        """
        terms = text_terms(text)
        if not terms:
            return []

        clauses = []
        params: list = []
        for term in terms:
            pattern = f"%{_escape_like(term)}%"
            clauses.append("title LIKE ? ESCAPE '\\' OR content LIKE ? ESCAPE '\\'")
            params.extend([pattern, pattern])

        sql = f"SELECT * FROM knowledge_items WHERE ({' OR '.join(clauses)}) ORDER BY rowid"
        with self.db.connection() as conn:
            rows = conn.execute(sql, params).fetchall()

        scored = []
        for row in rows:
            if row["id"] == exclude_id:
                continue
            haystack = f"{row['title']}\n{row['content']}".lower()
            score = sum(1 for term in terms if term in haystack)
            if score:
                scored.append((score, row))

        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [self._row_to_item(row) for _, row in scored[:limit]]

    def all_items(self, is_published: bool | None = None) -> list[KnowledgeItem]:
        """Every item in insertion order."""
        sql = "SELECT * FROM knowledge_items"
        params: list = []
        if is_published is not None:
            sql += " WHERE is_published = ?"
            params.append(int(is_published))
        sql += " ORDER BY rowid"

        with self.db.connection() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_item(row) for row in rows]

    def list_ids(self) -> list[str]:
        with self.db.connection() as conn:
            rows = conn.execute("SELECT id FROM knowledge_items ORDER BY rowid").fetchall()
        return [row["id"] for row in rows]

    def list_categories(self) -> list[str]:
        with self.db.connection() as conn:
            rows = conn.execute(
                "SELECT DISTINCT category FROM knowledge_items WHERE category != '' ORDER BY category"
            ).fetchall()
        return [row["category"] for row in rows]

    def list_tags(self) -> list[str]:
        with self.db.connection() as conn:
            rows = conn.execute(
                "SELECT DISTINCT json_each.value AS tag "
                "FROM knowledge_items, json_each(knowledge_items.tags) ORDER BY tag"
            ).fetchall()
        return [row["tag"] for row in rows]
