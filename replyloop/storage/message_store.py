"""Append-only customer/agent message log used for conversation history."""

import json
import logging
import sqlite3
from datetime import datetime

from replyloop.models.conversation import Direction, Message
from replyloop.storage.sqlite_store import SQLiteStore

logger = logging.getLogger(__name__)


class MessageStore:
    def __init__(self, db: SQLiteStore):
        self.db = db

    @staticmethod
    def _row_to_message(row: sqlite3.Row) -> Message:
        return Message(
            id=row["id"],
            customer_id=row["customer_id"],
            direction=row["direction"],
            content=row["content"],
            created_at=datetime.fromisoformat(row["created_at"]),
            metadata=json.loads(row["metadata"]),
        )

    def append(self, message: Message) -> Message:
        with self.db.connection() as conn:
            conn.execute(
                """
                INSERT INTO messages (id, customer_id, direction, content, metadata, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    message.id,
                    message.customer_id,
                    message.direction,
                    message.content,
                    json.dumps(message.metadata, ensure_ascii=False),
                    message.created_at.isoformat(),
                ),
            )
        return message

    def get(self, message_id: str) -> Message | None:
        with self.db.connection() as conn:
            row = conn.execute("SELECT * FROM messages WHERE id = ?", (message_id,)).fetchone()
        return self._row_to_message(row) if row else None

    def get_many(self, message_ids: list[str]) -> dict[str, Message]:
        if not message_ids:
            return {}
        placeholders = ",".join("?" * len(message_ids))
        with self.db.connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM messages WHERE id IN ({placeholders})", list(message_ids)
            ).fetchall()
        return {row["id"]: self._row_to_message(row) for row in rows}

    def recent_for_customer(
        self,
        customer_id: str,
        limit: int = 10,
        direction: Direction | None = None,
        exclude_id: str | None = None,
    ) -> list[Message]:
        """Most recent messages for a customer, returned oldest first.

        Args:
            customer_id: Customer whose log to read
            limit: Maximum number of messages
            direction: Only inbound or only outbound messages
            exclude_id: Message to leave out (usually the one being answered)
        """
        clauses = ["customer_id = ?"]
        params: list = [customer_id]
        if direction:
            clauses.append("direction = ?")
            params.append(direction)
        if exclude_id:
            clauses.append("id != ?")
            params.append(exclude_id)
        params.append(limit)

        with self.db.connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM messages WHERE {' AND '.join(clauses)} "
                "ORDER BY created_at DESC, rowid DESC LIMIT ?",
                params,
            ).fetchall()

        return [self._row_to_message(row) for row in reversed(rows)]
