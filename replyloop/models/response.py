"""Result models returned by the reply engine and batch operations."""

from typing import Any

from pydantic import BaseModel

from replyloop.models.knowledge import ExtractionResult


class ReplySource(BaseModel):
    """A knowledge item that backed a generated reply."""

    id: str
    title: str
    category: str
    relevance: float


class GenerationResult(BaseModel):
    reply: str
    confidence: float
    sources: list[ReplySource] = []
    metadata: dict[str, Any] = {}


class ExtractionOutcome(BaseModel):
    extracted: list[ExtractionResult] = []
    saved_ids: list[str] = []


class BatchItemStatus(BaseModel):
    id: str
    success: bool
    error: str | None = None
    detail: dict[str, Any] | None = None


class BatchResult(BaseModel):
    """Per-item outcome of a batch. A failed item never aborts the batch."""

    processed: int = 0
    success: int = 0
    failed: int = 0
    items: list[BatchItemStatus] = []

    def record_success(self, item_id: str, detail: dict[str, Any] | None = None) -> None:
        self.processed += 1
        self.success += 1
        self.items.append(BatchItemStatus(id=item_id, success=True, detail=detail))

    def record_failure(self, item_id: str, error: str) -> None:
        self.processed += 1
        self.failed += 1
        self.items.append(BatchItemStatus(id=item_id, success=False, error=error))
