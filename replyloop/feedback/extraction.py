"""Mines conversations and human corrections for new knowledge items."""

import logging
from datetime import UTC, datetime

from replyloop.core.llm_connector import LLMConnector
from replyloop.feedback.parsing import ExtractedKnowledge, parse_model_output
from replyloop.feedback.prompts import KnowledgePrompts
from replyloop.lib.config import ExtractionConfig
from replyloop.lib.errors import MalformedModelOutput, ValidationError
from replyloop.lib.retry import RetryPolicy
from replyloop.lib.text_similarity import normalized_similarity
from replyloop.models.conversation import Conversation
from replyloop.models.knowledge import ExtractedFrom, ExtractionResult, KnowledgeItem
from replyloop.models.response import BatchResult, ExtractionOutcome
from replyloop.storage.knowledge_service import KnowledgeService

logger = logging.getLogger(__name__)


class ExtractionEngine:
    """Turns transcripts and corrections into knowledge candidates.

    Only candidates with confidence >= promotion_threshold are saved, always
    unpublished so an editor reviews them first. Lower ones are dropped, not
    queued.
    """

    def __init__(
        self,
        connector: LLMConnector,
        knowledge_service: KnowledgeService,
        config: ExtractionConfig | None = None,
        retry: RetryPolicy | None = None,
    ):
        self.connector = connector
        self.knowledge_service = knowledge_service
        self.config = config or ExtractionConfig()
        self.retry = retry or RetryPolicy()

    async def from_conversation(self, conversation: Conversation) -> list[ExtractionResult]:
        """Extract knowledge candidates from a transcript.

        Returns:
            Candidates, or [] when the transcript is empty or the model output is malformed

        Raises:
            ProviderError: If the model call fails
        """
        if not conversation.messages:
            logger.info(f"Conversation {conversation.id} has no messages, nothing to extract")
            return []

        prompt = KnowledgePrompts.FROM_CONVERSATION.format(transcript=conversation.transcript())
        extracted = await self._extract(prompt, f"conversation {conversation.id}")

        origin = ExtractedFrom(
            conversation_id=conversation.id,
            message_ids=[m.id for m in conversation.messages],
        )
        results = [self._to_result(item, origin) for item in extracted]
        logger.info(f"Extracted {len(results)} candidates from conversation {conversation.id}")
        return results

    async def from_correction(
        self,
        original: str,
        corrected: str,
        context: str = "",
        conversation_id: str = "",
    ) -> list[ExtractionResult]:
        """Extract what a human added or changed when correcting an AI reply.

        A correction whose edit-distance similarity to the original exceeds
        rephrase_similarity is treated as rephrasing: no model call is made.
        """
        if not corrected or not corrected.strip():
            raise ValidationError("corrected", "corrected reply is required")

        similarity = normalized_similarity(original.strip(), corrected.strip())
        if similarity > self.config.rephrase_similarity:
            logger.info(
                f"Correction for conversation {conversation_id or '-'} is a rephrasing "
                f"(similarity={similarity:.2f}), skipping extraction"
            )
            return []

        prompt = KnowledgePrompts.FROM_CORRECTION.format(
            context=context or "（無）", original=original or "（無）", corrected=corrected
        )
        extracted = await self._extract(prompt, f"correction in {conversation_id or '-'}")

        origin = ExtractedFrom(conversation_id=conversation_id)
        return [self._to_result(item, origin) for item in extracted]

    async def save_extracted(self, results: list[ExtractionResult]) -> list[str]:
        """Persist candidates that clear the promotion threshold.

        Returns:
            Ids of the created (unpublished) knowledge items
        """
        saved_ids = []
        for result in results:
            if result.confidence < self.config.promotion_threshold:
                logger.info(
                    f"Discarding low-confidence knowledge {result.title!r} ({result.confidence:.2f})"
                )
                continue

            item = KnowledgeItem(
                title=result.title,
                content=result.content,
                category=result.category,
                tags=result.tags,
                source=result.source,
                is_published=False,
                metadata={
                    "extracted_from": result.extracted_from.model_dump(),
                    "confidence": result.confidence,
                    "extraction_time": datetime.now(UTC).isoformat(),
                },
            )
            await self.knowledge_service.create(item)
            saved_ids.append(item.id)

        logger.info(f"Saved {len(saved_ids)} of {len(results)} extracted candidates")
        return saved_ids

    async def extract_from_conversation(self, conversation: Conversation) -> ExtractionOutcome:
        extracted = await self.from_conversation(conversation)
        saved_ids = await self.save_extracted(extracted)
        return ExtractionOutcome(extracted=extracted, saved_ids=saved_ids)

    async def extract_from_correction(
        self,
        original: str,
        corrected: str,
        context: str = "",
        conversation_id: str = "",
    ) -> ExtractionOutcome:
        extracted = await self.from_correction(original, corrected, context, conversation_id)
        saved_ids = await self.save_extracted(extracted)
        return ExtractionOutcome(extracted=extracted, saved_ids=saved_ids)

    async def batch_process_conversations(self, conversations: list[Conversation]) -> BatchResult:
        """Extract and save per conversation; a failing conversation does not stop the batch."""
        result = BatchResult()

        for conversation in conversations:
            try:
                outcome = await self.extract_from_conversation(conversation)
                result.record_success(
                    conversation.id,
                    {"extracted": len(outcome.extracted), "saved_ids": outcome.saved_ids},
                )
            except Exception as e:
                logger.error(f"Extraction failed for conversation {conversation.id}: {e}")
                result.record_failure(conversation.id, str(e))

        logger.info(
            f"Batch extraction finished: {result.success}/{result.processed} succeeded, "
            f"{result.failed} failed"
        )
        return result

    async def _extract(self, prompt: str, label: str) -> list[ExtractedKnowledge]:
        response = await self.retry.run(
            self.connector.generate,
            prompt,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )
        try:
            return parse_model_output(response.content, list[ExtractedKnowledge])
        except MalformedModelOutput as e:
            logger.warning(f"Malformed extraction output for {label}: {e.detail}")
            return []

    @staticmethod
    def _to_result(item: ExtractedKnowledge, origin: ExtractedFrom) -> ExtractionResult:
        return ExtractionResult(
            title=item.title,
            content=item.content,
            category=item.category,
            tags=item.tags,
            source=item.source,
            confidence=item.confidence,
            extracted_from=origin,
        )
