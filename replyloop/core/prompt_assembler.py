"""Builds the generation prompt from knowledge, history and the customer query."""

from collections.abc import Sequence
from dataclasses import dataclass

from replyloop.core.retrieval import RetrievedCandidate
from replyloop.models.conversation import Message


@dataclass
class ReplyPrompt:
    """Fixed text blocks of the reply prompt."""

    PREAMBLE = """你是一個專業、親切的客服助手，負責回答客戶的問題。
請遵守以下規則：
1. 只根據下方提供的知識內容回答，不要編造知識中沒有的資訊。
2. 如果知識內容無法回答問題，請誠實告知客戶目前無法確定，並建議轉由專人協助。
3. 回覆必須與歷史對話保持一致，不要重複詢問客戶已經提供的資訊。
4. 回覆應簡潔、有條理，必要時使用編號或項目符號。"""

    KNOWLEDGE_HEADER = "以下是與客戶問題相關的知識："
    HISTORY_HEADER = "以下是與客戶的歷史對話："
    QUERY_HEADER = "客戶目前的問題："
    NONE = "（無）"
    REPLY_CUE = "客服："

    ROLE_LABELS = {"customer": "客戶", "agent": "客服"}


class PromptAssembler:
    """Pure string building; the same inputs always give the same prompt."""

    def __init__(self, history_window: int = 5):
        self.history_window = history_window

    def build(
        self,
        query: str,
        candidates: Sequence[RetrievedCandidate],
        history: Sequence[Message],
    ) -> str:
        """Assemble the prompt.

        Args:
            query: Current customer query
            candidates: Retrieved knowledge, already in ranking order
            history: Earlier messages, oldest first; only the last
                history_window turns are used

        Returns:
            Prompt text
        """
        sections = [
            ReplyPrompt.PREAMBLE,
            self._knowledge_section(candidates),
            self._history_section(history),
            f"{ReplyPrompt.QUERY_HEADER}\n{query.strip()}",
            ReplyPrompt.REPLY_CUE,
        ]
        return "\n\n".join(sections)

    def _knowledge_section(self, candidates: Sequence[RetrievedCandidate]) -> str:
        if not candidates:
            return f"{ReplyPrompt.KNOWLEDGE_HEADER}\n{ReplyPrompt.NONE}"

        blocks = []
        for index, candidate in enumerate(candidates, start=1):
            item = candidate.entity
            blocks.append(
                f"知識 {index}：{item.title}\n"
                f"內容：{item.content}\n"
                f"分類：{item.category or ReplyPrompt.NONE}\n"
                f"標籤：{', '.join(item.tags) if item.tags else ReplyPrompt.NONE}\n"
                f"相似度：{candidate.similarity:.2f}"
            )
        return ReplyPrompt.KNOWLEDGE_HEADER + "\n\n" + "\n\n".join(blocks)

    def _history_section(self, history: Sequence[Message]) -> str:
        recent = list(history)[-self.history_window :] if self.history_window > 0 else []
        if not recent:
            return f"{ReplyPrompt.HISTORY_HEADER}\n{ReplyPrompt.NONE}"

        lines = [
            f"[{message.created_at.isoformat()}] "
            f"{ReplyPrompt.ROLE_LABELS[message.role]}：{message.content}"
            for message in recent
        ]
        return ReplyPrompt.HISTORY_HEADER + "\n" + "\n".join(lines)
