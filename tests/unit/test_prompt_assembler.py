"""Unit tests for PromptAssembler."""

from datetime import UTC, datetime, timedelta

import pytest

from replyloop.core.prompt_assembler import PromptAssembler, ReplyPrompt
from replyloop.core.retrieval import RetrievedCandidate
from replyloop.models.conversation import Message
from replyloop.models.knowledge import KnowledgeItem

pytestmark = pytest.mark.unit


def candidate(title, similarity, **fields):
    item = KnowledgeItem(title=title, content=f"{title}的內容", **fields)
    return RetrievedCandidate(item.id, "knowledge_item", similarity, item)


def history(count):
    start = datetime(2024, 5, 1, 9, 0, tzinfo=UTC)
    return [
        Message(
            customer_id="c1",
            direction="inbound" if i % 2 == 0 else "outbound",
            content=f"訊息{i}",
            created_at=start + timedelta(minutes=i),
        )
        for i in range(count)
    ]


def test_empty_sections_render_none_line():
    prompt = PromptAssembler().build("你好", [], [])

    assert f"{ReplyPrompt.KNOWLEDGE_HEADER}\n{ReplyPrompt.NONE}" in prompt
    assert f"{ReplyPrompt.HISTORY_HEADER}\n{ReplyPrompt.NONE}" in prompt
    assert prompt.startswith(ReplyPrompt.PREAMBLE)
    assert prompt.endswith(f"{ReplyPrompt.QUERY_HEADER}\n你好\n\n{ReplyPrompt.REPLY_CUE}")


def test_knowledge_blocks_keep_retrieval_order_and_fields():
    candidates = [
        candidate("退貨政策", 0.912, category="政策信息", tags=["退貨", "七天"]),
        candidate("運費說明", 0.8049),
    ]

    prompt = PromptAssembler().build("退貨", candidates, [])

    first = prompt.index("知識 1：退貨政策")
    second = prompt.index("知識 2：運費說明")
    assert first < second
    assert "分類：政策信息" in prompt
    assert "標籤：退貨, 七天" in prompt
    assert "相似度：0.91" in prompt
    assert "相似度：0.80" in prompt
    # Missing category and tags fall back to the none marker
    assert f"分類：{ReplyPrompt.NONE}\n標籤：{ReplyPrompt.NONE}" in prompt


def test_history_window_keeps_most_recent_turns_with_roles():
    prompt = PromptAssembler(history_window=5).build("問題", [], history(7))

    assert "訊息0" not in prompt
    assert "訊息1" not in prompt
    assert "[2024-05-01T09:02:00+00:00] 客戶：訊息2" in prompt
    assert "[2024-05-01T09:03:00+00:00] 客服：訊息3" in prompt
    assert prompt.index("訊息2") < prompt.index("訊息6")


def test_zero_history_window_drops_history():
    prompt = PromptAssembler(history_window=0).build("問題", [], history(3))
    assert f"{ReplyPrompt.HISTORY_HEADER}\n{ReplyPrompt.NONE}" in prompt


def test_build_is_deterministic():
    candidates = [candidate("退貨政策", 0.9)]
    turns = history(2)
    assembler = PromptAssembler()
    assert assembler.build("退貨", candidates, turns) == assembler.build("退貨", candidates, turns)
