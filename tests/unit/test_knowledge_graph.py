"""Unit tests for knowledge graph export and structure analysis."""

import pytest

from replyloop.feedback.knowledge_graph import analyze_structure, build_knowledge_graph
from replyloop.models.knowledge import KnowledgeItem, Relation

pytestmark = pytest.mark.unit


def related(source, target, relation_type="related", strength=0.5):
    return Relation(
        source_id=source.id, target_id=target.id, relation_type=relation_type, strength=strength
    ).model_dump()


@pytest.fixture
def items():
    a = KnowledgeItem(title="退貨政策", content="a", category="政策信息", tags=["退貨", "政策"])
    b = KnowledgeItem(title="退貨運費", content="b", category="常見問題", tags=["退貨", "運費"])
    c = KnowledgeItem(title="換貨流程", content="c", category="政策信息", tags=["退貨"])
    d = KnowledgeItem(title="密碼重設", content="d", tags=["帳號"])
    outside = KnowledgeItem(title="不在圖中", content="x")
    a.metadata = {
        "relations": [related(a, b), related(a, c, "parent", 0.9), related(a, outside), related(a, a)]
    }
    b.metadata = {"relations": [related(b, c, "similar")]}
    return [a, b, c, d]


def test_build_graph_drops_unknown_and_self_edges(items):
    a, b, c, d = items
    graph = build_knowledge_graph(items)

    assert [n["id"] for n in graph.nodes] == [a.id, b.id, c.id, d.id]
    assert graph.nodes[0]["label"] == "退貨政策"
    assert [r.target_id for r in graph.outgoing(a.id)] == [b.id, c.id]
    assert [r.source_id for r in graph.incoming(c.id)] == [a.id, b.id]
    assert graph.degree(b.id) == 2
    assert graph.degree(d.id) == 0
    assert graph.outgoing("unknown") == []


def test_incoming_uses_index_built_with_graph(items):
    a, b, c, d = items
    graph = build_knowledge_graph(items)

    assert set(graph.reverse_adjacency) == {b.id, c.id}
    assert graph.incoming(a.id) == []
    assert graph.incoming(d.id) == []
    assert graph.incoming("unknown") == []
    assert [r.relation_type for r in graph.incoming(c.id)] == ["parent", "similar"]


def test_graph_to_dict(items):
    a, b, _, _ = items
    data = build_knowledge_graph(items).to_dict()

    assert len(data["nodes"]) == 4
    assert len(data["edges"]) == 3
    assert data["edges"][0] == {"source": a.id, "target": b.id, "type": "related", "strength": 0.5}


def test_analyze_structure(items):
    a, b, c, _ = items
    report = analyze_structure(items)

    assert report.total_items == 4
    assert report.category_distribution == {"政策信息": 2, "常見問題": 1, "uncategorized": 1}
    assert report.top_tags[0].tag == "退貨"
    assert report.top_tags[0].count == 3
    assert report.unused_tags == ["帳號", "政策", "運費"]
    assert report.relation_type_distribution == {"related": 1, "parent": 1, "similar": 1}
    assert report.isolated_items == 1
    assert report.most_connected[0].id == a.id
    assert report.most_connected[0].connections == 2
    assert {m.id for m in report.most_connected} == {a.id, b.id, c.id}


def test_analyze_empty_knowledge_base():
    report = analyze_structure([])
    assert report.total_items == 0
    assert report.most_connected == []
    assert report.suggestions.suggested_new_categories == []
