"""Tests for document-bounded context assembly."""

from cardy.core.context_assembly import (
    FALLBACK_NOTE,
    SYSTEM_PROMPT,
    AssembledContext,
    assemble_context,
    build_system_prompt,
)
from cardy.core.retrieval import RetrievedChunk


def _chunk(document_id, name, index, content, similarity=0.9):
    return RetrievedChunk(
        document_id=document_id,
        document_name=name,
        document_type="system-requirements",
        chunk_index=index,
        content=content,
        similarity=similarity,
    )


def test_empty_chunks_give_empty_context():
    assembled = assemble_context([], max_chars=1000)
    assert assembled.text == ""
    assert assembled.sources == []


def test_groups_by_document_in_rank_order():
    chunks = [
        _chunk("d2", "Guidelines", 3, "guideline three", 0.95),
        _chunk("d1", "Requirements", 1, "req one", 0.9),
        _chunk("d2", "Guidelines", 0, "guideline zero", 0.85),
    ]

    assembled = assemble_context(chunks, max_chars=10_000)

    assert [s.document_id for s in assembled.sources] == ["d2", "d1"]
    assert assembled.text.index("=== Document: Guidelines ===") < assembled.text.index(
        "=== Document: Requirements ==="
    )
    # Within a document, chunks read in document order
    assert assembled.text.index("guideline zero") < assembled.text.index("guideline three")
    assert "=== End of Document: Guidelines ===" in assembled.text
    assert assembled.truncated is False


def test_lowest_ranked_groups_dropped_first():
    chunks = [
        _chunk("d1", "Top", 0, "a" * 100),
        _chunk("d2", "Bottom", 0, "b" * 100),
    ]

    assembled = assemble_context(chunks, max_chars=200)

    assert assembled.truncated is True
    assert [s.document_id for s in assembled.sources] == ["d1"]
    assert "Bottom" not in assembled.text
    assert len(assembled.text) <= 200


def test_top_group_truncated_in_place_keeps_boundaries():
    chunks = [_chunk("d1", "Huge", 0, "x" * 5000)]

    assembled = assemble_context(chunks, max_chars=300)

    assert assembled.truncated is True
    assert len(assembled.text) <= 300
    assert assembled.text.startswith("=== Document: Huge ===")
    assert assembled.text.endswith("=== End of Document: Huge ===")


def test_system_prompt_includes_documents():
    assembled = AssembledContext(text="=== Document: A ===\nbody\n=== End of Document: A ===")

    prompt = build_system_prompt(assembled)

    assert prompt.startswith(SYSTEM_PROMPT)
    assert "PROJECT DOCUMENTS:" in prompt
    assert "body" in prompt
    assert FALLBACK_NOTE not in prompt


def test_system_prompt_flags_fallback():
    assembled = AssembledContext(text="=== Document: A ===\nbody\n=== End of Document: A ===")
    assert FALLBACK_NOTE in build_system_prompt(assembled, is_fallback=True)


def test_system_prompt_without_documents():
    prompt = build_system_prompt(AssembledContext(text=""))
    assert "No project documents are available" in prompt
