"""Integration tests for retrieval and context assembly"""

from nl2cli.models.document import Document
from nl2cli.models.pipeline_config import SearchConfig
from nl2cli.models.query import Query
from nl2cli.models.record import RetrievalResult, SearchHit, VectorRecord
from nl2cli.services.rag_engine import (
    CONTEXT_SEPARATOR,
    RagEngine,
    build_context,
    enhance_prompt,
)

PERMISSIVE = SearchConfig(top_k=10, min_score=0.0)


def _hit(record_id: str, text: str, score: float, rank: int) -> SearchHit:
    return SearchHit(
        record=VectorRecord(id=record_id, embedding=[1.0], text=text), score=score, rank=rank
    )


def _result(*hits: SearchHit) -> RetrievalResult:
    return RetrievalResult(results=list(hits))


class TestRetrieve:
    """Test similarity search through the engine"""

    def test_retrieve_from_empty_index(self, rag_engine):
        result = rag_engine.retrieve(Query(text="list buckets"))

        assert result.is_empty
        assert result.query_info.original_query == "list buckets"
        assert rag_engine.context_for(Query(text="list buckets")) == ""

    def test_retrieve_ranks_relevant_chunk_first(self, indexer, rag_engine):
        indexer.index(Document(id="s3", text="list s3 buckets with aws s3 ls"))
        indexer.index(Document(id="vm", text="create a virtual machine with az vm create"))

        result = rag_engine.retrieve(Query(text="list my s3 buckets"), PERMISSIVE)

        assert result.results[0].record.id == "s3-0"
        assert result.query_info.total_results == len(result.results)

    def test_provider_hint_filters_tagged_chunks(self, indexer, rag_engine):
        indexer.index(
            Document(id="aws", text="list buckets: aws s3 ls", metadata={"provider": "aws"})
        )
        indexer.index(
            Document(
                id="gcp",
                text="list buckets: gcloud storage buckets list",
                metadata={"provider": "gcp"},
            )
        )
        indexer.index(Document(id="generic", text="list buckets in the current account"))

        result = rag_engine.retrieve(Query(text="list buckets", provider="gcloud"), PERMISSIVE)

        ids = {hit.record.id for hit in result.results}
        assert "aws-0" not in ids
        assert {"gcp-0", "generic-0"} <= ids

    def test_provider_filter_can_be_disabled(self, indexer, rag_engine):
        indexer.index(
            Document(id="aws", text="list buckets: aws s3 ls", metadata={"provider": "aws"})
        )
        options = SearchConfig(top_k=10, min_score=0.0, filter_by_provider=False)

        result = rag_engine.retrieve(Query(text="list buckets", provider="gcp"), options)

        assert [hit.record.id for hit in result.results] == ["aws-0"]

    def test_unknown_provider_hint_matches_tag_literally(self, indexer, rag_engine):
        indexer.index(
            Document(id="tool", text="tool resource groups", metadata={"provider": "Tool"})
        )
        indexer.index(
            Document(id="aws", text="aws resource groups", metadata={"provider": "aws"})
        )

        result = rag_engine.retrieve(Query(text="resource groups", provider="tool"), PERMISSIVE)

        assert [hit.record.id for hit in result.results] == ["tool-0"]


class TestContextAssembly:
    """Test character budgets and prompt enhancement"""

    def test_context_joins_highest_score_first(self):
        result = _result(_hit("b", "second", 0.5, 2), _hit("a", "first", 0.9, 1))

        assert build_context(result, 100) == f"first{CONTEXT_SEPARATOR}second"

    def test_result_texts_ranked_by_score_then_id(self):
        result = _result(
            _hit("c", "third", 0.5, 3), _hit("b", "second", 0.9, 2), _hit("a", "first", 0.9, 1)
        )

        assert result.texts() == ["first", "second", "third"]

    def test_lowest_scoring_chunks_dropped_to_fit_budget(self):
        result = _result(
            _hit("a", "a" * 100, 0.9, 1),
            _hit("b", "b" * 100, 0.8, 2),
            _hit("c", "c" * 100, 0.7, 3),
        )

        context = build_context(result, 100 + len(CONTEXT_SEPARATOR) + 100)

        assert context == "a" * 100 + CONTEXT_SEPARATOR + "b" * 100

    def test_single_chunk_within_budget_is_verbatim(self):
        result = _result(_hit("a", "list resource groups: use `tool resource groups`", 0.8, 1))

        assert build_context(result, 2000) == "list resource groups: use `tool resource groups`"

    def test_chunks_never_truncated(self):
        result = _result(_hit("a", "x" * 50, 0.9, 1))

        assert build_context(result, 49) == ""

    def test_enhance_prompt(self):
        prompt = enhance_prompt("Query: list buckets\nCommand:", "aws s3 ls lists buckets")

        assert prompt.startswith("=== RELEVANT DOCUMENTATION ===\naws s3 ls lists buckets\n")
        assert "=== END DOCUMENTATION ===" in prompt
        assert prompt.endswith("Query: list buckets\nCommand:")

    def test_enhance_prompt_with_empty_context(self):
        assert enhance_prompt("Query: list buckets", "") == "Query: list buckets"
        assert enhance_prompt("Query: list buckets", "   ") == "Query: list buckets"

    def test_context_for_respects_max_length(self, indexer, vector_index, embedder):
        indexer.index(Document(id="one", text="list buckets " * 10))
        engine = RagEngine(
            vector_index, embedder, SearchConfig(min_score=0.0, max_context_length=20)
        )

        assert engine.context_for(Query(text="list buckets")) == ""
