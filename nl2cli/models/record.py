"""Vector index records and search result models"""

from pydantic import BaseModel, Field


class VectorRecord(BaseModel):
    """A single embedded chunk held by the vector index"""

    model_config = {"frozen": True}

    id: str = Field(min_length=1, description="Unique identifier within the index")
    embedding: list[float] = Field(min_length=1, description="Embedding vector")
    text: str = Field(description="Source text of the chunk")
    metadata: dict[str, str] = Field(
        default_factory=dict, description="Provider tag, source document, chunk position, ..."
    )


class SearchHit(BaseModel):
    """A record returned by a similarity search"""

    record: VectorRecord = Field(description="The matching record")
    score: float = Field(ge=-1.0, le=1.0, description="Cosine similarity to the query")
    rank: int = Field(ge=1, description="Position in result list (1-indexed)")


class QueryInfo(BaseModel):
    """Metadata about the retrieval execution"""

    original_query: str = Field(description="The query that was executed")
    total_results: int = Field(ge=0, description="Number of results returned")
    query_time_ms: float = Field(ge=0.0, description="Retrieval time in milliseconds")


class RetrievalResult(BaseModel):
    """Ordered retrieval output, highest score first"""

    results: list[SearchHit] = Field(default_factory=list, description="Ranked hits")
    query_info: QueryInfo | None = Field(default=None, description="Metadata about the query")

    @property
    def is_empty(self) -> bool:
        return not self.results

    def texts(self) -> list[str]:
        """Hit texts, highest score first"""
        ranked = sorted(self.results, key=lambda hit: (-hit.score, hit.record.id))
        return [hit.record.text for hit in ranked]
