"""Documents supplied to the indexer and the chunks cut from them"""

from uuid import uuid4

from pydantic import BaseModel, Field


class Document(BaseModel):
    """Raw text plus metadata, never stored directly"""

    id: str = Field(
        default_factory=lambda: str(uuid4()), description="Identifier used to derive chunk ids"
    )
    text: str = Field(description="Raw document text")
    metadata: dict[str, str] = Field(
        default_factory=dict, description="Metadata inherited by every chunk"
    )


class DocumentChunk(BaseModel):
    """A contiguous slice of a document"""

    content: str = Field(min_length=1, description="Chunk text")
    position: int = Field(ge=0, description="Sequential position within the document (0-indexed)")
    start: int = Field(ge=0, description="Offset of the first character in the document")
    end: int = Field(ge=1, description="Offset one past the last character in the document")


class IndexingResult(BaseModel):
    """Outcome of indexing one or more documents"""

    documents_indexed: int = Field(default=0, ge=0, description="Documents fully indexed")
    documents_failed: int = Field(default=0, ge=0, description="Documents that raised")
    chunks_indexed: int = Field(default=0, ge=0, description="Chunks upserted into the index")
    errors: list[str] = Field(default_factory=list, description="Error messages")
