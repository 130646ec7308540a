"""Knowledge base file models (knowledge.yaml)"""

from pydantic import BaseModel, Field, model_validator


class KnowledgeEntry(BaseModel):
    """One documentation entry, given inline or as a path to a text file"""

    id: str = Field(min_length=1, description="Stable document id, used in chunk ids")
    title: str | None = Field(default=None, description="Human-readable title")
    provider: str | None = Field(default=None, description="Provider tag for filtering")
    text: str | None = Field(default=None, description="Inline document text")
    path: str | None = Field(
        default=None, description="Text file, relative to the knowledge file's directory"
    )

    @model_validator(mode="after")
    def validate_content(self) -> "KnowledgeEntry":
        if (self.text is None) == (self.path is None):
            raise ValueError(f"Entry '{self.id}' must set exactly one of 'text' or 'path'")
        return self


class KnowledgeBase(BaseModel):
    """Top-level structure of knowledge.yaml"""

    documents: list[KnowledgeEntry] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_ids(self) -> "KnowledgeBase":
        ids = [entry.id for entry in self.documents]
        duplicates = sorted({doc_id for doc_id in ids if ids.count(doc_id) > 1})
        if duplicates:
            raise ValueError(f"Duplicate document ids: {', '.join(duplicates)}")
        return self
