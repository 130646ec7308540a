"""Document indexing: chunk, embed and upsert into the vector index"""

import logging

from nl2cli.models.document import Document, IndexingResult
from nl2cli.models.pipeline_config import ChunkingConfig
from nl2cli.models.record import VectorRecord
from nl2cli.services.chunker import chunk_text
from nl2cli.services.embedder import Embedder
from nl2cli.services.vector_index import VectorIndex

logger = logging.getLogger(__name__)


class IndexingError(Exception):
    """Raised when a document could not be fully indexed"""

    def __init__(self, document_id: str, chunks_indexed: int, message: str):
        self.document_id = document_id
        self.chunks_indexed = chunks_indexed
        super().__init__(
            f"Failed to index document {document_id} "
            f"after {chunks_indexed} chunks: {message}"
        )


class DocumentIndexer:
    """Populate a vector index from raw documents"""

    def __init__(
        self,
        vector_index: VectorIndex,
        embedder: Embedder,
        chunking_config: ChunkingConfig | None = None,
        batch_size: int = 32,
    ):
        self.vector_index = vector_index
        self.embedder = embedder
        self.chunking_config = chunking_config or ChunkingConfig()
        self.batch_size = batch_size

    def index(
        self, document: Document, chunking_config: ChunkingConfig | None = None
    ) -> IndexingResult:
        """
        Chunk a document and upsert one record per chunk

        Indexing is not transactional: when embedding fails part-way, the chunks
        already upserted stay in the index.

        Args:
            document: Document to index
            chunking_config: Overrides the indexer's chunking options for this call

        Returns:
            IndexingResult: Counts for this document

        Raises:
            IndexingError: If embedding or upserting any chunk fails
        """
        options = chunking_config or self.chunking_config
        chunks = chunk_text(document.text, options.chunk_size, options.overlap)
        if not chunks:
            logger.warning(f"Document {document.id} is empty, nothing to index")
            self._drop_stale_chunks(document.id, 0)
            return IndexingResult(documents_indexed=1)

        total = str(len(chunks))
        indexed = 0
        for i in range(0, len(chunks), self.batch_size):
            batch = chunks[i : i + self.batch_size]
            try:
                embeddings = self.embedder.embed_batch([chunk.content for chunk in batch])
                records = [
                    VectorRecord(
                        id=f"{document.id}-{chunk.position}",
                        embedding=embedding,
                        text=chunk.content,
                        metadata={
                            **document.metadata,
                            "document_id": document.id,
                            "chunk_index": str(chunk.position),
                            "total_chunks": total,
                        },
                    )
                    for chunk, embedding in zip(batch, embeddings, strict=True)
                ]
                self.vector_index.upsert_many(records)
            except Exception as e:
                raise IndexingError(document.id, indexed, str(e)) from e
            indexed += len(records)

        self._drop_stale_chunks(document.id, len(chunks))
        logger.debug(f"Indexed document {document.id} as {indexed} chunks")
        return IndexingResult(documents_indexed=1, chunks_indexed=indexed)

    def _drop_stale_chunks(self, document_id: str, chunk_count: int) -> None:
        """Remove chunks left over from an earlier, longer version of a document"""

        def is_stale(record: VectorRecord) -> bool:
            position = record.metadata.get("chunk_index", "")
            return (
                record.metadata.get("document_id") == document_id
                and position.isdigit()
                and int(position) >= chunk_count
            )

        removed = self.vector_index.delete_where(is_stale)
        if removed:
            logger.debug(f"Removed {removed} stale chunks of document {document_id}")

    def index_many(self, documents: list[Document]) -> IndexingResult:
        """
        Index a knowledge base, skipping documents that fail

        Returns:
            IndexingResult: Aggregate counts plus the error message of every failure
        """
        result = IndexingResult()
        for document in documents:
            try:
                outcome = self.index(document)
            except IndexingError as e:
                logger.error(str(e))
                result.documents_failed += 1
                result.chunks_indexed += e.chunks_indexed
                result.errors.append(str(e))
                continue
            result.documents_indexed += outcome.documents_indexed
            result.chunks_indexed += outcome.chunks_indexed

        logger.info(
            f"Indexed {result.documents_indexed} documents ({result.chunks_indexed} chunks), "
            f"{result.documents_failed} failed"
        )
        return result
