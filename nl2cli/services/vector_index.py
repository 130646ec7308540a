"""In-memory vector index with exact cosine similarity search"""

import logging
import threading
import time
from collections.abc import Callable, Iterable

import numpy as np

from nl2cli.models.record import QueryInfo, RetrievalResult, SearchHit, VectorRecord

logger = logging.getLogger(__name__)


class DimensionMismatchError(ValueError):
    """Embedding length disagrees with the dimension established by the first insert"""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Embedding dimension mismatch: index has {expected}, got {actual}")


class _Snapshot:
    """Immutable view of the index contents; replaced wholesale on every write"""

    __slots__ = ("records", "dimension", "_ids", "_matrix")

    def __init__(self, records: dict[str, VectorRecord], dimension: int | None):
        self.records = records
        self.dimension = dimension
        self._ids: list[str] | None = None
        self._matrix: np.ndarray | None = None

    def matrix(self) -> tuple[list[str], np.ndarray]:
        # Built on first search; racing readers build identical copies.
        if self._matrix is None:
            ids = list(self.records)
            if ids:
                matrix = np.array(
                    [self.records[record_id].embedding for record_id in ids], dtype=np.float64
                )
            else:
                matrix = np.zeros((0, self.dimension or 0), dtype=np.float64)
            self._ids = ids
            self._matrix = matrix
        return self._ids, self._matrix


def _normalize(embedding: Iterable[float]) -> list[float]:
    vector = np.asarray(list(embedding), dtype=np.float64)
    norm = np.linalg.norm(vector)
    if norm > 0:
        vector = vector / norm
    return vector.tolist()


class VectorIndex:
    """
    Store of embedded chunks searched by a full linear scan

    Writers are serialised by a lock and publish a new snapshot; readers take the
    current snapshot without locking, so a search never blocks on an upsert and
    every record is either fully visible or absent.
    """

    def __init__(self):
        self._write_lock = threading.Lock()
        self._snapshot = _Snapshot({}, None)

    @property
    def dimension(self) -> int | None:
        """Embedding dimension established by the first insert, None while empty"""
        return self._snapshot.dimension

    def count(self) -> int:
        return len(self._snapshot.records)

    def get(self, record_id: str) -> VectorRecord | None:
        return self._snapshot.records.get(record_id)

    def upsert(self, record: VectorRecord) -> None:
        """
        Insert a record or replace the record with the same id

        Raises:
            DimensionMismatchError: If the embedding length differs from the index dimension
        """
        self.upsert_many([record])

    def upsert_many(self, records: list[VectorRecord]) -> None:
        """Insert or replace several records as one write; all or none become visible"""
        if not records:
            return

        with self._write_lock:
            current = self._snapshot
            dimension = current.dimension
            records_by_id = dict(current.records)

            for record in records:
                if dimension is None:
                    dimension = len(record.embedding)
                elif len(record.embedding) != dimension:
                    raise DimensionMismatchError(dimension, len(record.embedding))
                records_by_id[record.id] = record.model_copy(
                    update={"embedding": _normalize(record.embedding)}
                )

            self._snapshot = _Snapshot(records_by_id, dimension)

        logger.debug(f"Upserted {len(records)} records ({len(records_by_id)} total)")

    def delete(self, record_id: str) -> bool:
        """Remove a record by id, returning whether it existed"""
        with self._write_lock:
            current = self._snapshot
            if record_id not in current.records:
                return False
            records_by_id = dict(current.records)
            del records_by_id[record_id]
            self._snapshot = _Snapshot(records_by_id, current.dimension)
        return True

    def delete_where(self, predicate: Callable[[VectorRecord], bool]) -> int:
        """Remove every record matching a predicate as one write, returning how many"""
        with self._write_lock:
            current = self._snapshot
            records_by_id = {
                record_id: record
                for record_id, record in current.records.items()
                if not predicate(record)
            }
            removed = len(current.records) - len(records_by_id)
            if removed:
                self._snapshot = _Snapshot(records_by_id, current.dimension)
        return removed

    def clear(self) -> None:
        """Remove every record and forget the established dimension"""
        with self._write_lock:
            self._snapshot = _Snapshot({}, None)

    def search(
        self,
        query_embedding: list[float],
        top_k: int,
        min_score: float,
        predicate: Callable[[VectorRecord], bool] | None = None,
    ) -> RetrievalResult:
        """
        Find the records most similar to a query embedding

        Args:
            query_embedding: Query vector, embedded with the same function as the records
            top_k: Maximum number of hits
            min_score: Minimum cosine similarity for a hit
            predicate: Optional filter applied to records before ranking

        Returns:
            RetrievalResult: Hits ordered by score descending, ties broken by record id

        Raises:
            DimensionMismatchError: If the query length differs from the index dimension
        """
        start_time = time.time()
        snapshot = self._snapshot

        hits: list[SearchHit] = []
        if snapshot.records and top_k > 0:
            if len(query_embedding) != snapshot.dimension:
                raise DimensionMismatchError(snapshot.dimension, len(query_embedding))

            ids, matrix = snapshot.matrix()
            query = np.asarray(_normalize(query_embedding), dtype=np.float64)
            scores = np.clip(matrix @ query, -1.0, 1.0)

            candidates = [
                (float(score), record_id)
                for record_id, score in zip(ids, scores)
                if score >= min_score
                and (predicate is None or predicate(snapshot.records[record_id]))
            ]
            candidates.sort(key=lambda item: (-item[0], item[1]))

            hits = [
                SearchHit(record=snapshot.records[record_id], score=score, rank=rank)
                for rank, (score, record_id) in enumerate(candidates[:top_k], start=1)
            ]

        query_info = QueryInfo(
            original_query="",
            total_results=len(hits),
            query_time_ms=(time.time() - start_time) * 1000,
        )
        return RetrievalResult(results=hits, query_info=query_info)
