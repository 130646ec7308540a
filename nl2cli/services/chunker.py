"""Character-window chunking of documents"""

from nl2cli.models.document import DocumentChunk


def chunk_text(text: str, chunk_size: int, overlap: int) -> list[DocumentChunk]:
    """
    Split text into windows of at most chunk_size characters

    Windows start every (chunk_size - overlap) characters, so adjacent chunks share
    exactly `overlap` characters. The final window may be shorter and is always kept.

    Args:
        text: Source text
        chunk_size: Maximum chunk length in characters
        overlap: Characters shared by adjacent chunks (0 <= overlap < chunk_size)

    Returns:
        list[DocumentChunk]: Chunks in document order, empty for empty text
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if not 0 <= overlap < chunk_size:
        raise ValueError(f"overlap must be in [0, {chunk_size}), got {overlap}")

    stride = chunk_size - overlap
    chunks: list[DocumentChunk] = []
    start = 0
    while start < len(text):
        end = min(start + chunk_size, len(text))
        chunks.append(
            DocumentChunk(content=text[start:end], position=len(chunks), start=start, end=end)
        )
        if end == len(text):
            break
        start += stride

    return chunks
