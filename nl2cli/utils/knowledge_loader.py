"""Utility to load the documentation knowledge base from a YAML file"""

import logging
from pathlib import Path

import yaml

from nl2cli.models.document import Document
from nl2cli.models.knowledge import KnowledgeBase

logger = logging.getLogger(__name__)


def load_knowledge_base(knowledge_path: str | Path = "knowledge.yaml") -> list[Document]:
    """
    Load knowledge base documents from a YAML file

    Args:
        knowledge_path: Path to knowledge.yaml (default: knowledge.yaml in project root)

    Returns:
        list[Document]: One document per entry, tagged with id, title and provider

    Raises:
        FileNotFoundError: If the knowledge file or a referenced text file doesn't exist
        ValueError: If the knowledge file is invalid
    """
    knowledge_path = Path(knowledge_path)

    if not knowledge_path.exists():
        raise FileNotFoundError(f"Knowledge base file not found: {knowledge_path}")

    try:
        with open(knowledge_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)

        if not isinstance(data, dict) or not data:
            raise ValueError("Knowledge base file is empty or not a mapping")

        knowledge_base = KnowledgeBase(**data)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in knowledge base file: {e}") from e

    documents: list[Document] = []
    for entry in knowledge_base.documents:
        if entry.path is not None:
            text_path = knowledge_path.parent / entry.path
            if not text_path.exists():
                raise FileNotFoundError(
                    f"Document '{entry.id}' references a missing file: {text_path}"
                )
            text = text_path.read_text(encoding="utf-8")
        else:
            text = entry.text or ""

        metadata = {"source": str(knowledge_path)}
        if entry.title:
            metadata["title"] = entry.title
        if entry.provider:
            metadata["provider"] = entry.provider
        documents.append(Document(id=entry.id, text=text, metadata=metadata))

    logger.info(f"Loaded {len(documents)} documents from {knowledge_path}")
    return documents
