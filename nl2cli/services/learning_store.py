"""Learned corrections: an append-only log with a latest-wins lookup index"""

import logging
import os
import re
import threading
from collections import Counter
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from nl2cli.models.command import Command, CommandSource, QualityScore
from nl2cli.models.correction import CorrectionRecord, CorrectionType
from nl2cli.models.pipeline_config import LearningConfig
from nl2cli.utils.command_text import normalize_query, query_words

logger = logging.getLogger(__name__)


class StorageCorruptionError(Exception):
    """A line of the correction log could not be decoded"""

    def __init__(self, path: str, line_number: int, message: str):
        self.path = path
        self.line_number = line_number
        super().__init__(f"Corrupt correction record at {path}:{line_number}: {message}")


_ERROR_CLASSIFIERS: list[tuple[CorrectionType, tuple[str, ...]]] = [
    (CorrectionType.COMMAND_NOT_FOUND, ("not a registered command", "command not found")),
    (CorrectionType.INVALID_SYNTAX, ("invalid syntax", "usage:")),
    (CorrectionType.WRONG_SUBCOMMAND, ("subcommand",)),
    (CorrectionType.PARAMETER_ERROR, ("parameter", "argument")),
]


def classify_error(error_message: str | None) -> CorrectionType:
    """Categorise an execution error message"""
    if not error_message:
        return CorrectionType.COMMAND_FIX
    error_lower = error_message.lower()
    if "plugin" in error_lower and "not installed" in error_lower:
        return CorrectionType.MISSING_PLUGIN
    for correction_type, phrases in _ERROR_CLASSIFIERS:
        if any(phrase in error_lower for phrase in phrases):
            return correction_type
    return CorrectionType.OTHER


_CORRECTABLE_PHRASES = (
    "not a registered command",
    "command not found",
    "invalid syntax",
    "plugin",
    "subcommand",
)
_QUOTED = re.compile(r"'([^']*)'")
_UNKEYED_PATTERNS = ("general", "unknown")


def is_correctable_error(error_message: str | None) -> bool:
    """Whether an execution error looks fixable by a different command"""
    if not error_message:
        return False
    error_lower = error_message.lower()
    return any(phrase in error_lower for phrase in _CORRECTABLE_PHRASES)


def extract_failed_command(error_message: str | None) -> str | None:
    """Name quoted in an error such as "'services' is not a registered command" """
    if not error_message:
        return None
    match = _QUOTED.search(error_message)
    if match is None:
        return None
    return match.group(1) or None


def _pattern_key(record: CorrectionRecord) -> str:
    """Group corrections of unknown commands by the word the CLI rejected"""
    if record.correction_type != CorrectionType.COMMAND_NOT_FOUND:
        return "general"
    named = extract_failed_command(record.error_message)
    if named:
        return named
    words = (record.failed_command or "").split()
    return words[1] if len(words) > 1 else "unknown"


def _jaccard(a: set[str], b: set[str]) -> float:
    if not a or not b:
        return 0.0
    return len(a & b) / len(a | b)


class _Index:
    """Immutable lookup state derived from the log; replaced on every append"""

    __slots__ = ("records", "latest", "sequence", "words", "patterns")

    def __init__(self, records: tuple[CorrectionRecord, ...]):
        self.records = records
        self.latest: dict[str, CorrectionRecord] = {}
        self.sequence: dict[str, int] = {}
        self.words: dict[str, set[str]] = {}
        # pattern key -> positions of the records filed under it, oldest first
        self.patterns: dict[str, list[int]] = {}
        for position, record in enumerate(records):
            key = normalize_query(record.query)
            self.latest[key] = record
            self.sequence[key] = position
            self.words[key] = query_words(key)
            self.patterns.setdefault(_pattern_key(record), []).append(position)

    def append(self, record: CorrectionRecord) -> "_Index":
        return _Index(self.records + (record,))


class LearningStore:
    """
    Persist user-confirmed corrections and answer repeat queries from them

    Appends are serialised by a lock and written to a JSON Lines log before the
    in-memory index is swapped; lookups read the current index without locking.
    """

    def __init__(self, learning_config: LearningConfig | None = None):
        self.config = learning_config or LearningConfig()
        self.path = Path(self.config.path) if self.config.path else None
        self._write_lock = threading.Lock()
        self._index = _Index(tuple(self._load()))

    def _load(self) -> list[CorrectionRecord]:
        """Read the log in write order, skipping lines that cannot be decoded"""
        if self.path is None or not self.path.exists():
            return []

        records: list[CorrectionRecord] = []
        skipped = 0
        with open(self.path, encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    records.append(CorrectionRecord.model_validate_json(line))
                except (ValidationError, ValueError) as e:
                    skipped += 1
                    logger.warning(str(StorageCorruptionError(str(self.path), line_number, str(e))))

        logger.info(
            f"Loaded {len(records)} corrections from {self.path}"
            + (f" ({skipped} corrupt records skipped)" if skipped else "")
        )
        return records

    def _append_to_log(self, record: CorrectionRecord) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        line = (record.model_dump_json() + "\n").encode("utf-8")
        with open(self.path, "a+b") as f:
            # Terminate a line torn by an interrupted write so it stays the only casualty
            if f.seek(0, os.SEEK_END) > 0:
                f.seek(-1, os.SEEK_END)
                if f.read(1) != b"\n":
                    line = b"\n" + line
            f.write(line)
            f.flush()

    def record(
        self,
        query: str,
        corrected_command: str,
        failed_command: str | None = None,
        error_message: str | None = None,
        provider: str | None = None,
    ) -> CorrectionRecord:
        """
        Append a correction

        Recording the same correction again for a query whose latest correction it
        already is leaves the log unchanged.

        Returns:
            CorrectionRecord: The new record, or the existing one for a repeat
        """
        corrected_command = corrected_command.strip()
        if not query.strip() or not corrected_command:
            raise ValueError("query and corrected_command must be non-empty")

        key = normalize_query(query)
        with self._write_lock:
            existing = self._index.latest.get(key)
            if existing and existing.corrected_command == corrected_command:
                logger.debug(f"Correction for '{key}' already recorded")
                return existing

            record = CorrectionRecord(
                query=query.strip(),
                corrected_command=corrected_command,
                failed_command=failed_command,
                error_message=error_message,
                correction_type=classify_error(error_message),
                provider=provider,
            )
            self._append_to_log(record)
            self._index = self._index.append(record)

        logger.info(f"Learned correction: '{key}' -> '{corrected_command}'")
        return record

    def _match(self, query: str) -> CorrectionRecord | None:
        index = self._index
        key = normalize_query(query)
        if not key:
            return None

        exact = index.latest.get(key)
        if exact:
            return exact

        words = query_words(key)
        best: tuple[float, int] | None = None
        best_key = None
        for candidate_key, candidate_words in index.words.items():
            score = _jaccard(words, candidate_words)
            if score < self.config.fuzzy_threshold:
                continue
            rank = (score, index.sequence[candidate_key])
            if best is None or rank > best:
                best, best_key = rank, candidate_key

        return index.latest[best_key] if best_key is not None else None

    def lookup(self, query: str) -> Command | None:
        """
        Find a learned command for a query

        Tries the latest correction for the exact normalised query, then the closest
        query by word overlap (Jaccard) at or above the fuzzy threshold, with the
        more recent correction winning ties.
        """
        record = self._match(query)
        if record is None:
            return None
        return Command(
            text=record.corrected_command,
            provider=record.provider,
            quality=QualityScore.trusted(),
            source=CommandSource.LEARNED,
            attempts=0,
        )

    def related(self, query: str, limit: int = 3) -> list[CorrectionRecord]:
        """Latest corrections for queries sharing words with this one, best overlap first"""
        index = self._index
        words = query_words(query)
        scored = [
            (_jaccard(words, candidate_words), index.sequence[key], key)
            for key, candidate_words in index.words.items()
        ]
        scored = [item for item in scored if item[0] > 0]
        scored.sort(reverse=True)
        return [index.latest[key] for _, _, key in scored[:limit]]

    def suggestions(
        self, failed_command: str, error_message: str | None = None, limit: int = 3
    ) -> list[str]:
        """
        Learned commands that fixed the same failure before

        Corrections recorded for this exact failed command come first, then those
        filed under a word of the failed command or under the name quoted in the
        error message. Each group is newest first and duplicates are dropped.

        Args:
            failed_command: Command that failed to execute
            error_message: Its error output, if any
            limit: Maximum number of suggestions

        Returns:
            list[str]: Corrected commands, best first
        """
        index = self._index
        failed = " ".join(failed_command.split())
        if not failed:
            return []

        exact = [
            record.corrected_command
            for record in reversed(index.records)
            if record.failed_command and " ".join(record.failed_command.split()) == failed
        ]

        keys = {word for word in failed.split()[1:] if not word.startswith("-")}
        named = extract_failed_command(error_message)
        if named:
            keys.add(named)
        keys.difference_update(_UNKEYED_PATTERNS)
        positions = sorted(
            {position for key in keys for position in index.patterns.get(key, [])},
            reverse=True,
        )
        by_pattern = [index.records[position].corrected_command for position in positions]

        return list(dict.fromkeys(exact + by_pattern))[:limit]

    def count(self) -> int:
        return len(self._index.records)

    def stats(self) -> dict[str, Any]:
        """Summary of the correction log"""
        index = self._index
        by_type = Counter(record.correction_type.value for record in index.records)
        return {
            "total_corrections": len(index.records),
            "unique_queries": len(index.latest),
            "by_type": dict(by_type),
            "patterns": len(index.patterns),
            "last_updated": index.records[-1].timestamp.isoformat() if index.records else None,
        }
