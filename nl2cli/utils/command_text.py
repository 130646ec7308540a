"""Text helpers for queries and generated commands"""

import re

_WORD_PATTERN = re.compile(r"[a-z0-9]+(?:[-_.][a-z0-9]+)*")
_FENCE_PATTERN = re.compile(r"```[a-zA-Z0-9_-]*\n?(.*?)(?:```|$)", re.DOTALL)
_ANSWER_PREFIX = re.compile(r"^\s*(?:answer|command)\s*:\s*", re.IGNORECASE)
_SHELL_PROMPT = re.compile(r"^\$\s+")


def normalize_query(text: str) -> str:
    """Lowercase, trim and collapse internal whitespace"""
    return " ".join(text.lower().split())


def query_words(text: str) -> set[str]:
    """Distinct words of a query after normalisation, ignoring punctuation"""
    return set(_WORD_PATTERN.findall(normalize_query(text)))


def command_tokens(command: str) -> list[str]:
    """Whitespace-separated tokens of a command line"""
    return command.split()


def _clean_line(line: str) -> str:
    line = _ANSWER_PREFIX.sub("", line.strip())
    line = _SHELL_PROMPT.sub("", line)
    # Inline code spans such as `aws s3 ls`
    if len(line) > 1 and line.startswith("`") and line.endswith("`"):
        line = line.strip("`").strip()
    return line


def extract_command(raw_text: str, executable: str | None = None) -> str:
    """
    Pull a single command line out of raw model output

    Unwraps code fences, drops answer prefixes and anything from an echoed
    "Query:" onwards, then prefers the first line starting with the expected
    executable, falling back to the first non-empty line.

    Returns:
        str: The command, or "" if the text holds nothing usable
    """
    text = raw_text.strip()

    fence = _FENCE_PATTERN.search(text)
    if fence and fence.group(1).strip():
        text = fence.group(1)

    text = _ANSWER_PREFIX.sub("", text)
    query_pos = text.find("Query:")
    if query_pos != -1:
        text = text[:query_pos]

    lines = [line for line in (_clean_line(raw) for raw in text.splitlines()) if line]
    if not lines:
        return ""

    if executable:
        for line in lines:
            if line.split()[0] == executable:
                return line
    return lines[0]
