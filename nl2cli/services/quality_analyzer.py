"""Heuristic quality scoring of generated command candidates"""

import logging
import re

from nl2cli.models.command import QualityScore
from nl2cli.models.pipeline_config import QualityConfig
from nl2cli.models.provider import Provider, cli_command_for
from nl2cli.utils.command_text import command_tokens

logger = logging.getLogger(__name__)

DEFAULT_FORBIDDEN_PATTERNS = [
    # Destructive commands
    r"\brm\s+(?:-\S*[rRf]\S*\s+)+(?:/|~|\*)",
    r"\bmkfs(?:\.\w+)?\b",
    r"\bdd\s+if=",
    r":\(\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;\s*:",
    r">\s*/dev/sd[a-z]",
    r"\bchmod\s+(?:-\S+\s+)*777\s+/(?:\s|$)",
    # Prompt scaffolding echoed back by the model
    r"\b(?:Query|Answer|Command|Human|Assistant):",
    r"```",
    r"<\|",
    r"\[/?INST\]",
    r"===\s*(?:RELEVANT|END) DOCUMENTATION",
    r"PREVIOUS ATTEMPT",
]

_BRACKETS = {")": "(", "]": "[", "}": "{"}


def _balanced(candidate: str) -> bool:
    """Check quotes and brackets outside quotes are balanced, honouring backslash escapes"""
    stack: list[str] = []
    quote: str | None = None
    escaped = False

    for char in candidate:
        if escaped:
            escaped = False
            continue
        if char == "\\" and quote != "'":
            escaped = True
            continue
        if quote:
            if char == quote:
                quote = None
            continue
        if char in ("'", '"'):
            quote = char
        elif char in "([{":
            stack.append(char)
        elif char in _BRACKETS:
            if not stack or stack.pop() != _BRACKETS[char]:
                return False

    return quote is None and not stack and not escaped


class QualityAnalyzer:
    """Score candidate commands; pure and safe to share between requests"""

    def __init__(self, quality_config: QualityConfig | None = None):
        self.config = quality_config or QualityConfig()
        patterns = self.config.forbidden_patterns
        if patterns is None:
            patterns = DEFAULT_FORBIDDEN_PATTERNS
        self._forbidden = [re.compile(pattern) for pattern in patterns]

    def _syntax(self, candidate: str) -> tuple[float, str | None]:
        if not candidate.strip():
            return 0.0, "answer was empty"
        if "\n" in candidate or "\r" in candidate:
            return 0.0, "answer spans multiple lines; reply with a single command line"
        if not _balanced(candidate):
            return 0.0, "command has unbalanced quotes or brackets"
        return 1.0, None

    def _provider_prefix(
        self, tokens: list[str], provider_hint: Provider | str | None
    ) -> tuple[float, str | None]:
        executable = cli_command_for(provider_hint)
        if executable is None:
            return 0.5, "no provider hint to check the executable against"
        if tokens and tokens[0] == executable:
            return 1.0, None
        first = tokens[0] if tokens else ""
        return 0.0, f"command must start with '{executable}', got '{first}'"

    def _length(self, tokens: list[str]) -> tuple[float, str | None]:
        count = len(tokens)
        low, high = self.config.min_tokens, self.config.max_tokens
        if low <= count <= high:
            return 1.0, None
        if count < low:
            score = count / low
        else:
            score = max(0.0, 1.0 - (count - high) / self.config.length_decay_tokens)
        return score, f"command has {count} tokens, expected between {low} and {high}"

    def _forbidden_pattern(self, candidate: str) -> tuple[float, str | None]:
        for pattern in self._forbidden:
            match = pattern.search(candidate)
            if match:
                return 0.0, f"command contains a forbidden pattern: '{match.group(0).strip()}'"
        return 1.0, None

    def analyze(self, candidate: str, provider_hint: Provider | str | None = None) -> QualityScore:
        """
        Score a candidate command

        Args:
            candidate: Extracted command text
            provider_hint: Provider or executable the command should target

        Returns:
            QualityScore: Sub-scores, weighted aggregate and rejection reasons
        """
        tokens = command_tokens(candidate)
        syntax, syntax_reason = self._syntax(candidate)
        prefix, prefix_reason = self._provider_prefix(tokens, provider_hint)
        length, length_reason = self._length(tokens)
        forbidden, forbidden_reason = self._forbidden_pattern(candidate)

        weights = self.config.weights
        total_weight = (
            weights.syntax + weights.provider_prefix + weights.length + weights.forbidden_pattern
        )
        aggregate = (
            weights.syntax * syntax
            + weights.provider_prefix * prefix
            + weights.length * length
            + weights.forbidden_pattern * forbidden
        ) / total_weight
        aggregate = min(1.0, max(0.0, aggregate))
        if forbidden == 0.0 and weights.forbidden_pattern > 0:
            # A length gain from the same text must not offset a deny-list match
            ceiling = (
                self.config.acceptance_threshold
                * (total_weight - weights.forbidden_pattern)
                / total_weight
            )
            aggregate = min(aggregate, ceiling)

        reasons = [
            reason
            for reason in (syntax_reason, prefix_reason, length_reason, forbidden_reason)
            if reason
        ]
        score = QualityScore(
            syntax=syntax,
            provider_prefix=prefix,
            length=length,
            forbidden_pattern=forbidden,
            aggregate=aggregate,
            acceptable=aggregate >= self.config.acceptance_threshold,
            reasons=reasons,
        )
        logger.debug(f"Scored '{candidate[:80]}' at {aggregate:.2f}")
        return score
