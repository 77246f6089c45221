"""Rule-based intent classification.

Maps request text to a ranked pair of task categories. Two independent
signals contribute to each category:

- Pattern banks: each matching regular expression adds 0.2, capped at 1.0
- Keyword boosts: a flat 0.3 when any trigger keyword is present

The signals deliberately overlap ("debug" is both a code pattern and a code
keyword): a request matching both is reinforced rather than deduplicated.
``conversation`` carries a constant 0.3 baseline so there is always a
sensible default when nothing else fires.
"""

from __future__ import annotations

import re

import structlog

from src.agent.model_router.types import Intent, IntentType

log = structlog.get_logger(__name__)

PATTERN_INCREMENT = 0.2
KEYWORD_BOOST = 0.3
CONVERSATION_BASELINE = 0.3
MAX_KEYWORDS = 20

STOP_WORDS = frozenset({"the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for"})

# Category -> (bank name, patterns). Dict order is the tie-break order.
PATTERN_BANKS: dict[IntentType, tuple[str, tuple[re.Pattern[str], ...]]] = {
    IntentType.CODE_GENERATION: (
        "code",
        tuple(
            re.compile(p)
            for p in (
                r"write.*code",
                r"function",
                r"class",
                r"implement",
                r"refactor",
                r"bug",
                r"debug",
                r"```",
                r"algorithm",
            )
        ),
    ),
    IntentType.REASONING: (
        "reasoning",
        tuple(
            re.compile(p)
            for p in (
                r"analyze",
                r"explain",
                r"why",
                r"how.*work",
                r"reasoning",
                r"logic",
                r"think",
                r"deduce",
            )
        ),
    ),
    IntentType.MATH: (
        "math",
        tuple(
            re.compile(p)
            for p in (
                r"calculate",
                r"solve.*equation",
                r"math",
                r"formula",
                r"integral",
                r"derivative",
                r"probability",
            )
        ),
    ),
    IntentType.CREATIVE_WRITING: (
        "creative",
        tuple(
            re.compile(p)
            for p in (
                r"write.*story",
                r"creative",
                r"poem",
                r"fictional",
                r"imagine",
                r"brainstorm",
            )
        ),
    ),
    IntentType.RESEARCH: (
        "research",
        tuple(
            re.compile(p)
            for p in (
                r"research",
                r"find.*information",
                r"latest",
                r"current",
                r"news",
                r"what.*is",
            )
        ),
    ),
}

KEYWORD_BOOSTS: dict[IntentType, frozenset[str]] = {
    IntentType.CODE_GENERATION: frozenset({"code", "function", "class", "debug"}),
    IntentType.REASONING: frozenset({"explain", "analyze", "why", "how"}),
    IntentType.MATH: frozenset({"math", "calculate", "solve"}),
}

_WORD_RE = re.compile(r"\b\w+\b")


class IntentClassifier:
    """Heuristic classifier over a fixed bank of patterns and keywords."""

    def classify(self, request_text: str, history_length: int = 0) -> Intent:
        """Classify request text into a primary and secondary intent.

        Never raises: empty or unrecognised text yields ``conversation``.

        Args:
            request_text: The latest user message
            history_length: Number of messages in the conversation (diagnostic only)

        Returns:
            Intent with confidence = top / (top + second)
        """
        text = (request_text or "").lower()
        keywords = self.extract_keywords(text)
        keyword_set = set(keywords)

        scores: dict[IntentType, float] = {}
        fired: list[str] = []
        for intent_type, (bank_name, patterns) in PATTERN_BANKS.items():
            score = self._score_patterns(text, patterns)
            if score > 0:
                fired.append(bank_name)
            scores[intent_type] = score
        scores[IntentType.CONVERSATION] = CONVERSATION_BASELINE

        for intent_type, triggers in KEYWORD_BOOSTS.items():
            if keyword_set & triggers:
                scores[intent_type] += KEYWORD_BOOST

        # sorted() is stable, so equal scores keep the bank order above
        ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
        (primary, top), (secondary, second) = ranked[0], ranked[1]
        total = top + second
        confidence = top / total if total > 0 else 0.5

        log.debug(
            "intent_classifier.classified",
            primary=primary.value,
            secondary=secondary.value,
            confidence=round(confidence, 4),
            history_length=history_length,
            patterns=fired,
        )

        return Intent(
            primary=primary,
            secondary=secondary,
            confidence=confidence,
            keywords=keywords,
            patterns=fired,
            scores={k.value: v for k, v in scores.items()},
        )

    @staticmethod
    def extract_keywords(text: str) -> list[str]:
        """Lower-cased words longer than 3 characters, stop words removed, max 20."""
        words = _WORD_RE.findall(text.lower())
        return [w for w in words if w not in STOP_WORDS and len(w) > 3][:MAX_KEYWORDS]

    @staticmethod
    def _score_patterns(text: str, patterns: tuple[re.Pattern[str], ...]) -> float:
        score = sum(PATTERN_INCREMENT for pattern in patterns if pattern.search(text))
        return min(score, 1.0)
