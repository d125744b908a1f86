"""
Readability analysis.

Scores how each person writes (incoming) and how the archive owner writes
to them (outgoing) with the Flesch–Kincaid Grade Level:

    0.39 * (words / sentences) + 11.8 * (syllables / words) - 15.59

Counts are accumulated over all of a person's messages in one direction and
the score is computed once per (person, direction), not per message, so
short messages do not dominate.

Counting rules:
    - sentences: non-empty segments after splitting on . ! ? and newline
    - words: whitespace-delimited tokens
    - syllables: runs of vowels (a e i o u y, any case); at least 1 per word
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from imessage_insights.aggregation import Direction

logger = logging.getLogger(__name__)

VOWELS = frozenset("aeiouyAEIOUY")
SENTENCE_SPLIT_PATTERN = re.compile(r"[.!?\n]")

DEFAULT_MIN_WORDS = 50
DEFAULT_TOP_N = 5
DEFAULT_PROLIFIC_N = 10


def count_syllables(word: str) -> int:
    """
    Count vowel runs in a word, with a floor of 1.

    Examples:
        >>> count_syllables("queue")
        1
        >>> count_syllables("beautiful")
        3
        >>> count_syllables("")
        1
    """
    count = 0
    last_was_vowel = False
    for char in word:
        is_vowel = char in VOWELS
        if is_vowel and not last_was_vowel:
            count += 1
        last_was_vowel = is_vowel
    return max(1, count)


def count_sentences(text: str) -> int:
    """Count non-empty segments between sentence terminators and newlines."""
    return sum(1 for segment in SENTENCE_SPLIT_PATTERN.split(text) if segment.strip())


def split_words(text: str) -> List[str]:
    """Split text into whitespace-delimited tokens."""
    return text.split()


def flesch_kincaid_grade(words: int, syllables: int, sentences: int) -> float:
    """
    Compute the Flesch–Kincaid Grade Level.

    Raises:
        ValueError: If words or sentences is not positive.
    """
    if words <= 0 or sentences <= 0:
        raise ValueError("words and sentences must be positive")
    return 0.39 * (words / sentences) + 11.8 * (syllables / words) - 15.59


@dataclass(frozen=True)
class TextCounts:
    """Word, syllable and sentence counts of a piece of text."""

    words: int = 0
    syllables: int = 0
    sentences: int = 0

    @classmethod
    def of(cls, text: str) -> "TextCounts":
        words = split_words(text)
        return cls(
            words=len(words),
            syllables=sum(count_syllables(word) for word in words),
            sentences=count_sentences(text),
        )

    def __add__(self, other: "TextCounts") -> "TextCounts":
        return TextCounts(
            words=self.words + other.words,
            syllables=self.syllables + other.syllables,
            sentences=self.sentences + other.sentences,
        )


@dataclass(frozen=True)
class ReadabilityRecord:
    """Accumulated readability of one person in one direction."""

    person: str
    direction: Direction
    words: int
    syllables: int
    sentences: int
    score: float


class ReadabilityAccumulator:
    """Accumulates text counts per (person, direction) in encounter order."""

    def __init__(self) -> None:
        self._tallies: Dict[Tuple[str, Direction], TextCounts] = {}

    def add(self, person: str, direction: Direction, text: str) -> TextCounts:
        """Add one message's text; returns the counts it contributed."""
        counts = TextCounts.of(text)
        key = (person, direction)
        self._tallies[key] = self._tallies.get(key, TextCounts()) + counts
        return counts

    def __len__(self) -> int:
        return len(self._tallies)

    def records(self) -> List[ReadabilityRecord]:
        """
        Score every bucket with words > 0 and sentences > 0.

        Returns:
            Records in first-encounter order of (person, direction).
        """
        records = []
        for (person, direction), tally in self._tallies.items():
            if tally.words <= 0 or tally.sentences <= 0:
                continue
            records.append(
                ReadabilityRecord(
                    person=person,
                    direction=direction,
                    words=tally.words,
                    syllables=tally.syllables,
                    sentences=tally.sentences,
                    score=flesch_kincaid_grade(tally.words, tally.syllables, tally.sentences),
                )
            )
        return records


def build_readability_lookup(
    records: Iterable[ReadabilityRecord],
) -> Dict[str, Dict[Direction, ReadabilityRecord]]:
    """Index records as person → direction → record."""
    lookup: Dict[str, Dict[Direction, ReadabilityRecord]] = {}
    for record in records:
        lookup.setdefault(record.person, {})[record.direction] = record
    return lookup


@dataclass(frozen=True)
class DirectionRankings:
    """Precomputed readability rankings for one direction."""

    top: Tuple[ReadabilityRecord, ...] = ()
    bottom: Tuple[ReadabilityRecord, ...] = ()
    most_prolific: Tuple[ReadabilityRecord, ...] = ()


@dataclass(frozen=True)
class ReadabilityRankings:
    """Rankings for both directions."""

    incoming: DirectionRankings = field(default_factory=DirectionRankings)
    outgoing: DirectionRankings = field(default_factory=DirectionRankings)

    def for_direction(self, direction: Direction) -> DirectionRankings:
        return self.incoming if direction is Direction.INCOMING else self.outgoing


def rank_direction(
    records: Iterable[ReadabilityRecord],
    direction: Direction,
    *,
    min_words: int = DEFAULT_MIN_WORDS,
    top_n: int = DEFAULT_TOP_N,
    prolific_n: int = DEFAULT_PROLIFIC_N,
) -> DirectionRankings:
    """
    Rank one direction's records.

    top/bottom only consider records with at least `min_words` words;
    most_prolific considers every record. Sorts are stable, so ties keep
    encounter order.
    """
    in_direction = [r for r in records if r.direction is direction]
    eligible = [r for r in in_direction if r.words >= min_words]

    return DirectionRankings(
        top=tuple(sorted(eligible, key=lambda r: r.score, reverse=True)[:top_n]),
        bottom=tuple(sorted(eligible, key=lambda r: r.score)[:top_n]),
        most_prolific=tuple(sorted(in_direction, key=lambda r: r.words, reverse=True)[:prolific_n]),
    )


def compute_rankings(
    records: List[ReadabilityRecord],
    *,
    min_words: int = DEFAULT_MIN_WORDS,
    top_n: int = DEFAULT_TOP_N,
    prolific_n: int = DEFAULT_PROLIFIC_N,
) -> ReadabilityRankings:
    """Compute top, bottom and most-prolific lists for both directions."""
    options = dict(min_words=min_words, top_n=top_n, prolific_n=prolific_n)
    return ReadabilityRankings(
        incoming=rank_direction(records, Direction.INCOMING, **options),
        outgoing=rank_direction(records, Direction.OUTGOING, **options),
    )


def score_for(
    lookup: Dict[str, Dict[Direction, ReadabilityRecord]],
    person: str,
    direction: Direction,
) -> Optional[float]:
    """Get a person's score in one direction, or None if not scored."""
    record = lookup.get(person, {}).get(direction)
    return record.score if record else None
