"""Capitalisation-pattern mention detection.

Scans a single segment for candidate named references:

- CAPITALIZED: runs of capitalised words ("Alice Smith"), filtered against a
  closed stop-word class and a sentence-start heuristic
- ACRONYM: runs of three or more uppercase letters ("FBI")

Both patterns run independently over the raw segment text. Overlapping spans
from different patterns are both kept; only identical spans are deduplicated.
Detection never touches the database: mentions come back transient and
unresolved, and the caller decides when to persist them.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID, uuid4

from canonlink.detection.stopwords import is_stop_phrase
from canonlink.models.enums import MentionPattern, ResolutionStatus
from canonlink.models.mention import EntityMention

logger = logging.getLogger(__name__)

# Segments shorter than this produce no mentions
MIN_SEGMENT_LENGTH = 3

CAPITALIZED_RUN = re.compile(r"\b[A-Z][a-z]+(?: [A-Z][a-z]+)*\b")
ACRONYM_RUN = re.compile(r"\b[A-Z]{2,}\b")
MIN_ACRONYM_LENGTH = 3

# Sentence-start heuristic: how far back to look for a terminator
SENTENCE_START_WINDOW = 3
SENTENCE_TERMINATORS = (". ", "! ", "? ", "\n")
POSSESSIVE_MARKERS = ("'s", "’s")

BASE_CONFIDENCE = 0.6
MULTIWORD_BONUS = 0.2
MID_SENTENCE_BONUS = 0.1
POSSESSIVE_BONUS = 0.1
ACRONYM_CONFIDENCE = 0.8


class SegmentLike(Protocol):
    """Anything carrying a segment id and its text (ORM Segment, test doubles)."""

    segment_id: UUID
    text: str


@dataclass(frozen=True)
class SpanCandidate:
    """A surface form found by one detection pattern, before deduplication."""

    start: int
    end: int
    surface_form: str
    confidence: float
    pattern: MentionPattern


def is_sentence_start(text: str, position: int) -> bool:
    """Heuristic: does the character at ``position`` open a sentence?

    True at the very start of the segment, or when the three characters before
    it contain a terminator followed by a space, or a newline.
    """
    if position < SENTENCE_START_WINDOW:
        return True
    preceding = text[position - SENTENCE_START_WINDOW : position]
    return any(marker in preceding for marker in SENTENCE_TERMINATORS)


def capitalized_confidence(text: str, start: int, end: int, word_count: int) -> float:
    """Confidence for a capitalised run, capped at 1.0."""
    confidence = BASE_CONFIDENCE
    if word_count >= 2:
        confidence += MULTIWORD_BONUS
    if not is_sentence_start(text, start):
        confidence += MID_SENTENCE_BONUS
    if text.startswith(POSSESSIVE_MARKERS, end):
        confidence += POSSESSIVE_BONUS
    return round(min(confidence, 1.0), 4)


def find_capitalized(text: str) -> list[SpanCandidate]:
    candidates: list[SpanCandidate] = []
    for match in CAPITALIZED_RUN.finditer(text):
        surface_form = match.group()
        start, end = match.span()
        if is_stop_phrase(surface_form):
            continue

        word_count = len(surface_form.split(" "))
        # A lone capitalised word opening a sentence is usually just capitalised;
        # a multi-word run there still reads as a name ("Alice Smith walked...")
        if word_count == 1 and is_sentence_start(text, start):
            continue

        candidates.append(
            SpanCandidate(
                start=start,
                end=end,
                surface_form=surface_form,
                confidence=capitalized_confidence(text, start, end, word_count),
                pattern=MentionPattern.CAPITALIZED,
            )
        )
    return candidates


def find_acronyms(text: str) -> list[SpanCandidate]:
    return [
        SpanCandidate(
            start=match.start(),
            end=match.end(),
            surface_form=match.group(),
            confidence=ACRONYM_CONFIDENCE,
            pattern=MentionPattern.ACRONYM,
        )
        for match in ACRONYM_RUN.finditer(text)
        if len(match.group()) >= MIN_ACRONYM_LENGTH
    ]


def deduplicate_spans(candidates: Iterable[SpanCandidate]) -> list[SpanCandidate]:
    """Keep one candidate per identical span (highest confidence), ordered by start."""
    best: dict[tuple[int, int], SpanCandidate] = {}
    for candidate in candidates:
        key = (candidate.start, candidate.end)
        current = best.get(key)
        if current is None or candidate.confidence > current.confidence:
            best[key] = candidate
    return sorted(best.values(), key=lambda c: (c.start, c.end))


class MentionDetector:
    """Detect unresolved entity mentions in text segments.

    Usage:
        detector = MentionDetector()
        mentions = detector.detect_batch(segments, universe_id)
    """

    def find_candidates(self, text: str) -> list[SpanCandidate]:
        """Run both patterns over ``text`` and return deduplicated candidates."""
        if not text or not text.strip() or len(text) < MIN_SEGMENT_LENGTH:
            return []
        return deduplicate_spans([*find_capitalized(text), *find_acronyms(text)])

    def detect(self, segment: SegmentLike, universe_id: UUID) -> list[EntityMention]:
        """Detect mentions in a single segment.

        Args:
            segment: The segment to scan. Its text is read, never modified.
            universe_id: Tenant the mentions belong to.

        Returns:
            Transient UNRESOLVED mentions ordered by span start.
        """
        mentions = [
            EntityMention(
                mention_id=uuid4(),
                universe_id=universe_id,
                segment_id=segment.segment_id,
                entity_id=None,
                surface_form=candidate.surface_form,
                span_start=candidate.start,
                span_end=candidate.end,
                confidence=candidate.confidence,
                pattern=candidate.pattern,
                resolution_status=ResolutionStatus.UNRESOLVED,
            )
            for candidate in self.find_candidates(segment.text)
        ]
        logger.debug("Detected %d mention(s) in segment %s", len(mentions), segment.segment_id)
        return mentions

    def detect_batch(
        self, segments: Iterable[SegmentLike], universe_id: UUID
    ) -> list[EntityMention]:
        """Detect mentions across segments, concatenated in segment order."""
        mentions: list[EntityMention] = []
        for segment in segments:
            mentions.extend(self.detect(segment, universe_id))
        return mentions
