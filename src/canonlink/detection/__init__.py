"""Mention detection module for canonlink.

Main entry point:
    from canonlink.detection import MentionDetector

    detector = MentionDetector()
    mentions = detector.detect(segment, universe_id)
"""

from canonlink.detection.detector import MentionDetector, SpanCandidate, is_sentence_start
from canonlink.detection.stopwords import STOP_WORDS, is_stop_phrase

__all__ = [
    "MentionDetector",
    "STOP_WORDS",
    "SpanCandidate",
    "is_sentence_start",
    "is_stop_phrase",
]
