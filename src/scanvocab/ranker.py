# -*- coding: utf-8 -*-
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Tuple

from scanvocab.combiner import ScoredToken
from scanvocab.config import MAX_WORDS_PER_IMAGE
from scanvocab.script import (
    has_kanji,
    is_hiragana_only,
    is_katakana_only,
    normalize_term,
)
from scanvocab.term_filter import classify

logger = logging.getLogger(__name__)


@dataclass
class RankStats:
    """Diagnostic counters for one ranking pass. Not user facing."""
    unique_count: int = 0
    by_length: List[str] = field(default_factory=list)
    by_pattern: List[str] = field(default_factory=list)
    by_fragment: List[str] = field(default_factory=list)
    by_cap: List[str] = field(default_factory=list)
    reason_counts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            'unique_count': self.unique_count,
            'rejected_by_length': len(self.by_length),
            'rejected_by_pattern': len(self.by_pattern) + len(self.by_fragment),
            'rejected_by_cap': len(self.by_cap),
            'reason_counts': dict(self.reason_counts),
        }


@dataclass
class RankResult:
    terms: List[str]
    stats: RankStats


def best_confidences(tokens: Iterable[ScoredToken]) -> Dict[str, float]:
    """Group by normalized text, keeping the highest confidence seen."""
    best: Dict[str, float] = {}
    for token in tokens:
        text = normalize_term(token.text)
        if not text:
            continue
        previous = best.get(text)
        if previous is None or token.confidence > previous:
            best[text] = token.confidence
    return best


def is_suppressed_fragment(token: str, survivors: Iterable[str]) -> bool:
    """
    True if a strictly longer survivor contains `token` and the token is a
    leftover piece: a single character, short kana (<=3), or a kanji chunk
    of <=2 characters inside a survivor of 3+ characters.
    """
    for candidate in survivors:
        if len(candidate) <= len(token) or token not in candidate:
            continue

        if len(token) == 1:
            return True

        short_kana = (is_katakana_only(token) or is_hiragana_only(token)) and len(token) <= 3
        if short_kana:
            return True

        short_kanji_chunk = len(token) <= 2 and has_kanji(token)
        if short_kanji_chunk and len(candidate) >= 3:
            return True

    return False


def sort_key(entry: Tuple[str, float]):
    """Confidence desc, kanji-bearing first on a tie, then longer first."""
    text, confidence = entry
    return (-confidence, 0 if has_kanji(text) else 1, -len(text))


def rank_and_dedup(tokens: Sequence[ScoredToken], cap: int = MAX_WORDS_PER_IMAGE) -> RankResult:
    """
    Collapse scored tokens from every variant into a capped term list.

    Args:
        tokens: Primitive and combined tokens for one image
        cap: Maximum number of terms to return

    Returns:
        RankResult with ordered terms and rejection diagnostics
    """
    best = best_confidences(tokens)
    stats = RankStats(unique_count=len(best))
    reasons: Counter = Counter()

    candidates: List[Tuple[str, float]] = []
    for text, confidence in best.items():
        # Single characters only survive as kanji
        if len(text) < 2 and not has_kanji(text):
            stats.by_length.append(text)
            continue
        reason = classify(text)
        if reason is not None:
            stats.by_pattern.append(text)
            reasons[reason.value] += 1
            continue
        candidates.append((text, confidence))

    survivors = [text for text, _ in candidates]
    compact = []
    for text, confidence in candidates:
        if is_suppressed_fragment(text, survivors):
            stats.by_fragment.append(text)
        else:
            compact.append((text, confidence))

    compact.sort(key=sort_key)
    stats.by_cap = [text for text, _ in compact[cap:]]
    stats.reason_counts = dict(reasons)

    return RankResult([text for text, _ in compact[:cap]], stats)


def log_rank_result(result: RankResult, variant_count: int, total_detected: int) -> None:
    stats = result.stats
    logger.info(
        "raw_tokens variant_count=%d total_detected=%d unique_count=%d",
        variant_count, total_detected, stats.unique_count,
    )
    logger.info(
        "processed_tokens kept=%d rejected=%d by_length=%d by_pattern=%d by_cap=%d reasons=%s",
        len(result.terms),
        stats.unique_count - len(result.terms),
        len(stats.by_length),
        len(stats.by_pattern) + len(stats.by_fragment),
        len(stats.by_cap),
        stats.reason_counts,
    )
    logger.debug("processed_tokens terms=%s", result.terms)
