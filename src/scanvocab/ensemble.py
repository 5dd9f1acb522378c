# -*- coding: utf-8 -*-
"""
Hybrid-mode merge of OCR and vision-model candidates.

Agreement between the two engines is the strongest precision signal, so
terms found by both always come first, then OCR-only, then LLM-only.
"""
import logging
from typing import Dict, Iterable, List, Sequence, Union

from scanvocab.config import (
    BUCKET_BOOSTS,
    MAX_WORDS_PER_IMAGE,
    SCORE_EXISTING_PENALTY,
    SCORE_JLPT,
    SCORE_KANJI,
    SCORE_LENGTH_CAP,
    SCORE_MEANING,
    SCORE_PER_CHAR,
    SCORE_READING,
)
from scanvocab.models import ExtractedWord
from scanvocab.script import has_kanji, is_valid_reading, normalize_term
from scanvocab.term_filter import should_reject

logger = logging.getLogger(__name__)

Candidate = Union[str, ExtractedWord]


def score_candidate(word: ExtractedWord, boost: float = 0.0, existing: bool = False) -> float:
    """Heuristic richness score of a candidate; higher is better."""
    score = boost
    if word.meaning:
        score += SCORE_MEANING
    if word.reading:
        score += SCORE_READING
    if has_kanji(word.term):
        score += SCORE_KANJI
    if word.jlpt_level is not None:
        score += SCORE_JLPT
    score += SCORE_PER_CHAR * min(len(word.term), SCORE_LENGTH_CAP)
    if existing:
        score -= SCORE_EXISTING_PENALTY
    return score


def merge_fields(ocr_word: ExtractedWord, llm_word: ExtractedWord) -> ExtractedWord:
    """Combine the two records of a term found by both engines."""
    if len(ocr_word.meaning) > len(llm_word.meaning):
        meaning = ocr_word.meaning
    else:
        meaning = llm_word.meaning

    if llm_word.reading and is_valid_reading(llm_word.reading):
        reading = llm_word.reading
    else:
        reading = ocr_word.reading or llm_word.reading

    jlpt_level = llm_word.jlpt_level if llm_word.jlpt_level is not None else ocr_word.jlpt_level

    return ExtractedWord(
        term=llm_word.term or ocr_word.term,
        reading=reading,
        meaning=meaning,
        jlpt_level=jlpt_level,
    )


def _as_words(candidates: Iterable[Candidate]) -> Dict[str, ExtractedWord]:
    """Keyed by normalized term, first occurrence wins, order kept; noise dropped."""
    words: Dict[str, ExtractedWord] = {}
    for candidate in candidates:
        word = ExtractedWord(candidate) if isinstance(candidate, str) else candidate
        key = normalize_term(word.term)
        if key and key not in words and not should_reject(key):
            words[key] = word
    return words


def _rank_bucket(words: List[ExtractedWord], bucket: str, existing: set) -> List[ExtractedWord]:
    boost = BUCKET_BOOSTS[bucket]
    # sorted() is stable: equal scores keep engine order
    return sorted(
        words,
        key=lambda w: score_candidate(w, boost, normalize_term(w.term) in existing),
        reverse=True,
    )


def merge_hybrid(
    ocr_words: Sequence[Candidate],
    llm_words: Sequence[Candidate],
    existing_terms: Iterable[str] = (),
    cap: int = MAX_WORDS_PER_IMAGE,
) -> List[ExtractedWord]:
    """
    Partition by term into both / OCR-only / LLM-only, rank each bucket on
    its own and concatenate in that order.

    Args:
        ocr_words: Ranked OCR-path terms (plain strings or enriched records)
        llm_words: Vision-model records after their own dedup
        existing_terms: Terms the user already owns (penalized, not removed)
        cap: Maximum number of merged records

    Returns:
        Merged records, at most `cap`
    """
    ocr = _as_words(ocr_words)
    llm = _as_words(llm_words)
    existing = {normalize_term(t) for t in existing_terms}

    both, ocr_only = [], []
    for key, word in ocr.items():
        if key in llm:
            both.append(merge_fields(word, llm[key]))
        else:
            ocr_only.append(word)
    llm_only = [word for key, word in llm.items() if key not in ocr]

    merged = (
        _rank_bucket(both, 'both', existing)
        + _rank_bucket(ocr_only, 'ocr', existing)
        + _rank_bucket(llm_only, 'llm', existing)
    )
    logger.info(
        "hybrid_merge both=%d ocr_only=%d llm_only=%d", len(both), len(ocr_only), len(llm_only),
    )
    return merged[:cap]
