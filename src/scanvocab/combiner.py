# -*- coding: utf-8 -*-
"""
Rebuilds words that OCR over-splits.

OCR tends to emit Japanese as single glyphs or broken katakana syllables
(フレ + ッシュ, 世 + 界). Within one recognized line, adjacent tokens are
concatenated into extra candidates; the originals are always kept so the
ranker can pick whichever form survives filtering.
"""
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from scanvocab.config import (
    KANJI_CHAIN_DISCOUNTS,
    KANJI_HIRAGANA_DISCOUNT,
    KANJI_HIRAGANA_EXTENDED_DISCOUNT,
    KANJI_HIRAGANA_KANJI_DISCOUNT,
    KATAKANA_PAIR_DISCOUNT,
    KATAKANA_PAIR_LENGTH,
    KATAKANA_TRIPLE_DISCOUNT,
    KATAKANA_TRIPLE_LENGTH,
    MAX_HIRAGANA_JOINER,
    MAX_HIRAGANA_TAIL,
)
from scanvocab.script import (
    has_japanese,
    has_kanji,
    is_hiragana_only,
    is_katakana_only,
    is_single_kanji,
    japanese_runs,
)


@dataclass
class ScoredToken:
    """A candidate string with its weighted OCR confidence."""
    text: str
    confidence: float


def _join(tokens: Sequence[ScoredToken], discount: float) -> ScoredToken:
    text = ''.join(t.text for t in tokens)
    average = sum(t.confidence for t in tokens) / len(tokens)
    return ScoredToken(text, average * discount)


def line_tokens(words: Iterable[Tuple[str, float]], weight: float) -> List[ScoredToken]:
    """
    Primitive tokens for one recognized line.

    Words without any Japanese character are dropped; the rest are split
    into kana/kanji runs, each inheriting the word's confidence times the
    variant weight.
    """
    tokens = []
    for text, confidence in words:
        if not has_japanese(text):
            continue
        for run in japanese_runs(text):
            tokens.append(ScoredToken(run, confidence * weight))
    return tokens


def combine_katakana(tokens: Sequence[ScoredToken]) -> List[ScoredToken]:
    """フレ + ッシュ -> フレッシュ, フル + ーテ + ィー -> フルーティー"""
    combined = []
    for i in range(len(tokens) - 1):
        current, following = tokens[i], tokens[i + 1]
        if not (is_katakana_only(current.text) and is_katakana_only(following.text)):
            continue

        pair = _join((current, following), KATAKANA_PAIR_DISCOUNT)
        low, high = KATAKANA_PAIR_LENGTH
        if low <= len(pair.text) <= high:
            combined.append(pair)

        if i + 2 < len(tokens) and is_katakana_only(tokens[i + 2].text):
            triple = _join((current, following, tokens[i + 2]), KATAKANA_TRIPLE_DISCOUNT)
            low, high = KATAKANA_TRIPLE_LENGTH
            if low <= len(triple.text) <= high:
                combined.append(triple)
    return combined


def combine_kanji(tokens: Sequence[ScoredToken]) -> List[ScoredToken]:
    """世 + 界 -> 世界; chains of up to four single kanji."""
    combined = []
    for i in range(len(tokens) - 1):
        if not (is_single_kanji(tokens[i].text) and is_single_kanji(tokens[i + 1].text)):
            continue
        combined.append(_join(tokens[i:i + 2], KANJI_CHAIN_DISCOUNTS[2]))

        if i + 2 < len(tokens) and is_single_kanji(tokens[i + 2].text):
            combined.append(_join(tokens[i:i + 3], KANJI_CHAIN_DISCOUNTS[3]))
            if i + 3 < len(tokens) and is_single_kanji(tokens[i + 3].text):
                combined.append(_join(tokens[i:i + 4], KANJI_CHAIN_DISCOUNTS[4]))
    return combined


def combine_kanji_hiragana(tokens: Sequence[ScoredToken]) -> List[ScoredToken]:
    """眺 + め -> 眺め, 眺め + ながら -> 眺めながら, 亀 + の + 海 -> 亀の海"""
    combined = []
    for i in range(len(tokens) - 1):
        first, second = tokens[i], tokens[i + 1]
        short_tail = is_hiragana_only(second.text) and len(second.text) <= MAX_HIRAGANA_TAIL
        if not (has_kanji(first.text) and short_tail):
            continue
        combined.append(_join((first, second), KANJI_HIRAGANA_DISCOUNT))

        if i + 2 < len(tokens):
            third = tokens[i + 2]
            if is_hiragana_only(third.text) and len(third.text) <= MAX_HIRAGANA_TAIL:
                combined.append(_join((first, second, third), KANJI_HIRAGANA_EXTENDED_DISCOUNT))
            if has_kanji(third.text) and len(second.text) <= MAX_HIRAGANA_JOINER:
                combined.append(_join((first, second, third), KANJI_HIRAGANA_KANJI_DISCOUNT))
    return combined


def combine_line(words: Iterable[Tuple[str, float]], weight: float) -> List[ScoredToken]:
    """Primitive tokens of one line followed by every synthesized combination."""
    tokens = line_tokens(words, weight)
    scored = list(tokens)
    scored.extend(combine_katakana(tokens))
    scored.extend(combine_kanji(tokens))
    scored.extend(combine_kanji_hiragana(tokens))
    return scored


def collect_scored_tokens(lines: Iterable[Iterable[Tuple[str, float]]], weight: float) -> List[ScoredToken]:
    """
    Run the combiner over every recognized line of one image variant.

    Args:
        lines: Lines of (word text, engine confidence) pairs
        weight: Reliability weight of the variant the lines came from

    Returns:
        All primitive and combined tokens, in line order
    """
    scored: List[ScoredToken] = []
    for words in lines:
        scored.extend(combine_line(words, weight))
    return scored
