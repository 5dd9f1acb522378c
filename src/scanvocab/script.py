# -*- coding: utf-8 -*-
"""
Script-membership helpers for Japanese text.

Character classes are kept as plain strings so the noise rules in
term_filter can splice them into larger patterns.
"""
import re
import unicodedata
from typing import List

HIRAGANA = '\u3040-\u309f'
KATAKANA = '\u30a0-\u30ff'
KANJI = '\u4e00-\u9fff\u3400-\u4dbf'
JAPANESE = HIRAGANA + KATAKANA + KANJI

# Affix-like marks OCR attaches to terms: tildes, hyphens, long-vowel marks, middle dots
MARKS = '~～〜\\-ーｰ・･·.'

_JAPANESE_CHAR = re.compile(f'[{JAPANESE}]')
_JAPANESE_RUN = re.compile(f'[{JAPANESE}]+')
_KANJI_CHAR = re.compile(f'[{KANJI}]')
_SINGLE_KANJI = re.compile(f'^[{KANJI}]$')
_HIRAGANA_ONLY = re.compile(f'^[{HIRAGANA}]+$')
_KATAKANA_ONLY = re.compile(f'^[{KATAKANA}]+$')
_READING = re.compile(f'^[{HIRAGANA}ー]+$')
_MARK_CHAR = re.compile(f'[{MARKS}]')
_WHITESPACE = re.compile(r'\s+')


def normalize_term(term: str) -> str:
    """NFKC-normalize, trim and drop internal whitespace."""
    return _WHITESPACE.sub('', unicodedata.normalize('NFKC', term or '').strip())


def has_japanese(text: str) -> bool:
    return bool(_JAPANESE_CHAR.search(text))


def has_kanji(text: str) -> bool:
    return bool(_KANJI_CHAR.search(text))


def is_single_kanji(text: str) -> bool:
    return bool(_SINGLE_KANJI.match(text))


def is_hiragana_only(text: str) -> bool:
    return bool(_HIRAGANA_ONLY.match(text))


def is_katakana_only(text: str) -> bool:
    return bool(_KATAKANA_ONLY.match(text))


def has_mark_chars(term: str) -> bool:
    return bool(_MARK_CHAR.search(term))


def japanese_runs(text: str) -> List[str]:
    """Split text into maximal runs of kana/kanji, dropping everything else."""
    return _JAPANESE_RUN.findall(text or '')


def is_valid_reading(reading: str) -> bool:
    """True if the reading is hiragana (plus the long-vowel mark) only."""
    normalized = normalize_term(reading)
    if not normalized:
        return False
    return bool(_READING.match(normalized))


def to_hiragana(text: str) -> str:
    """Convert katakana to hiragana."""
    result = []
    for char in text:
        if 'ァ' <= char <= 'ヶ':
            # Katakana to hiragana: subtract 0x60
            result.append(chr(ord(char) - 0x60))
        else:
            result.append(char)
    return ''.join(result)


def to_katakana(text: str) -> str:
    """Convert hiragana to katakana."""
    result = []
    for char in text:
        if 'ぁ' <= char <= 'ゖ':
            # Hiragana to katakana: add 0x60
            result.append(chr(ord(char) + 0x60))
        else:
            result.append(char)
    return ''.join(result)
