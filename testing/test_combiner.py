# -*- coding: utf-8 -*-
import pytest

from scanvocab.combiner import (
    ScoredToken,
    collect_scored_tokens,
    combine_kanji,
    combine_kanji_hiragana,
    combine_katakana,
    combine_line,
    line_tokens,
)


def _texts(tokens):
    return [t.text for t in tokens]


def _conf(tokens, text):
    return next(t.confidence for t in tokens if t.text == text)


def test_line_tokens_apply_weight_and_drop_latin():
    tokens = line_tokens([('ABC', 99.0), ('x学校y', 80.0)], 0.5)
    assert _texts(tokens) == ['学校']
    assert tokens[0].confidence == pytest.approx(40.0)


def test_katakana_pair_is_joined():
    scored = combine_line([('フレ', 90.0), ('ッシュ', 80.0)], 1.0)
    assert _texts(scored) == ['フレ', 'ッシュ', 'フレッシュ']
    assert _conf(scored, 'フレッシュ') == pytest.approx(85.0 * 0.9)


def test_katakana_triple_is_joined():
    tokens = [ScoredToken('フル', 90.0), ScoredToken('ーテ', 90.0), ScoredToken('ィー', 90.0)]
    combined = combine_katakana(tokens)
    assert 'フルーティー' in _texts(combined)
    assert _conf(combined, 'フルーティー') == pytest.approx(90.0 * 0.85)


def test_katakana_pair_too_short_is_skipped():
    tokens = [ScoredToken('ア', 90.0), ScoredToken('イ', 90.0)]
    assert combine_katakana(tokens) == []


def test_kanji_chain_up_to_four():
    tokens = [ScoredToken(c, 100.0) for c in '世界遺産']
    combined = combine_kanji(tokens)
    assert _texts(combined) == ['世界', '世界遺', '世界遺産', '界遺', '界遺産', '遺産']
    assert _conf(combined, '世界') == pytest.approx(95.0)
    assert _conf(combined, '世界遺') == pytest.approx(90.0)
    assert _conf(combined, '世界遺産') == pytest.approx(85.0)


def test_kanji_hiragana_joins():
    tokens = [ScoredToken('眺', 100.0), ScoredToken('め', 100.0), ScoredToken('ながら', 100.0)]
    combined = combine_kanji_hiragana(tokens)
    assert _conf(combined, '眺め') == pytest.approx(93.0)
    assert _conf(combined, '眺めながら') == pytest.approx(88.0)


def test_kanji_hiragana_kanji_join():
    tokens = [ScoredToken('亀', 100.0), ScoredToken('の', 100.0), ScoredToken('海', 100.0)]
    combined = combine_kanji_hiragana(tokens)
    assert _conf(combined, '亀の海') == pytest.approx(90.0)


def test_long_hiragana_tail_is_not_joined():
    tokens = [ScoredToken('眺', 100.0), ScoredToken('めながらも', 100.0)]
    assert combine_kanji_hiragana(tokens) == []


def test_lines_are_not_joined_across():
    scored = collect_scored_tokens([[('学', 90.0)], [('校', 90.0)]], 1.0)
    assert '学校' not in _texts(scored)


def test_originals_are_always_kept():
    scored = collect_scored_tokens([[('学', 90.0), ('校', 90.0)]], 1.0)
    assert _texts(scored)[:2] == ['学', '校']
    assert '学校' in _texts(scored)
