# -*- coding: utf-8 -*-
import pytest

from scanvocab.ensemble import merge_fields, merge_hybrid, score_candidate
from scanvocab.models import ExtractedWord


def test_score_candidate_weights():
    word = ExtractedWord('学校', 'がっこう', 'school', 5)
    assert score_candidate(word) == pytest.approx(3 + 2 + 1 + 1 + 0.2)
    assert score_candidate(word, boost=3.0) == pytest.approx(10.2)
    assert score_candidate(word, existing=True) == pytest.approx(2.2)


def test_score_length_bonus_is_capped():
    long_word = ExtractedWord('アイウエオカキクケコサシ')
    assert score_candidate(long_word) == pytest.approx(1.0)


def test_merge_fields_prefers_longer_meaning():
    ocr = ExtractedWord('鉄道', meaning='railway transport system')
    llm = ExtractedWord('鉄道', 'てつどう', 'railway', 3)
    merged = merge_fields(ocr, llm)
    assert merged.meaning == 'railway transport system'
    assert merged.reading == 'てつどう'
    assert merged.jlpt_level == 3


def test_merge_fields_tie_and_fallbacks():
    ocr = ExtractedWord('鉄道', 'てつどう', 'rail', 4)
    llm = ExtractedWord('鉄道', 'テツドウ', 'line', None)
    merged = merge_fields(ocr, llm)
    assert merged.meaning == 'line'
    # katakana reading from the model is not a valid reading
    assert merged.reading == 'てつどう'
    assert merged.jlpt_level == 4


def test_term_found_by_both_engines_comes_first():
    ocr_words = [ExtractedWord('新聞'), ExtractedWord('鉄道', meaning='rail')]
    llm_words = [
        ExtractedWord('音楽', 'おんがく', 'music', 5),
        ExtractedWord('鉄道', 'てつどう', 'railway line', 3),
    ]
    merged = merge_hybrid(ocr_words, llm_words)
    assert [w.term for w in merged] == ['鉄道', '新聞', '音楽']
    assert merged[0].meaning == 'railway line'
    assert merged[0].reading == 'てつどう'


def test_plain_ocr_terms_are_accepted():
    merged = merge_hybrid(['学校', '世界'], [ExtractedWord('世界', 'せかい', 'world', 5)])
    assert [w.term for w in merged] == ['世界', '学校']
    assert all(isinstance(w, ExtractedWord) for w in merged)


def test_equal_scores_keep_engine_order():
    merged = merge_hybrid(['学校', '世界', '鉄道'], [])
    assert [w.term for w in merged] == ['学校', '世界', '鉄道']


def test_existing_terms_sink_within_their_bucket():
    merged = merge_hybrid(['学校', '世界'], [ExtractedWord('音楽')], existing_terms={'学校'})
    assert [w.term for w in merged] == ['世界', '学校', '音楽']


def test_merge_is_capped():
    ocr = [chr(0x5000 + 2 * i) + chr(0x5001 + 2 * i) for i in range(40)]
    llm = [ExtractedWord(chr(0x6000 + 2 * i) + chr(0x6001 + 2 * i)) for i in range(40)]
    assert len(merge_hybrid(ocr, llm)) == 50


def test_noise_candidates_are_refiltered():
    merged = merge_hybrid(['ます', '学校', 'ーー'], [ExtractedWord('hello'), ExtractedWord('こと', 'こと', 'thing')])
    assert [w.term for w in merged] == ['学校']
    assert merge_hybrid(['ます'], []) == []
