# -*- coding: utf-8 -*-
import pytest

from scanvocab.dictionary import DictionaryLookup, SudachiDictionary, enrich_terms
from scanvocab.models import ExtractedWord, clamp_jlpt_level
from scanvocab.review import build_review_items, filter_by_level, selected_words, toggle_all


def _items():
    words = [
        ExtractedWord('学校', jlpt_level=5),
        ExtractedWord('鉄道', jlpt_level=2),
        ExtractedWord('音楽', jlpt_level=None),
        ExtractedWord('世界', jlpt_level=4),
    ]
    return build_review_items(words, existing_terms={'世界'})


def test_existing_terms_start_unchecked():
    items = _items()
    assert [i.checked for i in items] == [True, True, True, False]
    assert items[3].existing
    assert not items[3].selectable


def test_plain_strings_become_records():
    items = build_review_items(['学校'])
    assert items[0].word == ExtractedWord('学校')


def test_toggle_all_never_checks_existing():
    items = _items()
    toggle_all(items)
    assert not any(i.checked for i in items)
    toggle_all(items)
    assert [i.checked for i in items] == [True, True, True, False]


def test_toggle_all_selects_when_partially_checked():
    items = _items()
    items[0].checked = False
    toggle_all(items)
    assert [i.checked for i in items] == [True, True, True, False]


def test_filter_by_level():
    items = filter_by_level(_items(), 3)
    assert [i.checked for i in items] == [True, False, True, False]


def test_filter_without_user_level_is_noop():
    items = _items()
    items[1].checked = False
    filter_by_level(items, None)
    assert [i.checked for i in items] == [True, False, True, False]


def test_selected_words():
    items = _items()
    items[0].checked = False
    assert [w.term for w in selected_words(items)] == ['鉄道', '音楽']


def test_to_dict_uses_wire_names():
    assert ExtractedWord('学校', 'がっこう', 'school', 5).to_dict() == {
        'term': '学校', 'reading': 'がっこう', 'meaning': 'school', 'jlptLevel': 5,
    }


def test_clamp_jlpt_level():
    assert clamp_jlpt_level(3) == 3
    assert clamp_jlpt_level(0) is None
    assert clamp_jlpt_level(6) is None
    assert clamp_jlpt_level(2.5) is None
    assert clamp_jlpt_level('3') is None
    assert clamp_jlpt_level(True) is None
    assert clamp_jlpt_level(None) is None
    assert clamp_jlpt_level(float('nan')) is None
    assert clamp_jlpt_level(float('inf')) is None
    assert clamp_jlpt_level(10 ** 400) is None
    assert clamp_jlpt_level(4.0) == 4


# --- dictionary collaborator ---

class FakeDictionary(DictionaryLookup):
    def __init__(self):
        self.batches = []

    def lookup(self, term):
        if term == '鉄道':
            return ExtractedWord('鉄道', 'てつどう', 'railway', 3)
        return None

    def lookup_batch(self, terms):
        terms = list(terms)
        self.batches.append(terms)
        return {'学校': ExtractedWord('学校', 'がっこう', 'school', 5)} if '学校' in terms else {}


def test_enrich_terms_batch_then_single():
    dictionary = FakeDictionary()
    words = enrich_terms(['学校', '鉄道', '謎'], dictionary)
    assert [w.reading for w in words] == ['がっこう', 'てつどう', '']
    assert [w.term for w in words] == ['学校', '鉄道', '謎']
    assert dictionary.batches == [['学校', '鉄道', '謎']]


def test_enrich_terms_without_dictionary():
    assert enrich_terms(['学校'], None) == [ExtractedWord('学校')]


def test_sudachi_reading():
    dictionary = SudachiDictionary()
    if not dictionary.available:
        pytest.skip("Sudachi dictionary not installed")
    word = dictionary.lookup('学校')
    assert word is not None
    assert word.reading == 'がっこう'
    assert dictionary.lookup('hello') is None


def test_dictionary_interface_requires_lookup():
    with pytest.raises(TypeError):
        DictionaryLookup()
