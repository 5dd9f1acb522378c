# -*- coding: utf-8 -*-
"""
Rule-based noise classifier for extracted Japanese terms.

classify() runs the checks in a fixed order and reports the first reason
that applies; the order decides which reason is reported, so the curated
list checks always come before the structural noise rules.
"""
import re
from enum import Enum
from typing import Callable, List, NamedTuple, Optional

from scanvocab.config import MIN_CHAR_DIVERSITY, MIN_DIVERSITY_LENGTH
from scanvocab.script import (
    HIRAGANA,
    KANJI,
    KATAKANA,
    MARKS,
    has_japanese,
    is_katakana_only,
    is_single_kanji,
    normalize_term,
)


class RejectionReason(str, Enum):
    EMPTY = 'empty'
    NO_JAPANESE = 'no_japanese'
    AFFIX_ONLY = 'affix_only'
    INFLECTION_ONLY = 'inflection_only'
    FUNCTION_WORD = 'function_word'
    NOISE_PATTERN = 'noise_pattern'


# Curated lists: hand-maintained, keep verbatim.
PREFIX_ONLY_TERMS = frozenset(['お', 'ご', '未', '非', '無', '再', '超', '第'])
SUFFIX_ONLY_TERMS = frozenset(['的', '性', '化', '力', '者'])

INFLECTION_ONLY_TERMS = frozenset([
    'ます', 'ました', 'ません', 'ましょう',
    'ない', 'なかった',
    'たい', 'たく', 'たかった',
    'れる', 'られる', 'せる', 'させる',
    'した', 'して', 'する',
    'だった', 'です', 'である', 'だ', 'た',
])

FUNCTION_WORD_TERMS = frozenset([
    # Pronouns / demonstratives
    'こと', 'もの', 'ため', 'ところ', 'よう', 'ほう', 'ほど',
    'いう', 'その', 'この', 'あの', 'どの',
    'ここ', 'そこ', 'あそこ', 'どこ',
    'それ', 'これ', 'あれ', 'どれ',
    # Basic verbs
    'ある', 'いる', 'なる', 'おる', 'いく', 'くる', 'みる', 'でる', 'おく',
    'もつ', 'だす', '出す', '作る', '言う', '行く', '来る', '見る',
    # Basic adjectives
    'ない', 'よい', 'いい', '多い', '良い', '新しい', '美しい', '大きい', '小さい', '長い',
    # Connectors / conjunctions
    'から', 'まで', 'など', 'ほか', 'ただ',
    'また', 'もう', 'まだ', 'もし', 'さて', 'つまり',
    'けど', 'けれど', 'ので', 'のに', 'ながら', 'つつ',
    # Common inflection fragments / particles
    'ける', 'える', 'ませ', 'きれ', 'えて', 'あっ', 'おき',
    'いま', 'とき', 'たび', 'つい', 'よく', 'すぐ',
    # Short hiragana that are almost always OCR noise
    'さん', 'くさ', 'きす', 'まる', 'ぶっ', 'もい', 'こね', 'そる',
    'はい', 'ちる', 'にゃ', 'りら', 'ざさ', 'いわ', 'きり', 'くい',
    'づつ', 'こっ', 'かす', 'いこ',
])

# Dictionary-form endings (u-row verb endings and the i-adjective い)
DICTIONARY_FORM_ENDINGS = frozenset('うくぐすつぬぶむるい')

_MARK_CLASS = f'[{MARKS}]'
_LONG_SOUND_ONLY = re.compile('^[ーｰ]+$')
_REPEATED_CHAR_ONLY = re.compile(r'^(.)\1+$')
_MARK_CHAR = re.compile(_MARK_CLASS)
_LEADING_MARKS = re.compile(f'^{_MARK_CLASS}+')
_TRAILING_MARKS = re.compile(f'{_MARK_CLASS}+$')
_PREFIX_LIKE_TRAILING_MARK = re.compile(f'^[{KANJI}]{_MARK_CLASS}+$')
_SUFFIX_LIKE_LEADING_MARK = re.compile(f'^{_MARK_CLASS}+[{KANJI}]$')
# へ repeated: vertical-text misread (人へへ, 和合へへ)
_HE_REPEATED = re.compile('へ{2,}')
# Mostly one character repeated (回問回回, 移いいい)
_DOMINANT_CHAR = re.compile(r'^(.)(.*)\1{2,}|^(.)\3{2,}')
# Kanji + short hiragana + kanji/kana misjoin (府まこ, 人るこ, 鶴にの)
_KANJI_PARTICLE_MIX = re.compile(f'^[{KANJI}][{HIRAGANA}]{{1,2}}[{KANJI}{HIRAGANA}]$')
# Kanji + single bare particle (武器を, 火山を)
_SHORT_PARTICLE_SUFFIX = re.compile(f'^[{KANJI}]{{1,2}}[をにでがはもへとのや]$')
# Conjugated tail on a kanji stem (表現され, 意味する, 投稿し...)
_VERB_PHRASE_SUFFIX = re.compile(
    f'[{KANJI}]'
    '(する|される|され|して|した|しい|せる|させ|せた|させた|しく|しか|しも|しを'
    '|って|った|っている|わっ|れる|せて)$'
)
# Exactly 2 kanji + し: masu-stem fragment (作曲し); longer nouns like 茶碗蒸し survive
_KANJI_MASU_STEM = re.compile(f'^[{KANJI}]{{2}}し$')
_PARTICLE_ENDING = re.compile(
    f'[{KANJI}{KATAKANA}]'
    '(を|に|で|が|は|も|へ|と|の|や|な|から|まで|より|など|って|ので|けど|のに)$'
)
# の is left out on purpose: it joins real compound nouns (亀の海)
_MID_PARTICLE_COMPOUND = re.compile(f'[{KANJI}](を|に|で|が|は|も|へ|と|や)[{KANJI}]')


class NoiseRule(NamedTuple):
    name: str
    predicate: Callable[[str], bool]


def is_long_sound_only(term: str) -> bool:
    return bool(_LONG_SOUND_ONLY.match(term))


def is_repeated_char(term: str) -> bool:
    return len(term) >= 2 and bool(_REPEATED_CHAR_ONLY.match(term))


def is_mark_wrapped_kanji(term: str) -> bool:
    """Single kanji with an affix mark on one side (無-, -的)."""
    return bool(_PREFIX_LIKE_TRAILING_MARK.match(term) or _SUFFIX_LIKE_LEADING_MARK.match(term))


def has_affix_mark_cluster(term: str) -> bool:
    mark_count = len(_MARK_CHAR.findall(term))
    if mark_count >= 2:
        return True
    if mark_count >= 1 and (_LEADING_MARKS.search(term) or _TRAILING_MARKS.search(term)):
        stripped = _MARK_CHAR.sub('', term)
        if len(stripped) <= 4 or is_katakana_only(stripped):
            return True
    return False


def is_short_katakana_noise(term: str) -> bool:
    if not is_katakana_only(term):
        return False
    if len(term) <= 2 and term.endswith('ー'):
        return True
    return len(term) == 2 and term[0] == term[1]


def has_repeated_he(term: str) -> bool:
    return bool(_HE_REPEATED.search(term))


def has_low_char_diversity(term: str) -> bool:
    if len(term) < MIN_DIVERSITY_LENGTH:
        return False
    return len(set(term)) / len(term) < MIN_CHAR_DIVERSITY


def has_dominant_char(term: str) -> bool:
    return len(term) >= 4 and bool(_DOMINANT_CHAR.search(term))


def is_kanji_with_bare_particle(term: str) -> bool:
    return bool(_SHORT_PARTICLE_SUFFIX.match(term))


def is_kanji_particle_mix(term: str) -> bool:
    if len(term) > 4 or not _KANJI_PARTICLE_MIX.match(term):
        return False
    # 食べる, 高い: kanji stem + okurigana ending in a dictionary form
    return term[-1] not in DICTIONARY_FORM_ENDINGS


def has_conjugated_tail(term: str) -> bool:
    return len(term) >= 3 and bool(_VERB_PHRASE_SUFFIX.search(term))


def is_masu_stem_fragment(term: str) -> bool:
    return bool(_KANJI_MASU_STEM.match(term))


def ends_with_particle(term: str) -> bool:
    return len(term) >= 3 and bool(_PARTICLE_ENDING.search(term))


def has_mid_particle(term: str) -> bool:
    return len(term) >= 4 and bool(_MID_PARTICLE_COMPOUND.search(term))


NOISE_RULES: List[NoiseRule] = [
    NoiseRule('long_sound_only', is_long_sound_only),
    NoiseRule('repeated_char', is_repeated_char),
    NoiseRule('mark_wrapped_kanji', is_mark_wrapped_kanji),
    NoiseRule('affix_mark_cluster', has_affix_mark_cluster),
    NoiseRule('short_katakana', is_short_katakana_noise),
    NoiseRule('repeated_he', has_repeated_he),
    NoiseRule('low_char_diversity', has_low_char_diversity),
    NoiseRule('dominant_char', has_dominant_char),
    NoiseRule('kanji_bare_particle', is_kanji_with_bare_particle),
    NoiseRule('kanji_particle_mix', is_kanji_particle_mix),
    NoiseRule('conjugated_tail', has_conjugated_tail),
    NoiseRule('masu_stem', is_masu_stem_fragment),
    NoiseRule('particle_ending', ends_with_particle),
    NoiseRule('mid_particle', has_mid_particle),
]


def matching_noise_rule(term: str) -> Optional[str]:
    """Name of the first noise rule that fires on an already-normalized term."""
    for rule in NOISE_RULES:
        if rule.predicate(term):
            return rule.name
    return None


def classify(raw_term: str) -> Optional[RejectionReason]:
    """
    Classify a candidate term.

    Args:
        raw_term: Term as produced by OCR or the vision model.

    Returns:
        The rejection reason, or None when the term is accepted.
    """
    term = normalize_term(raw_term)
    if not term:
        return RejectionReason.EMPTY
    if not has_japanese(term):
        return RejectionReason.NO_JAPANESE
    # A lone kanji is a valid vocabulary unit
    if is_single_kanji(term):
        return None
    if term in PREFIX_ONLY_TERMS or term in SUFFIX_ONLY_TERMS:
        return RejectionReason.AFFIX_ONLY
    if term in INFLECTION_ONLY_TERMS:
        return RejectionReason.INFLECTION_ONLY
    if term in FUNCTION_WORD_TERMS:
        return RejectionReason.FUNCTION_WORD
    if matching_noise_rule(term):
        return RejectionReason.NOISE_PATTERN
    return None


def should_reject(raw_term: str) -> bool:
    return classify(raw_term) is not None
