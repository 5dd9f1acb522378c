# -*- coding: utf-8 -*-
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Union

from scanvocab.models import ExtractedWord
from scanvocab.script import normalize_term


@dataclass
class ReviewItem:
    """One row of the review list shown to the user before saving."""
    word: ExtractedWord
    existing: bool = False
    checked: bool = True

    @property
    def selectable(self) -> bool:
        return not self.existing


def build_review_items(
    words: Sequence[Union[str, ExtractedWord]],
    existing_terms: Iterable[str] = (),
) -> List[ReviewItem]:
    """Terms the user already has stay visible but start unchecked."""
    existing = {normalize_term(t) for t in existing_terms}
    items = []
    for word in words:
        if isinstance(word, str):
            word = ExtractedWord(word)
        owned = normalize_term(word.term) in existing
        items.append(ReviewItem(word=word, existing=owned, checked=not owned))
    return items


def toggle_all(items: List[ReviewItem]) -> List[ReviewItem]:
    """Select every selectable item, or clear them all if they already are."""
    selectable = [item for item in items if item.selectable]
    check = not all(item.checked for item in selectable)
    for item in selectable:
        item.checked = check
    return items


def filter_by_level(items: List[ReviewItem], user_level: Optional[int]) -> List[ReviewItem]:
    """
    Check only words at or below the user's level in difficulty.

    JLPT levels use N-numbers, so a user at N3 keeps N3, N4 and N5 words
    (level >= 3). Words with an unknown level stay checked.
    """
    if user_level is None:
        return items
    for item in items:
        if not item.selectable:
            continue
        level = item.word.jlpt_level
        item.checked = level is None or level >= user_level
    return items


def selected_words(items: Iterable[ReviewItem]) -> List[ExtractedWord]:
    return [item.word for item in items if item.checked and item.selectable]
