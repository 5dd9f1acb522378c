# -*- coding: utf-8 -*-
"""
Dictionary collaborator used to fill in readings for OCR-path terms.

Meanings and JLPT levels come from an external dictionary service; the
bundled implementation only knows readings, from SudachiPy.
"""
import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from sudachipy import Dictionary  #type: ignore

from scanvocab.models import ExtractedWord
from scanvocab.script import has_japanese, to_hiragana

logger = logging.getLogger(__name__)


class DictionaryLookup(ABC):
    """Interface: single-term and batch lookups returning ExtractedWord records."""

    @abstractmethod
    def lookup(self, term: str) -> Optional[ExtractedWord]:
        pass

    def lookup_batch(self, terms: Iterable[str]) -> Dict[str, ExtractedWord]:
        """Only the terms that were found appear in the result."""
        found = {}
        for term in terms:
            word = self.lookup(term)
            if word is not None:
                found[term] = word
        return found


class SudachiDictionary(DictionaryLookup):
    """
    Reading lookup using SudachiPy morphological analysis.
    Meaning stays empty and the JLPT level unknown.
    """

    def __init__(self):
        try:
            self.tokenizer = Dictionary().create()
            self.available = True
        except Exception as e:
            logger.warning(f"Failed to initialize Sudachi Dictionary: {e}")
            self.tokenizer = None
            self.available = False

    def reading(self, term: str) -> str:
        """Hiragana reading of the whole term, or '' if unknown."""
        if not self.available or not term:
            return ''

        parts = []
        for m in self.tokenizer.tokenize(term):
            r = m.reading_form()
            if not r:
                return ''
            parts.append(r)
        return to_hiragana(''.join(parts))

    def lookup(self, term: str) -> Optional[ExtractedWord]:
        if not has_japanese(term):
            return None
        reading = self.reading(term)
        if not reading:
            return None
        return ExtractedWord(term=term, reading=reading)


def enrich_terms(terms: List[str], dictionary: Optional[DictionaryLookup]) -> List[ExtractedWord]:
    """
    Turn OCR-path terms into ExtractedWord records, keeping order.

    Batch lookup first, single lookups for the misses, blank records for
    anything still unknown.
    """
    if dictionary is None:
        return [ExtractedWord(term) for term in terms]

    found = dict(dictionary.lookup_batch(terms))
    for term in terms:
        if term in found:
            continue
        try:
            word = dictionary.lookup(term)
        except Exception as e:
            logger.warning(f"Dictionary lookup failed for '{term}': {e}")
            word = None
        if word is not None:
            found[term] = word

    return [found.get(term) or ExtractedWord(term) for term in terms]
