# -*- coding: utf-8 -*-
import math
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class ExtractedWord:
    """A vocabulary candidate with optional reading, meaning and JLPT level."""
    term: str
    reading: str = ''
    meaning: str = ''
    jlpt_level: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'term': self.term,
            'reading': self.reading,
            'meaning': self.meaning,
            'jlptLevel': self.jlpt_level,
        }


def clamp_jlpt_level(value: Any) -> Optional[int]:
    """JLPT band 1..5 (N1..N5) or None; anything else is dropped."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if isinstance(value, int):
        return value if 1 <= value <= 5 else None
    # json.loads accepts NaN and Infinity
    if not math.isfinite(value) or not value.is_integer() or not 1 <= value <= 5:
        return None
    return int(value)
