# -*- coding: utf-8 -*-
"""
Accuracy benchmark: run images with hand-labelled expected words through an
extraction function and report precision / recall / F1 per image.
"""
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Sequence, Tuple

import pandas as pd

from scanvocab.script import normalize_term

logger = logging.getLogger(__name__)

OVERALL = 'OVERALL'


@dataclass
class BenchCase:
    file: str
    label: str = ''
    expected: List[str] = field(default_factory=list)


def load_ground_truth(path: Path) -> List[BenchCase]:
    """
    Reads a JSON list of {"file": ..., "type": ..., "expected": [...]} entries.
    """
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    cases = []
    for entry in data:
        cases.append(BenchCase(
            file=entry['file'],
            label=entry.get('type') or entry.get('label') or entry['file'],
            expected=[normalize_term(w) for w in entry.get('expected', [])],
        ))
    return cases


def _matches(a: str, b: str) -> bool:
    return a == b or a in b or b in a


def match_expected(extracted: Sequence[str], expected: Sequence[str]) -> Tuple[List[str], List[str], List[str]]:
    """
    Compare extracted terms against the expected words.

    An expected word counts as found on an exact match, or when it and
    some extracted term contain one another.

    Returns:
        (matches, misses, false_positives)
    """
    terms = [normalize_term(t) for t in extracted if normalize_term(t)]
    matches, misses = [], []
    for word in expected:
        if any(_matches(word, term) for term in terms):
            matches.append(word)
        else:
            misses.append(word)

    false_positives = [t for t in terms if not any(_matches(w, t) for w in expected)]
    return matches, misses, false_positives


def _ratios(matched: int, extracted: int, expected: int) -> Dict[str, float]:
    precision = matched / extracted if extracted else 0.0
    recall = matched / expected if expected else 0.0
    f1 = 2 * precision * recall / (precision + recall) if precision + recall else 0.0
    return {'precision': precision, 'recall': recall, 'f1': f1}


def compute_metrics(extracted: Sequence[str], expected: Sequence[str]) -> Dict:
    matches, misses, false_positives = match_expected(extracted, expected)
    metrics = {
        'extracted': len(extracted),
        'expected': len(expected),
        'matched': len(matches),
        'missed': len(misses),
        'false_positives': len(false_positives),
    }
    metrics.update(_ratios(len(matches), len(extracted), len(expected)))
    return metrics


def run_benchmark(
    cases: Sequence[BenchCase],
    image_dir: Path,
    extract: Callable[[Path], List[str]],
) -> pd.DataFrame:
    """
    Args:
        cases: Ground-truth entries
        image_dir: Directory the case file names are relative to
        extract: Returns the extracted terms of one image path

    Returns:
        One row per image found, plus an OVERALL row from the summed counts
    """
    rows = []
    for case in cases:
        path = Path(image_dir) / case.file
        if not path.exists():
            logger.warning(f"Skipping {case.file}: not found in {image_dir}")
            continue
        try:
            terms = extract(path)
        except Exception as e:
            logger.error(f"Extraction failed for {case.file}: {e}")
            continue

        row = {'image': case.file, 'label': case.label}
        row.update(compute_metrics(terms, case.expected))
        rows.append(row)

    columns = ['image', 'label', 'extracted', 'expected', 'matched', 'missed',
               'false_positives', 'precision', 'recall', 'f1']
    df = pd.DataFrame(rows, columns=columns)
    if df.empty:
        return df

    overall = {
        'image': OVERALL,
        'label': '',
        'extracted': int(df['extracted'].sum()),
        'expected': int(df['expected'].sum()),
        'matched': int(df['matched'].sum()),
        'missed': int(df['missed'].sum()),
        'false_positives': int(df['false_positives'].sum()),
    }
    overall.update(_ratios(overall['matched'], overall['extracted'], overall['expected']))
    return pd.concat([df, pd.DataFrame([overall], columns=columns)], ignore_index=True)
