# -*- coding: utf-8 -*-
"""
Extraction jobs: OCR path, vision-model path and hybrid, over one or more
images, with cancellation, stale-job protection and progress reporting.
"""
import logging
import threading
from contextlib import nullcontext
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Union

import numpy as np

from scanvocab.cancellation import CancellationToken
from scanvocab.combiner import collect_scored_tokens
from scanvocab.config import HYBRID_OCR_PROGRESS_SHARE, MAX_WORDS_PER_IMAGE
from scanvocab.dictionary import DictionaryLookup, enrich_terms
from scanvocab.ensemble import merge_hybrid
from scanvocab.errors import ConfigurationError, ExtractionCancelled, LlmExtractionError, RecognitionError
from scanvocab.image_processing import build_variants, decode_image, load_image, normalize_image, save_debug_image
from scanvocab.llm import LlmVisionExtractor
from scanvocab.models import ExtractedWord
from scanvocab.ocr import PaddleRecognitionEngine, RecognitionEngine, RecognitionSession, collect_words
from scanvocab.ranker import log_rank_result, rank_and_dedup
from scanvocab.review import ReviewItem, build_review_items
from scanvocab.script import normalize_term

__all__ = [
    'CancellationToken',
    'ExtractionMode',
    'ExtractionResult',
    'ImageExtraction',
    'JobCoordinator',
    'ProgressReporter',
    'extract_llm_words',
    'extract_ocr_terms',
    'extract_words_from_image',
]

logger = logging.getLogger(__name__)

ImageInput = Union[np.ndarray, bytes, str, Path]
ProgressCallback = Callable[[float], None]
ExistingTermsResolver = Callable[[List[str]], Iterable[str]]


class ExtractionMode(str, Enum):
    OCR = 'ocr'
    LLM = 'llm'
    HYBRID = 'hybrid'


class ProgressReporter:
    """Forwards progress fractions clamped to [0, 1], never moving backwards."""

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback
        self.value = 0.0

    def report(self, fraction: float) -> None:
        fraction = min(max(fraction, 0.0), 1.0)
        if fraction < self.value:
            return
        self.value = fraction
        if self.callback is not None:
            self.callback(fraction)

    def span(self, start: float, end: float) -> ProgressCallback:
        """Callback mapping a local 0..1 fraction into [start, end]."""
        def report_local(fraction: float) -> None:
            fraction = min(max(fraction, 0.0), 1.0)
            self.report(start + (end - start) * fraction)
        return report_local


def _to_image(image: ImageInput) -> np.ndarray:
    if isinstance(image, np.ndarray):
        return image
    if isinstance(image, Path):
        return load_image(image)
    return decode_image(image)


def _term_of(word: Union[str, ExtractedWord]) -> str:
    return word if isinstance(word, str) else word.term


def dedupe_words(words: Iterable[Union[str, ExtractedWord]], cap: Optional[int] = MAX_WORDS_PER_IMAGE) -> list:
    """First occurrence of each normalized term wins."""
    seen = set()
    unique = []
    for word in words:
        key = normalize_term(_term_of(word))
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(word)
    return unique[:cap]


# --- Per-image paths ---

def extract_ocr_terms(
    image: np.ndarray,
    session: RecognitionSession,
    token: Optional[CancellationToken] = None,
    on_progress: Optional[ProgressCallback] = None,
    debug_dir: Optional[Path] = None,
) -> List[str]:
    """
    OCR path for one image: variants -> recognition -> combination -> ranking.

    A variant whose recognition fails is skipped; if every variant fails
    the result is simply empty.

    Raises:
        ExtractionCancelled: token cancelled between or during variants
    """
    variants = build_variants(image)
    tokens = []
    total_detected = 0

    for index, variant in enumerate(variants):
        if token is not None:
            token.raise_if_cancelled()
        if on_progress is not None:
            on_progress(index / len(variants))
        if debug_dir is not None:
            save_debug_image(variant.image, Path(debug_dir) / f"{variant.id}.png")

        try:
            result = session.recognize(variant.image)
        except RecognitionError as e:
            logger.warning(f"Recognition failed on variant '{variant.id}': {e}")
            continue

        total_detected += result.word_count
        tokens.extend(collect_scored_tokens(collect_words(result), variant.weight))

    if on_progress is not None:
        on_progress(1.0)

    ranked = rank_and_dedup(tokens)
    log_rank_result(ranked, len(variants), total_detected)
    return ranked.terms


def extract_llm_words(
    image: np.ndarray,
    extractor: LlmVisionExtractor,
    locale: str = 'ko',
    token: Optional[CancellationToken] = None,
) -> List[ExtractedWord]:
    return extractor.extract(image, locale, token)


@dataclass
class ImageExtraction:
    """Raw per-engine output of one image, before the job-level merge."""
    mode: ExtractionMode
    ocr_terms: List[str] = field(default_factory=list)
    ocr_words: List[ExtractedWord] = field(default_factory=list)
    llm_words: List[ExtractedWord] = field(default_factory=list)
    llm_error: Optional[LlmExtractionError] = None

    def candidate_terms(self) -> List[str]:
        return self.ocr_terms + [w.term for w in self.llm_words]

    def words(self, existing_terms: Iterable[str] = ()) -> list:
        if self.mode is ExtractionMode.OCR:
            return list(self.ocr_terms)
        if self.mode is ExtractionMode.LLM:
            return list(self.llm_words)
        ocr_side = self.ocr_words or self.ocr_terms
        return merge_hybrid(ocr_side, self.llm_words, existing_terms)


def extract_words_from_image(
    image: np.ndarray,
    mode: ExtractionMode,
    session: Optional[RecognitionSession] = None,
    extractor: Optional[LlmVisionExtractor] = None,
    dictionary: Optional[DictionaryLookup] = None,
    locale: str = 'ko',
    token: Optional[CancellationToken] = None,
    on_progress: Optional[ProgressCallback] = None,
    debug_dir: Optional[Path] = None,
) -> ImageExtraction:
    """
    Run the engines `mode` asks for on one image.

    In hybrid mode a vision-model failure is logged and the image falls
    back to its OCR results; in llm mode it propagates.
    """
    mode = ExtractionMode(mode)
    extraction = ImageExtraction(mode)
    reporter = ProgressReporter(on_progress)

    if mode is not ExtractionMode.LLM:
        ocr_end = 1.0 if mode is ExtractionMode.OCR else HYBRID_OCR_PROGRESS_SHARE
        extraction.ocr_terms = extract_ocr_terms(
            image, session, token, reporter.span(0.0, ocr_end), debug_dir,
        )
        if mode is ExtractionMode.HYBRID and dictionary is not None:
            extraction.ocr_words = enrich_terms(extraction.ocr_terms, dictionary)

    if mode is not ExtractionMode.OCR:
        try:
            extraction.llm_words = extract_llm_words(image, extractor, locale, token)
        except LlmExtractionError as e:
            if mode is ExtractionMode.LLM:
                raise
            logger.warning(f"Vision model failed, using OCR results only: {e}")
            extraction.llm_error = e

    reporter.report(1.0)
    return extraction


# --- Job coordination ---

@dataclass
class ExtractionResult:
    mode: ExtractionMode
    words: list
    existing_terms: Set[str] = field(default_factory=set)
    llm_error: Optional[str] = None

    @property
    def terms(self) -> List[str]:
        return [_term_of(w) for w in self.words]

    def review_items(self) -> List[ReviewItem]:
        return build_review_items(self.words, self.existing_terms)

    def to_dict(self) -> Dict:
        return {
            'mode': self.mode.value,
            'words': [w if isinstance(w, str) else w.to_dict() for w in self.words],
            'existingTerms': sorted(self.existing_terms),
            'llmError': self.llm_error,
        }


class JobCoordinator:
    """
    Runs one extraction job at a time.

    Starting a job cancels the previous one and bumps the current job id;
    results and progress of a job whose id is no longer current are
    discarded.
    """

    def __init__(
        self,
        engine_factory: Optional[Callable[[], RecognitionEngine]] = PaddleRecognitionEngine,
        extractor: Optional[LlmVisionExtractor] = None,
        dictionary: Optional[DictionaryLookup] = None,
        debug_dir: Optional[Path] = None,
    ):
        self.engine_factory = engine_factory
        self.extractor = extractor
        self.dictionary = dictionary
        self.debug_dir = debug_dir

        self._lock = threading.Lock()
        self._job_id = 0
        self._token: Optional[CancellationToken] = None
        self._partial: List[ImageExtraction] = []

    @property
    def current_job_id(self) -> int:
        with self._lock:
            return self._job_id

    @property
    def partial_results(self) -> List[ImageExtraction]:
        with self._lock:
            return list(self._partial)

    def is_current(self, job_id: int) -> bool:
        with self._lock:
            return job_id == self._job_id

    def _begin_job(self):
        with self._lock:
            if self._token is not None:
                self._token.cancel()
            self._job_id += 1
            self._token = CancellationToken()
            self._partial = []
            return self._job_id, self._token

    def cancel(self) -> None:
        """Cancel the active job, if any. Its result will be None."""
        with self._lock:
            if self._token is not None:
                self._token.cancel()
                self._token = None
            self._job_id += 1

    def reset(self) -> None:
        self.cancel()
        with self._lock:
            self._partial = []

    def _guarded(self, job_id: int, callback: Optional[ProgressCallback]) -> Optional[ProgressCallback]:
        if callback is None:
            return None

        def report(fraction: float) -> None:
            if self.is_current(job_id):
                callback(fraction)
        return report

    def _check_engines(self, mode: ExtractionMode) -> None:
        if mode is not ExtractionMode.LLM and self.engine_factory is None:
            raise ConfigurationError(f"'{mode.value}' mode needs an OCR engine")
        if mode is not ExtractionMode.OCR and self.extractor is None:
            raise ConfigurationError(f"'{mode.value}' mode needs a vision model extractor")

    def start_extraction(
        self,
        images: Sequence[ImageInput],
        locale: str = 'ko',
        mode: Union[str, ExtractionMode] = ExtractionMode.OCR,
        resolve_existing_terms: Optional[ExistingTermsResolver] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Optional[ExtractionResult]:
        """
        Extract vocabulary from a batch of images, one image after another.

        Args:
            images: Arrays, raw bytes, base64 / data-URL text or file paths
            locale: Meaning language for the vision model
            mode: 'ocr', 'llm' or 'hybrid'
            resolve_existing_terms: Bulk lookup of terms the user already owns,
                called once per job
            on_progress: Receives a non-decreasing fraction in [0, 1]

        Returns:
            ExtractionResult, or None when the job was cancelled or superseded

        Raises:
            ConfigurationError, ImageDecodeError, LlmExtractionError (llm mode)
        """
        mode = ExtractionMode(mode)
        self._check_engines(mode)
        job_id, token = self._begin_job()
        progress = ProgressReporter(self._guarded(job_id, on_progress))
        count = max(len(images), 1)

        extractions: List[ImageExtraction] = []
        session = (
            nullcontext() if mode is ExtractionMode.LLM
            else RecognitionSession(self.engine_factory, token)
        )
        try:
            with session as ocr_session:
                for index, raw in enumerate(images):
                    token.raise_if_cancelled()
                    image = normalize_image(_to_image(raw))
                    extraction = extract_words_from_image(
                        image,
                        mode,
                        session=ocr_session,
                        extractor=self.extractor,
                        dictionary=self.dictionary,
                        locale=locale,
                        token=token,
                        on_progress=progress.span(index / count, (index + 1) / count),
                        debug_dir=Path(self.debug_dir) / f"image_{index}" if self.debug_dir else None,
                    )
                    if not self.is_current(job_id):
                        return None
                    with self._lock:
                        self._partial.append(extraction)
                    extractions.append(extraction)
        except ExtractionCancelled:
            logger.debug(f"Extraction job {job_id} cancelled")
            return None

        if not self.is_current(job_id):
            return None

        existing = self._resolve_existing(extractions, resolve_existing_terms)
        if not self.is_current(job_id):
            return None

        words = dedupe_words(w for e in extractions for w in e.words(existing))
        errors = [str(e.llm_error) for e in extractions if e.llm_error is not None]

        progress.report(1.0)
        logger.info(f"Extraction job {job_id} finished: mode={mode.value} images={len(images)} words={len(words)}")
        return ExtractionResult(
            mode=mode,
            words=words,
            existing_terms={normalize_term(_term_of(w)) for w in words} & existing,
            llm_error=errors[0] if errors else None,
        )

    def _resolve_existing(
        self,
        extractions: List[ImageExtraction],
        resolver: Optional[ExistingTermsResolver],
    ) -> Set[str]:
        if resolver is None:
            return set()
        terms = dedupe_words((t for e in extractions for t in e.candidate_terms()), cap=None)
        if not terms:
            return set()
        try:
            return {normalize_term(t) for t in resolver(terms)}
        except Exception as e:
            logger.warning(f"Existing-term lookup failed, treating all terms as new: {e}")
            return set()
