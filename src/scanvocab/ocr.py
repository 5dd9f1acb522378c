# -*- coding: utf-8 -*-
import concurrent.futures
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, List, Optional, Tuple

import numpy as np

from scanvocab.cancellation import CancellationToken, run_cancellable
from scanvocab.errors import ExtractionCancelled, RecognitionError

logger = logging.getLogger(__name__)


@dataclass
class RecognizedWord:
    text: str
    confidence: float  # engine-native, 0-100


@dataclass
class RecognizedLine:
    words: List[RecognizedWord] = field(default_factory=list)


@dataclass
class RecognizedParagraph:
    lines: List[RecognizedLine] = field(default_factory=list)


@dataclass
class RecognizedBlock:
    paragraphs: List[RecognizedParagraph] = field(default_factory=list)


@dataclass
class RecognitionResult:
    """OCR output of one image variant: blocks -> paragraphs -> lines -> words."""
    blocks: List[RecognizedBlock] = field(default_factory=list)

    def iter_lines(self) -> Iterator[List[Tuple[str, float]]]:
        """Each line as (text, confidence) pairs; line boundaries are kept."""
        for block in self.blocks:
            for paragraph in block.paragraphs:
                for line in paragraph.lines:
                    yield [(word.text, word.confidence) for word in line.words]

    @property
    def word_count(self) -> int:
        return sum(len(line) for line in self.iter_lines())


def collect_words(result: RecognitionResult) -> List[List[Tuple[str, float]]]:
    return [line for line in result.iter_lines() if line]


class RecognitionEngine(ABC):
    """Interface of a stateful OCR engine reused across the variants of a run."""

    @abstractmethod
    def recognize(self, image: np.ndarray) -> RecognitionResult:
        pass

    def close(self) -> None:
        pass


def _line_from_text(text: str, confidence: float) -> RecognizedLine:
    words = [RecognizedWord(part, confidence) for part in text.split()]
    return RecognizedLine(words)


def parse_paddle_result(raw_results: Any) -> RecognitionResult:
    """
    Convert PaddleOCR output into a RecognitionResult.

    Handles both result shapes:
        [[bbox, (text, confidence)], ...] per page (2.x)
        {'rec_texts': [...], 'rec_scores': [...]} per page (3.x)
    Confidences (0-1) are rescaled to 0-100. Every detected text line
    becomes one line, split on whitespace into words.
    """
    paragraph = RecognizedParagraph()

    for page in raw_results or []:
        if page is None:
            continue

        if hasattr(page, 'get') and page.get('rec_texts') is not None:
            pairs = zip(page.get('rec_texts') or [], page.get('rec_scores') or [])
        else:
            pairs = (line[1] for line in page if line and len(line) >= 2)

        for text, confidence in pairs:
            text = str(text).strip()
            if not text:
                continue
            paragraph.lines.append(_line_from_text(text, float(confidence) * 100.0))

    if not paragraph.lines:
        return RecognitionResult()
    return RecognitionResult([RecognizedBlock([paragraph])])


class PaddleRecognitionEngine(RecognitionEngine):
    """
    OCR engine backed by PaddleOCR's Japanese model.
    CPU-friendly: no CUDA required, but will use the GPU if asked to.
    """

    def __init__(self, use_gpu: bool = False):
        logger.info("Initializing PaddleOCR... (first run downloads models ~50MB)")
        os.environ.setdefault("PADDLE_PDX_DISABLE_MODEL_SOURCE_CHECK", "True")
        from paddleocr import PaddleOCR  # type: ignore

        # lang='japan' covers kanji/kana in one model
        self.reader = PaddleOCR(
            lang='japan',
            use_angle_cls=True,
            device='gpu' if use_gpu else 'cpu',
        )

    def recognize(self, image: np.ndarray) -> RecognitionResult:
        if self.reader is None:
            raise RecognitionError("PaddleOCR engine has been closed")
        return parse_paddle_result(self.reader.ocr(image))

    def close(self) -> None:
        self.reader = None


class RecognitionSession:
    """
    Owns one engine for the duration of an extraction call.

    The engine is created on enter, reused for every variant, and released
    on exit or as soon as the token is cancelled mid-recognition.
    """

    def __init__(
        self,
        engine_factory: Callable[[], RecognitionEngine],
        token: Optional[CancellationToken] = None,
    ):
        self.engine_factory = engine_factory
        self.token = token
        self.engine: Optional[RecognitionEngine] = None
        self._executor: Optional[concurrent.futures.ThreadPoolExecutor] = None
        self._closed = False

    def __enter__(self) -> 'RecognitionSession':
        if self.token is not None:
            self.token.raise_if_cancelled()
        self.engine = self.engine_factory()
        self._executor = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix='ocr')
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def recognize(self, image: np.ndarray) -> RecognitionResult:
        if self._closed or self.engine is None:
            raise RecognitionError("Recognition session is not open")
        try:
            return run_cancellable(
                self.engine.recognize,
                image,
                token=self.token,
                executor=self._executor,
                on_cancel=self.close,
            )
        except (ExtractionCancelled, RecognitionError):
            raise
        except Exception as e:
            raise RecognitionError(f"OCR failed: {e}") from e

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self.engine is not None:
            try:
                self.engine.close()
            finally:
                self.engine = None
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
