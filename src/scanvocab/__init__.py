# -*- coding: utf-8 -*-
"""
ScanVocab - Japanese vocabulary extraction from images

- Multi-variant OCR with token recombination and noise filtering
- Vision-model extraction (OpenAI, Anthropic, Gemini)
- Hybrid ensemble of both engines
- Cancellable jobs with progress reporting
"""
__version__ = "2.0.0"

from scanvocab.cancellation import CancellationToken
from scanvocab.ensemble import merge_hybrid, score_candidate
from scanvocab.errors import (
    ConfigurationError,
    ExtractionCancelled,
    ImageDecodeError,
    LlmExtractionError,
    LlmTimeoutError,
    RecognitionError,
    ScanVocabError,
)
from scanvocab.models import ExtractedWord
from scanvocab.pipeline import ExtractionMode, ExtractionResult, JobCoordinator
from scanvocab.term_filter import RejectionReason, classify, should_reject

__all__ = [
    'CancellationToken',
    'ConfigurationError',
    'ExtractedWord',
    'ExtractionCancelled',
    'ExtractionMode',
    'ExtractionResult',
    'ImageDecodeError',
    'JobCoordinator',
    'LlmExtractionError',
    'LlmTimeoutError',
    'RecognitionError',
    'RejectionReason',
    'ScanVocabError',
    'classify',
    'merge_hybrid',
    'score_candidate',
    'should_reject',
]
