# -*- coding: utf-8 -*-
"""Exception types raised by the extraction pipeline."""
from typing import Optional


class ScanVocabError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(ScanVocabError):
    """Invalid or incomplete runtime settings."""


class ImageDecodeError(ScanVocabError, ValueError):
    """Input bytes could not be decoded into an image."""


class RecognitionError(ScanVocabError):
    """The OCR engine failed on a single image variant."""


class LlmExtractionError(ScanVocabError):
    """The vision model request failed or returned a non-2xx response."""

    def __init__(self, message: str, provider: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


class LlmTimeoutError(LlmExtractionError):
    """The vision model did not answer within the configured timeout."""


class ExtractionCancelled(ScanVocabError):
    """The job was cancelled or superseded. Not a failure."""
