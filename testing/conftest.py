# -*- coding: utf-8 -*-
"""Shared fakes: a scripted OCR engine and a canned vision-model provider."""
import logging
import sys
import threading
from pathlib import Path

import numpy as np
import pytest

SRC = Path(__file__).resolve().parents[1] / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from scanvocab.ocr import (  # noqa: E402
    RecognitionEngine,
    RecognitionResult,
    RecognizedBlock,
    RecognizedLine,
    RecognizedParagraph,
    RecognizedWord,
)


def make_result(lines):
    """RecognitionResult from [[(text, confidence), ...], ...]."""
    paragraph = RecognizedParagraph([
        RecognizedLine([RecognizedWord(text, conf) for text, conf in line]) for line in lines
    ])
    return RecognitionResult([RecognizedBlock([paragraph])])


SAMPLE_LINES = [
    [('学', 90.0), ('校', 90.0)],
    [('フレ', 90.0), ('ッシュ', 90.0)],
    [('ます', 95.0)],
]


class FakeEngine(RecognitionEngine):
    def __init__(self, lines=None):
        self.lines = SAMPLE_LINES if lines is None else lines
        self.calls = 0
        self.closed = False

    def recognize(self, image):
        self.calls += 1
        return make_result(self.lines)

    def close(self):
        self.closed = True


class BlockingEngine(RecognitionEngine):
    """Blocks inside recognize() until released, like a long OCR call."""

    def __init__(self):
        self.started = threading.Event()
        self.release = threading.Event()
        self.closed = False

    def recognize(self, image):
        self.started.set()
        self.release.wait(5)
        return RecognitionResult()

    def close(self):
        self.closed = True


class FailingEngine(RecognitionEngine):
    def recognize(self, image):
        raise RuntimeError("engine crashed")


class FakeProvider:
    """Vision provider returning a canned reply (or raising)."""
    name = 'fake'

    def __init__(self, reply='[]', error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def complete(self, image_data_url, prompt):
        self.calls.append((image_data_url, prompt))
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def bright_image():
    return np.full((40, 60, 3), 230, dtype=np.uint8)


@pytest.fixture
def dark_image():
    return np.full((40, 60, 3), 20, dtype=np.uint8)


@pytest.fixture(autouse=True)
def drop_app_log_handlers():
    """setup_logger() rewires the root logger; undo it after each test."""
    yield
    from scanvocab.logger import LOG_FORMAT
    root = logging.getLogger()
    for handler in list(root.handlers):
        if handler.formatter is not None and handler.formatter._fmt == LOG_FORMAT:
            root.removeHandler(handler)
            handler.close()
    sys.excepthook = sys.__excepthook__
