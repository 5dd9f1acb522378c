# -*- coding: utf-8 -*-
import base64
import json
import threading
from types import SimpleNamespace

import cv2 as cv
import httpx
import pytest

from conftest import BlockingEngine, FailingEngine, FakeEngine, FakeProvider
from scanvocab.errors import ConfigurationError, LlmExtractionError
from scanvocab.llm import GeminiVisionProvider, LlmVisionExtractor
from scanvocab.models import ExtractedWord
from scanvocab.pipeline import (
    ExtractionMode,
    JobCoordinator,
    ProgressReporter,
    dedupe_words,
    extract_ocr_terms,
)
from scanvocab.ocr import RecognitionSession


def _llm_reply(*records):
    return json.dumps(
        [{'term': t, 'reading': r, 'meaning': m, 'jlptLevel': lvl} for t, r, m, lvl in records],
        ensure_ascii=False,
    )


def test_ocr_terms_from_all_variants(bright_image):
    engine = FakeEngine()
    with RecognitionSession(lambda: engine) as session:
        terms = extract_ocr_terms(bright_image, session)
    assert terms == ['学校', 'フレッシュ']
    assert engine.calls == 5


def test_failed_recognition_yields_empty_list(bright_image):
    with RecognitionSession(FailingEngine) as session:
        assert extract_ocr_terms(bright_image, session) == []


def test_ocr_job(bright_image):
    progress = []
    coordinator = JobCoordinator(engine_factory=FakeEngine)
    result = coordinator.start_extraction([bright_image], mode='ocr', on_progress=progress.append)

    assert result.mode is ExtractionMode.OCR
    assert result.words == ['学校', 'フレッシュ']
    assert progress == sorted(progress)
    assert progress[-1] == 1.0
    assert all(0.0 <= p <= 1.0 for p in progress)


def test_job_accepts_encoded_images(bright_image):
    _, buffer = cv.imencode('.png', bright_image)
    data_url = 'data:image/png;base64,' + base64.b64encode(buffer.tobytes()).decode('ascii')

    result = JobCoordinator(engine_factory=FakeEngine).start_extraction([buffer.tobytes(), data_url])
    assert result.words == ['学校', 'フレッシュ']


def test_multi_image_results_are_deduped_and_resolved_once(bright_image):
    calls = []

    def resolver(terms):
        calls.append(list(terms))
        return {'学校'}

    coordinator = JobCoordinator(engine_factory=FakeEngine)
    result = coordinator.start_extraction(
        [bright_image, bright_image], resolve_existing_terms=resolver,
    )
    assert result.words == ['学校', 'フレッシュ']
    assert calls == [['学校', 'フレッシュ']]
    assert result.existing_terms == {'学校'}

    items = result.review_items()
    assert items[0].existing and not items[0].checked
    assert items[1].checked


def test_resolver_failure_is_not_fatal(bright_image):
    def resolver(terms):
        raise ConnectionError("vocabulary store offline")

    result = JobCoordinator(engine_factory=FakeEngine).start_extraction(
        [bright_image], resolve_existing_terms=resolver,
    )
    assert result.existing_terms == set()
    assert result.words == ['学校', 'フレッシュ']


def test_llm_job(bright_image):
    provider = FakeProvider(_llm_reply(('鉄道', 'てつどう', '철도', 3), ('ます', 'ます', '', None)))
    coordinator = JobCoordinator(engine_factory=None, extractor=LlmVisionExtractor(provider))
    result = coordinator.start_extraction([bright_image], locale='ko', mode='llm')

    assert result.words == [ExtractedWord('鉄道', 'てつどう', '철도', 3)]
    assert 'Korean' in provider.calls[0][1]
    assert result.to_dict()['words'][0]['jlptLevel'] == 3


def test_llm_failure_surfaces_in_llm_mode(bright_image):
    provider = FakeProvider(error=LlmExtractionError('HTTP 500', provider='fake', status_code=500))
    coordinator = JobCoordinator(engine_factory=None, extractor=LlmVisionExtractor(provider))
    with pytest.raises(LlmExtractionError):
        coordinator.start_extraction([bright_image], mode='llm')


def test_hybrid_prefers_agreement(bright_image):
    provider = FakeProvider(_llm_reply(('音楽', 'おんがく', 'music', 5), ('学校', 'がっこう', 'school', 5)))
    coordinator = JobCoordinator(engine_factory=FakeEngine, extractor=LlmVisionExtractor(provider))
    result = coordinator.start_extraction([bright_image], mode='hybrid')

    assert [w.term for w in result.words] == ['学校', 'フレッシュ', '音楽']
    assert result.words[0].meaning == 'school'
    assert result.llm_error is None


def test_hybrid_degrades_to_ocr_on_llm_failure(bright_image):
    provider = FakeProvider(error=LlmExtractionError('HTTP 503', provider='fake', status_code=503))
    coordinator = JobCoordinator(engine_factory=FakeEngine, extractor=LlmVisionExtractor(provider))
    result = coordinator.start_extraction([bright_image], mode='hybrid')

    assert [w.term for w in result.words] == ['学校', 'フレッシュ']
    assert 'HTTP 503' in result.llm_error


def test_missing_engines_are_configuration_errors(bright_image):
    with pytest.raises(ConfigurationError):
        JobCoordinator(engine_factory=FakeEngine).start_extraction([bright_image], mode='llm')
    with pytest.raises(ConfigurationError):
        JobCoordinator(engine_factory=None).start_extraction([bright_image], mode='ocr')


def test_cancel_returns_none_and_releases_engine(bright_image):
    engine = BlockingEngine()
    coordinator = JobCoordinator(engine_factory=lambda: engine)
    outcome = {}

    worker = threading.Thread(
        target=lambda: outcome.setdefault('result', coordinator.start_extraction([bright_image])),
    )
    worker.start()
    try:
        assert engine.started.wait(5)
        coordinator.cancel()
        worker.join(5)
    finally:
        engine.release.set()

    assert not worker.is_alive()
    assert outcome['result'] is None
    assert engine.closed


def test_new_job_supersedes_running_one(bright_image):
    blocking = BlockingEngine()
    engines = [blocking, FakeEngine()]
    coordinator = JobCoordinator(engine_factory=lambda: engines.pop(0))
    outcome = {}
    stale_progress = []

    def first_job():
        outcome['first'] = coordinator.start_extraction([bright_image], on_progress=stale_progress.append)

    first_id = coordinator.current_job_id + 1
    worker = threading.Thread(target=first_job)
    worker.start()
    try:
        assert blocking.started.wait(5)
        second = coordinator.start_extraction([bright_image])
        worker.join(5)
    finally:
        blocking.release.set()

    assert outcome['first'] is None
    assert second.words == ['学校', 'フレッシュ']
    assert not coordinator.is_current(first_id)
    assert blocking.closed
    assert all(p < 1.0 for p in stale_progress)


def test_reset_clears_partial_results(bright_image):
    coordinator = JobCoordinator(engine_factory=FakeEngine)
    coordinator.start_extraction([bright_image])
    assert len(coordinator.partial_results) == 1
    job_id = coordinator.current_job_id
    coordinator.reset()
    assert coordinator.partial_results == []
    assert not coordinator.is_current(job_id)


def test_progress_reporter_is_monotone():
    seen = []
    reporter = ProgressReporter(seen.append)
    reporter.report(0.5)
    reporter.report(0.2)
    reporter.report(1.5)
    half = reporter.span(0.0, 0.5)
    half(0.4)
    assert seen == [0.5, 1.0]


def test_dedupe_words_keeps_first_occurrence():
    words = ['学校', ExtractedWord('学校', meaning='later'), ' 世界', '世界']
    assert dedupe_words(words) == ['学校', ' 世界']
    assert len(dedupe_words([str(i) + '鉄' for i in range(60)])) == 50


def test_hybrid_falls_back_on_sdk_transport_error(bright_image):
    def generate_content(**kwargs):
        raise httpx.ConnectError('connection refused')

    provider = GeminiVisionProvider('key')
    provider.client = SimpleNamespace(models=SimpleNamespace(generate_content=generate_content))
    coordinator = JobCoordinator(engine_factory=FakeEngine, extractor=LlmVisionExtractor(provider))
    result = coordinator.start_extraction([bright_image], mode='hybrid')

    assert [w.term for w in result.words] == ['学校', 'フレッシュ']
    assert 'connection refused' in result.llm_error


def test_hybrid_falls_back_on_untyped_provider_error(bright_image):
    provider = FakeProvider(error=KeyError('candidates'))
    coordinator = JobCoordinator(engine_factory=FakeEngine, extractor=LlmVisionExtractor(provider))
    result = coordinator.start_extraction([bright_image], mode='hybrid')

    assert [w.term for w in result.words] == ['学校', 'フレッシュ']
    assert result.llm_error


def test_hybrid_survives_non_finite_level(bright_image):
    provider = FakeProvider('[{"term": "鉄道", "reading": "てつどう", "meaning": "railway", "jlptLevel": NaN}]')
    coordinator = JobCoordinator(engine_factory=FakeEngine, extractor=LlmVisionExtractor(provider))
    result = coordinator.start_extraction([bright_image], mode='hybrid')

    assert [w.term for w in result.words] == ['学校', 'フレッシュ', '鉄道']
    assert result.words[-1].jlpt_level is None
    assert result.llm_error is None
