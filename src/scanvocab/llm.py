# -*- coding: utf-8 -*-
import base64
import json
import logging
from abc import ABC, abstractmethod
from functools import partial
from typing import Any, Callable, List, Optional, Union

import httpx
import numpy as np
import requests
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from scanvocab.cancellation import CancellationToken, run_cancellable
from scanvocab.config import (
    ANTHROPIC_URL,
    ANTHROPIC_VERSION,
    DEFAULT_MODELS,
    LLM_MAX_OUTPUT_TOKENS,
    LLM_TIMEOUT_SECONDS,
    MAX_WORDS_PER_IMAGE,
    OPENAI_URL,
    Settings,
)
from scanvocab.errors import ConfigurationError, ExtractionCancelled, LlmExtractionError, LlmTimeoutError
from scanvocab.image_processing import normalize_image, split_data_url, to_data_url
from scanvocab.models import ExtractedWord, clamp_jlpt_level
from scanvocab.script import normalize_term
from scanvocab.term_filter import should_reject

logger = logging.getLogger(__name__)


def build_prompt(locale: str) -> str:
    """Extraction instructions; meanings are Korean for 'ko', English otherwise."""
    meaning_lang = 'Korean' if locale == 'ko' else 'English'
    example = '먹다' if locale == 'ko' else 'to eat'

    return f"""You are a Japanese vocabulary extractor. Extract Japanese words/phrases that are VISIBLE in this image.

RULES:
1. Extract ONLY text written in Japanese (kanji, hiragana, katakana). If the image contains Korean, Chinese, or English, IGNORE it. Do NOT translate or convert non-Japanese text into Japanese.
2. The image may contain vertical text (top-to-bottom columns, read right-to-left). Read vertical columns carefully and combine characters into complete words.
3. Prefer compound words over isolated single kanji. E.g., extract 純米吟醸 as one term, not 純, 米, 吟, 醸 separately. Extract single kanji only when it genuinely stands alone.
4. Be thorough: extract ALL readable Japanese words including menu items, labels, descriptions, katakana loanwords, and proper nouns.
5. Convert inflected forms to dictionary form (e.g. 食べました → 食べる).
6. Skip unreadable or heavily obscured text.

For each word: dictionary form (term), reading in hiragana, meaning in {meaning_lang}, JLPT level (1-5, 5=N5 easiest, 1=N1 hardest, or null).

EXCLUDE: bare prefixes/suffixes (お, ご, 的, 性, 化), bare inflection endings (ます, ない, する, た), noise (ーー, repeated chars), affix marks (無-, -的).

Max {MAX_WORDS_PER_IMAGE} words. Return ONLY a JSON array: [{{"term": "食べる", "reading": "たべる", "meaning": "{example}", "jlptLevel": 4}}]. No explanation."""


# --- Providers ---

class VisionProvider(ABC):
    """
    One vision-model backend. Providers only shape the request and pull the
    reply text out of the response; prompt, timeout and parsing live here.
    """
    name = ''

    def __init__(self, api_key: str, model: Optional[str] = None, timeout: float = LLM_TIMEOUT_SECONDS):
        self.api_key = api_key
        self.model = model or DEFAULT_MODELS[self.name]
        self.timeout = timeout

    @abstractmethod
    def complete(self, image_data_url: str, prompt: str) -> str:
        pass

    def _post(self, url: str, headers: dict, payload: dict) -> Any:
        try:
            response = requests.post(url, headers=headers, json=payload, timeout=self.timeout)
        except requests.Timeout as e:
            raise LlmTimeoutError(f"{self.name} request timed out: {e}", provider=self.name)
        except requests.RequestException as e:
            raise LlmExtractionError(f"{self.name} request failed: {e}", provider=self.name)

        if not response.ok:
            raise LlmExtractionError(
                f"{self.name} API error: {response.text}",
                provider=self.name,
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as e:
            raise LlmExtractionError(f"{self.name} returned invalid JSON: {e}", provider=self.name)
        if not isinstance(data, dict):
            raise self._shape_error(data)
        return data

    def _shape_error(self, data: Any) -> LlmExtractionError:
        return LlmExtractionError(
            f"{self.name} returned an unexpected response shape: {str(data)[:200]}",
            provider=self.name,
        )


class OpenAiVisionProvider(VisionProvider):
    name = 'openai'

    def complete(self, image_data_url: str, prompt: str) -> str:
        payload = {
            'model': self.model,
            'messages': [
                {
                    'role': 'user',
                    'content': [
                        {'type': 'text', 'text': prompt},
                        {'type': 'image_url', 'image_url': {'url': image_data_url}},
                    ],
                },
            ],
            'reasoning_effort': 'medium',
            'max_completion_tokens': LLM_MAX_OUTPUT_TOKENS,
        }
        headers = {'Authorization': f'Bearer {self.api_key}'}
        data = self._post(OPENAI_URL, headers, payload)

        choices = data.get('choices') or [{}]
        if not isinstance(choices, list) or not isinstance(choices[0], dict):
            raise self._shape_error(data)
        message = choices[0].get('message') or {}
        if not isinstance(message, dict):
            raise self._shape_error(data)
        content = message.get('content')
        return content if isinstance(content, str) and content else '[]'


class AnthropicVisionProvider(VisionProvider):
    name = 'anthropic'

    def complete(self, image_data_url: str, prompt: str) -> str:
        media_type, payload_b64 = split_data_url(image_data_url)
        payload = {
            'model': self.model,
            'max_tokens': LLM_MAX_OUTPUT_TOKENS,
            'messages': [
                {
                    'role': 'user',
                    'content': [
                        {
                            'type': 'image',
                            'source': {'type': 'base64', 'media_type': media_type, 'data': payload_b64},
                        },
                        {'type': 'text', 'text': prompt},
                    ],
                },
            ],
        }
        headers = {'x-api-key': self.api_key, 'anthropic-version': ANTHROPIC_VERSION}
        data = self._post(ANTHROPIC_URL, headers, payload)

        blocks = data.get('content') or []
        if not isinstance(blocks, list):
            raise self._shape_error(data)
        for block in blocks:
            if not isinstance(block, dict):
                raise self._shape_error(data)
            if block.get('type') == 'text':
                text = block.get('text')
                return text if isinstance(text, str) and text else '[]'
        return '[]'


class GeminiVisionProvider(VisionProvider):
    name = 'gemini'

    def __init__(self, api_key: str, model: Optional[str] = None, timeout: float = LLM_TIMEOUT_SECONDS):
        super().__init__(api_key, model, timeout)
        self.client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=int(timeout * 1000)),
        )

    def complete(self, image_data_url: str, prompt: str) -> str:
        media_type, payload_b64 = split_data_url(image_data_url)
        image_part = types.Part.from_bytes(data=base64.b64decode(payload_b64), mime_type=media_type)
        try:
            response = self.client.models.generate_content(
                model=self.model,
                contents=[prompt, image_part],
                config=types.GenerateContentConfig(max_output_tokens=LLM_MAX_OUTPUT_TOKENS),
            )
        except genai_errors.APIError as e:
            raise LlmExtractionError(f"gemini API error: {e}", provider=self.name, status_code=e.code)
        except httpx.TimeoutException as e:
            raise LlmTimeoutError(f"gemini request timed out: {e}", provider=self.name)
        except httpx.HTTPError as e:
            raise LlmExtractionError(f"gemini request failed: {e}", provider=self.name)

        # Thinking models can return a None text when only thought parts came back
        return response.text or '[]'


PROVIDER_CLASSES = {
    OpenAiVisionProvider.name: OpenAiVisionProvider,
    AnthropicVisionProvider.name: AnthropicVisionProvider,
    GeminiVisionProvider.name: GeminiVisionProvider,
}


def create_provider(
    name: str,
    api_key: str,
    model: Optional[str] = None,
    timeout: float = LLM_TIMEOUT_SECONDS,
) -> VisionProvider:
    provider_cls = PROVIDER_CLASSES.get(name)
    if provider_cls is None:
        raise ConfigurationError(f"Unknown LLM provider '{name}'")
    if not api_key:
        raise ConfigurationError(f"API key required for provider '{name}'")
    return provider_cls(api_key, model=model, timeout=timeout)


# --- Timeout / cancellation ---

def call_with_timeout(
    fn: Callable[[], str],
    timeout: float = LLM_TIMEOUT_SECONDS,
    token: Optional[CancellationToken] = None,
) -> str:
    """Run a provider call, giving up after `timeout` seconds or on cancel."""
    try:
        return run_cancellable(fn, token=token, timeout=timeout)
    except TimeoutError:
        raise LlmTimeoutError(f"Vision model did not answer within {timeout:g}s")


# --- Reply parsing ---

def extract_json_array(text: str) -> Optional[str]:
    """
    The span from the first '[' to the last ']'. Replies often wrap the
    array in commentary or code fences. A reply cut off before its closing
    bracket yields everything from the first '['.
    """
    if not text:
        return None
    start = text.find('[')
    if start < 0:
        return None
    end = text.rfind(']')
    if end < start:
        return text[start:]
    return text[start:end + 1]


def repair_json_array(fragment: str) -> Optional[str]:
    """
    Best-effort fix for a truncated or over-long JSON array.

    Cuts after the last element that closed at the top level and closes the
    array. A fragment whose array is already balanced is cut right after
    it. Returns None when the fragment is not an array at all.
    """
    stack = []
    in_string = False
    escaped = False
    last_complete = None

    for i, ch in enumerate(fragment):
        if in_string:
            if escaped:
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in '[{':
            stack.append(ch)
        elif ch in ']}':
            if not stack:
                break
            stack.pop()
            if not stack:
                return fragment[:i + 1]
            if len(stack) == 1:
                last_complete = i + 1

    if not stack or stack[0] != '[':
        return None
    if last_complete is None:
        return '[]'
    return fragment[:last_complete] + ']'


def _load_array(text: str) -> List[Any]:
    fragment = extract_json_array(text)
    if fragment is None:
        return []

    try:
        data = json.loads(fragment)
    except json.JSONDecodeError:
        repaired = repair_json_array(fragment)
        if repaired is None:
            logger.warning("Vision model reply has no parsable JSON array")
            return []
        try:
            data = json.loads(repaired)
        except json.JSONDecodeError as e:
            logger.warning(f"Could not repair vision model JSON: {e}")
            return []
        logger.info("Repaired truncated vision model JSON")

    return data if isinstance(data, list) else []


def _to_word(item: Any) -> Optional[ExtractedWord]:
    if not isinstance(item, dict):
        return None
    term, reading, meaning = item.get('term'), item.get('reading'), item.get('meaning')
    if not all(isinstance(v, str) for v in (term, reading, meaning)):
        return None
    return ExtractedWord(
        term=normalize_term(term),
        reading=reading.strip(),
        meaning=meaning.strip(),
        jlpt_level=clamp_jlpt_level(item.get('jlptLevel')),
    )


def parse_words(text: str, cap: int = MAX_WORDS_PER_IMAGE) -> List[ExtractedWord]:
    """
    Turn a free-text model reply into filtered, deduplicated word records.

    Malformed records are skipped; every term goes through the noise
    classifier again regardless of what the model was told.
    """
    words = []
    seen = set()
    for item in _load_array(text):
        word = _to_word(item)
        if word is None or should_reject(word.term):
            continue
        if word.term in seen:
            continue
        seen.add(word.term)
        words.append(word)
    return words[:cap]


class LlmVisionExtractor:
    """Extracts vocabulary from one image with a vision model."""

    def __init__(self, provider: VisionProvider, timeout: float = LLM_TIMEOUT_SECONDS):
        self.provider = provider
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> 'LlmVisionExtractor':
        provider = create_provider(settings.provider, settings.api_key, settings.model, settings.timeout)
        return cls(provider, timeout=settings.timeout)

    def extract(
        self,
        image: Union[np.ndarray, str],
        locale: str = 'ko',
        token: Optional[CancellationToken] = None,
    ) -> List[ExtractedWord]:
        """
        Args:
            image: BGR image, or base64 / data-URL text
            locale: Meaning language selector
            token: Cancels the in-flight request

        Raises:
            LlmTimeoutError, LlmExtractionError, ExtractionCancelled
        """
        if isinstance(image, str):
            media_type, payload = split_data_url(image)
            data_url = f"data:{media_type};base64,{payload}"
        else:
            data_url = to_data_url(normalize_image(image))

        try:
            text = call_with_timeout(
                partial(self.provider.complete, data_url, build_prompt(locale)),
                self.timeout,
                token,
            )
        except (ExtractionCancelled, LlmExtractionError):
            raise
        except Exception as e:
            # SDK and transport errors the provider did not type
            raise LlmExtractionError(
                f"{self.provider.name} call failed: {type(e).__name__}: {e}",
                provider=self.provider.name,
            ) from e
        words = parse_words(text)
        logger.info("llm_words provider=%s count=%d", self.provider.name, len(words))
        return words
