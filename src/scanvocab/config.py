# -*- coding: utf-8 -*-
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from scanvocab.errors import ConfigurationError

# Output
MAX_WORDS_PER_IMAGE = 50

# Japanese Unicode Ranges
HIRAGANA_START = '\u3040'
HIRAGANA_END = '\u309f'
KATAKANA_START = '\u30a0'
KATAKANA_END = '\u30ff'
KANJI_START = '\u4e00'
KANJI_END = '\u9fff'
KANJI_EXT_A_START = '\u3400'
KANJI_EXT_A_END = '\u4dbf'

# Image Variants
# Tuned against the sample image set; changing any of these shifts precision/recall.
VARIANT_WEIGHTS = {
    'original': 1.0,
    'grayscaleContrast': 0.92,
    'threshold': 0.88,
    'rotatedCCW': 0.85,
    'rotatedCW': 0.83,
    'inverted': 0.80,
}
CONTRAST_FACTOR = 1.4
DARK_BACKGROUND_LUMA = 128

# Image Normalization
MAX_IMAGE_DIMENSION = 2048
JPEG_QUALITY = 85

# Token Combination
KATAKANA_PAIR_DISCOUNT = 0.9
KATAKANA_TRIPLE_DISCOUNT = 0.85
KATAKANA_PAIR_LENGTH = (3, 10)
KATAKANA_TRIPLE_LENGTH = (4, 10)
KANJI_CHAIN_DISCOUNTS = {2: 0.95, 3: 0.9, 4: 0.85}
KANJI_HIRAGANA_DISCOUNT = 0.93
KANJI_HIRAGANA_EXTENDED_DISCOUNT = 0.88
KANJI_HIRAGANA_KANJI_DISCOUNT = 0.9
MAX_HIRAGANA_TAIL = 4
MAX_HIRAGANA_JOINER = 2

# Noise Classifier
MIN_DIVERSITY_LENGTH = 4
MIN_CHAR_DIVERSITY = 0.4

# Ensemble (hybrid mode)
BUCKET_BOOSTS = {
    'both': 3.0,
    'ocr': 2.0,
    'llm': 1.0,
}
SCORE_MEANING = 3.0
SCORE_READING = 2.0
SCORE_KANJI = 1.0
SCORE_JLPT = 1.0
SCORE_PER_CHAR = 0.1
SCORE_LENGTH_CAP = 10
SCORE_EXISTING_PENALTY = 5.0

# Job Progress
# Share of a hybrid image's progress given to OCR; the LLM call reports only on completion.
HYBRID_OCR_PROGRESS_SHARE = 0.8

# LLM Vision
LLM_TIMEOUT_SECONDS = 60.0
LLM_MAX_OUTPUT_TOKENS = 8192
DEFAULT_MODELS = {
    'openai': 'gpt-5-nano',
    'anthropic': 'claude-sonnet-4-6',
    'gemini': 'gemini-3-flash-preview',
}
OPENAI_URL = 'https://api.openai.com/v1/chat/completions'
ANTHROPIC_URL = 'https://api.anthropic.com/v1/messages'
ANTHROPIC_VERSION = '2023-06-01'
PROVIDER_KEY_ENV = {
    'openai': 'OPENAI_API_KEY',
    'anthropic': 'ANTHROPIC_API_KEY',
    'gemini': 'GEMINI_API_KEY',
}

MODES = ('ocr', 'llm', 'hybrid')
PROVIDERS = ('openai', 'anthropic', 'gemini')


@dataclass
class Settings:
    """Runtime settings resolved from the environment (and .env)."""
    mode: str = 'ocr'
    locale: str = 'ko'
    provider: str = 'openai'
    api_key: Optional[str] = None
    model: Optional[str] = None
    timeout: float = LLM_TIMEOUT_SECONDS

    def validate(self) -> 'Settings':
        if self.mode not in MODES:
            raise ConfigurationError(f"Unknown mode '{self.mode}' (expected one of {', '.join(MODES)})")
        if self.provider not in PROVIDERS:
            raise ConfigurationError(
                f"Unknown LLM provider '{self.provider}' (expected one of {', '.join(PROVIDERS)})"
            )
        if self.timeout <= 0:
            raise ConfigurationError("LLM timeout must be positive")
        if self.mode != 'ocr' and not self.api_key:
            raise ConfigurationError(f"An API key is required for '{self.mode}' mode")
        return self


def load_settings(**overrides) -> Settings:
    """
    Build Settings from SCANVOCAB_* environment variables.

    Keyword overrides that are not None win over the environment.
    """
    load_dotenv()

    provider = overrides.get('provider') or os.getenv('SCANVOCAB_LLM_PROVIDER', 'openai')
    api_key = (
        overrides.get('api_key')
        or os.getenv('SCANVOCAB_API_KEY')
        or os.getenv(PROVIDER_KEY_ENV.get(provider, ''), None)
    )
    timeout = overrides.get('timeout')
    if timeout is None:
        raw_timeout = os.getenv('SCANVOCAB_LLM_TIMEOUT')
        try:
            timeout = float(raw_timeout) if raw_timeout else LLM_TIMEOUT_SECONDS
        except ValueError:
            raise ConfigurationError(f"SCANVOCAB_LLM_TIMEOUT is not a number: {raw_timeout!r}")

    settings = Settings(
        mode=overrides.get('mode') or os.getenv('SCANVOCAB_MODE', 'ocr'),
        locale=overrides.get('locale') or os.getenv('SCANVOCAB_LOCALE', 'ko'),
        provider=provider,
        api_key=api_key or None,
        model=overrides.get('model') or os.getenv('SCANVOCAB_LLM_MODEL') or None,
        timeout=timeout,
    )
    return settings.validate()
