# -*- coding: utf-8 -*-
import json
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from tqdm import tqdm

from scanvocab.bench import load_ground_truth, run_benchmark
from scanvocab.config import MODES, PROVIDERS, load_settings
from scanvocab.dictionary import SudachiDictionary
from scanvocab.errors import ConfigurationError, ImageDecodeError, LlmExtractionError
from scanvocab.llm import LlmVisionExtractor
from scanvocab.logger import setup_logger
from scanvocab.ocr import PaddleRecognitionEngine
from scanvocab.pipeline import JobCoordinator
from scanvocab.script import normalize_term
from scanvocab.term_filter import classify as classify_term
from scanvocab.term_filter import matching_noise_rule

# Load environment variables from .env file
load_dotenv()

VALID_EXTS = {'.jpg', '.jpeg', '.png', '.webp', '.heic', '.heif'}


def expand_paths(input_paths):
    """Files as given, directories expanded one level, unsupported types dropped."""
    expanded = []
    for p in input_paths:
        path = Path(p).resolve()
        if path.is_dir():
            expanded.extend(sorted(path.glob('*')))
        else:
            expanded.append(path)
    return [p for p in expanded if p.suffix.lower() in VALID_EXTS]


def read_existing_terms(path):
    with open(path, 'r', encoding='utf-8') as f:
        return {normalize_term(line) for line in f if line.strip()}


def build_coordinator(settings, gpu=False, debug_dir=None):
    extractor = None
    if settings.mode != 'ocr':
        extractor = LlmVisionExtractor.from_settings(settings)

    dictionary = SudachiDictionary() if settings.mode == 'hybrid' else None
    return JobCoordinator(
        engine_factory=lambda: PaddleRecognitionEngine(use_gpu=gpu),
        extractor=extractor,
        dictionary=dictionary,
        debug_dir=debug_dir,
    )


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Show pipeline diagnostics.')
@click.option('--log-dir', type=click.Path(file_okay=False), default=None, help='Directory for log files.')
def cli(verbose, log_dir):
    """
    ScanVocab: extract Japanese vocabulary from photos and screenshots.
    """
    setup_logger(log_dir=log_dir, level=logging.DEBUG if verbose else logging.WARNING)


@cli.command()
@click.argument('input_paths', nargs=-1, type=click.Path(exists=True))
@click.option('--mode', type=click.Choice(MODES), default=None, help='Extraction engine(s) (or set SCANVOCAB_MODE).')
@click.option('--locale', default=None, help="Meaning language: 'ko' for Korean, anything else for English.")
@click.option('--provider', type=click.Choice(PROVIDERS), default=None, help='Vision model provider.')
@click.option('--api-key', default=None, help='Provider API key (or set SCANVOCAB_API_KEY).')
@click.option('--model', default=None, help='Override the provider default model.')
@click.option('--timeout', type=float, default=None, help='Vision model timeout in seconds.')
@click.option('--existing', type=click.Path(exists=True, dir_okay=False), default=None,
              help='Newline-delimited file of terms you already have.')
@click.option('--json', 'as_json', is_flag=True, help='Print the result as JSON.')
@click.option('--debug-images', type=click.Path(file_okay=False), default=None,
              help='Save every OCR variant image to this directory.')
@click.option('--gpu/--no-gpu', default=False, help='Use GPU for OCR (requires CUDA).')
def scan(input_paths, mode, locale, provider, api_key, model, timeout, existing, as_json, debug_images, gpu):
    """
    Extract vocabulary from one or more images.

    INPUT_PATHS: Image files (JPEG, PNG, WebP, HEIC) or directories.
    """
    source_files = expand_paths(input_paths)
    if not source_files:
        click.echo("❌ No valid image files found.", err=True)
        sys.exit(1)

    try:
        settings = load_settings(
            mode=mode, locale=locale, provider=provider,
            api_key=api_key, model=model, timeout=timeout,
        )
        coordinator = build_coordinator(settings, gpu=gpu, debug_dir=Path(debug_images) if debug_images else None)
    except ConfigurationError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    owned = read_existing_terms(existing) if existing else set()
    resolver = (lambda terms: [t for t in terms if t in owned]) if owned else None

    click.echo(f"📸 Processing {len(source_files)} file(s) in {settings.mode} mode...", err=True)
    with tqdm(total=100, desc="Extracting", unit="%", file=sys.stderr) as bar:
        def on_progress(fraction):
            bar.n = int(fraction * 100)
            bar.refresh()

        try:
            result = coordinator.start_extraction(
                source_files,
                locale=settings.locale,
                mode=settings.mode,
                resolve_existing_terms=resolver,
                on_progress=on_progress,
            )
        except (ImageDecodeError, LlmExtractionError) as e:
            bar.close()
            click.echo(f"❌ Extraction failed: {e}", err=True)
            sys.exit(1)

    if result is None:
        click.echo("⚠️ Extraction was cancelled.", err=True)
        sys.exit(1)

    if result.llm_error:
        click.echo(f"⚠️ Vision model failed, showing OCR results only: {result.llm_error}", err=True)

    if as_json:
        click.echo(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
        return

    if not result.words:
        click.echo("⚠️ No vocabulary found.")
        return

    for item in result.review_items():
        word = item.word
        level = f"N{word.jlpt_level}" if word.jlpt_level else ""
        marker = "📚" if item.existing else "✅"
        parts = [p for p in (word.term, word.reading, word.meaning, level) if p]
        suffix = "  (already saved)" if item.existing else ""
        click.echo(f"{marker} {'  '.join(parts)}{suffix}")


@cli.command()
@click.argument('terms', nargs=-1, required=True)
def classify(terms):
    """Show whether each term would be kept, or why it is rejected."""
    for term in terms:
        reason = classify_term(term)
        if reason is None:
            click.echo(f"{term}\taccept")
            continue
        rule = matching_noise_rule(normalize_term(term))
        detail = f" ({rule})" if rule and reason.value == 'noise_pattern' else ""
        click.echo(f"{term}\t{reason.value}{detail}")


@cli.command()
@click.argument('ground_truth', type=click.Path(exists=True, dir_okay=False))
@click.argument('image_dir', type=click.Path(exists=True, file_okay=False))
@click.option('--mode', type=click.Choice(MODES), default='ocr', help='Extraction engine(s) to measure.')
@click.option('--output', '-o', type=click.Path(dir_okay=False), default=None, help='Also write the table as CSV.')
@click.option('--gpu/--no-gpu', default=False, help='Use GPU for OCR (requires CUDA).')
def bench(ground_truth, image_dir, mode, output, gpu):
    """Measure precision / recall against a labelled image set."""
    try:
        settings = load_settings(mode=mode)
        coordinator = build_coordinator(settings, gpu=gpu)
    except ConfigurationError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    cases = load_ground_truth(Path(ground_truth))

    def extract(path):
        result = coordinator.start_extraction([path], locale=settings.locale, mode=settings.mode)
        return result.terms if result else []

    df = run_benchmark(tqdm(cases, desc="Benchmark", file=sys.stderr), Path(image_dir), extract)
    if df.empty:
        click.echo("⚠️ No benchmark images were processed.")
        return

    click.echo(df.to_string(index=False, float_format=lambda v: f"{v * 100:.1f}%"))
    if output:
        df.to_csv(output, index=False)
        click.echo(f"💾 Saved results to {output}")


if __name__ == '__main__':
    cli()
