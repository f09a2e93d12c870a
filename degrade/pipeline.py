"""
Processing entry point: encoded bytes in, encoded WAV bytes out.

    validate -> decode -> resolve settings -> signal chain (batched) -> encode

process() runs synchronously on the calling thread. process_async() drives the
same batch generator and yields to the event loop after every batch, so a
service can keep answering other requests during a long render.
"""
from typing import Any, Iterator, Mapping, Optional, Tuple, Union
import asyncio
import logging

import torch

from degrade.config import DEFAULT_CONFIG, EngineConfig
from degrade.core.errors import DegradeError, ProcessingFailure
from degrade.core.io import get_decoder, get_encoder, validate_input
from degrade.core.progress import CHAIN_END_PCT, DECODED_PCT, ProgressCallback, ProgressReporter
from degrade.core.types import AudioBuffer, ProcessingRun
from degrade.dsp.chain import SignalChain
from degrade.params.quality import resolve_settings
from degrade.params.schema import QualitySettings

logger = logging.getLogger("degrade")

QualityRequest = Union[int, QualitySettings, Mapping[str, Any], None]


def _stages(
    data: bytes,
    quality: QualityRequest,
    reporter: ProgressReporter,
    content_type: Optional[str],
    container: str,
    seed: Optional[int],
    generator: Optional[torch.Generator],
    config: EngineConfig,
    result: dict,
) -> Iterator[float]:
    """
    The whole pipeline as a generator of progress percentages.
    The encoded output lands in result["output"] (and the run in result["run"]).
    """
    yield reporter.report(0.0)

    encoder = get_encoder(container)
    settings = resolve_settings(quality, default_level=config.default_quality)
    data = validate_input(data, content_type=content_type, max_bytes=config.max_input_bytes)
    buffer = get_decoder().decode(data, content_type=content_type)
    yield reporter.report(DECODED_PCT)

    run = ProcessingRun.start(buffer, settings, seed=seed, generator=generator)
    result["run"] = run
    chain = SignalChain(config)
    try:
        for fraction in chain.steps(run):
            yield reporter.report_fraction(fraction, DECODED_PCT, CHAIN_END_PCT)
    except DegradeError:
        raise
    except Exception as e:
        logger.exception("Signal chain failed at batch %d", run.batch_index)
        raise ProcessingFailure(f"Signal chain failed: {e}") from e

    result["output"] = encoder.encode(run.output)
    logger.info(
        "Encoded %s: %d bytes (%d ch, %d frames @ %d Hz)",
        encoder.container, len(result["output"]),
        run.output.channel_count, run.output.frame_count, run.output.sample_rate,
    )
    yield reporter.finish()


def process(
    data: bytes,
    quality: QualityRequest = None,
    progress_callback: Optional[ProgressCallback] = None,
    *,
    content_type: Optional[str] = None,
    container: str = "wav",
    seed: Optional[int] = None,
    generator: Optional[torch.Generator] = None,
    config: Optional[EngineConfig] = None,
) -> bytes:
    """
    Degrade an encoded audio file.

    Args:
        data: encoded input (any format the decoder supports)
        quality: level 1-5, QualitySettings, or a mapping of overrides
        progress_callback: called with non-decreasing percentages 0..100
        content_type: declared MIME type; must be audio/* when given
        container: output container (only "wav")
        seed: seed for the run's random source (noise, crackle, glitch)
        generator: explicit torch.Generator instead of seed
        config: engine config (defaults to DEFAULT_CONFIG)

    Returns:
        Encoded output bytes.

    Raises:
        InvalidInput, DecodeError, InvalidParameter, ProcessingFailure
    """
    result: dict = {}
    for _ in _stages(
        data, quality, ProgressReporter(progress_callback), content_type, container,
        seed, generator, config or DEFAULT_CONFIG, result,
    ):
        pass
    return result["output"]


async def process_async(
    data: bytes,
    quality: QualityRequest = None,
    progress_callback: Optional[ProgressCallback] = None,
    *,
    content_type: Optional[str] = None,
    container: str = "wav",
    seed: Optional[int] = None,
    generator: Optional[torch.Generator] = None,
    config: Optional[EngineConfig] = None,
) -> bytes:
    """Same contract as process(); yields to the event loop between batches."""
    result: dict = {}
    for _ in _stages(
        data, quality, ProgressReporter(progress_callback), content_type, container,
        seed, generator, config or DEFAULT_CONFIG, result,
    ):
        await asyncio.sleep(0)
    return result["output"]


def process_buffer(
    buffer: AudioBuffer,
    quality: QualityRequest = None,
    progress_callback: Optional[ProgressCallback] = None,
    *,
    seed: Optional[int] = None,
    generator: Optional[torch.Generator] = None,
    config: Optional[EngineConfig] = None,
) -> Tuple[AudioBuffer, QualitySettings]:
    """Run only the signal chain on an already decoded buffer."""
    config = config or DEFAULT_CONFIG
    settings = resolve_settings(quality, default_level=config.default_quality)
    reporter = ProgressReporter(progress_callback)
    reporter.report(0.0)
    run = ProcessingRun.start(buffer, settings, seed=seed, generator=generator)
    try:
        for fraction in SignalChain(config).steps(run):
            reporter.report(100.0 * fraction)
    except DegradeError:
        raise
    except Exception as e:
        logger.exception("Signal chain failed at batch %d", run.batch_index)
        raise ProcessingFailure(f"Signal chain failed: {e}") from e
    reporter.finish()
    return run.output, settings
